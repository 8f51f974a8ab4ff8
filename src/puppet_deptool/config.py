"""
Runtime Configuration Store.

Settings are read from ``.deptool/config.toml`` (searched from the working
directory upwards) and overridden by command line arguments.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from puppet_deptool.analysis.resolver import CONTROL_MODULES
from puppet_deptool.core.module import is_control_repo
from puppet_deptool.errors import DeptoolError, ModulePathError
from puppet_deptool.syntax.loader import DEFAULT_TREE_SUFFIX

if sys.version_info >= (3, 11):
  import tomllib
else:
  try:
    import tomli as tomllib
  except ImportError:
    tomllib = None  # type: ignore

CONFIG_DIR = ".deptool"
CONFIG_FILENAME = "config.toml"
KNOWN_WARNINGS_FILENAME = "known_warnings"
STATE_FILENAME = "state"
ENVIRONMENT_CONF = "environment.conf"
FIXTURES_MODULEPATH = Path("spec") / "fixtures" / "modules"


class DeptoolConfig(BaseModel):
  """
  Global configuration container for a scan/resolve run.
  """

  path: Path = Field(default_factory=Path.cwd, description="Module or control repository being analyzed.")
  control_dir: Optional[Path] = Field(None, description="Control repository supplying the environment.")
  modulepath: List[Path] = Field(default_factory=list, description="Directories holding modules.")
  use_env_modulepath: bool = Field(False, description="Append the environment.conf modulepath to explicit entries.")
  modules: List[str] = Field(default_factory=list, description="Modules to resolve. Empty resolves every module.")
  scan_modules: List[str] = Field(default_factory=list, description="Modules to scan. Empty scans every module.")
  restrict_scan: bool = Field(False, description="Scan only the modules being resolved.")
  recurse: bool = Field(False, description="Resolve dependencies transitively.")
  extra_dependencies: List[str] = Field(default_factory=list, description="Names added to the resolved list.")
  control_modules: List[str] = Field(default_factory=lambda: list(CONTROL_MODULES))
  known_warnings_file: Optional[Path] = Field(None, description="Known-warnings file to load.")
  state_file: Optional[Path] = Field(None, description="Snapshot file for load/generate.")
  use_state: bool = Field(False, description="Restore the snapshot before scanning.")
  rescan_listed_modules: bool = Field(False, description="Drop scan_modules from a restored snapshot and rescan them.")
  builtins_file: Optional[Path] = Field(None, description="Alternative builtin catalog.")
  tree_suffix: str = Field(DEFAULT_TREE_SUFFIX, description="Suffix of syntax tree dumps next to each .pp file.")
  warnings_ok: bool = Field(False, description="Exit 0 even if warnings were surfaced.")

  @field_validator("tree_suffix")
  @classmethod
  def validate_suffix(cls, v: str) -> str:
    """
    Ensures the dump suffix is non-empty and dotted.

    Raises:
        ValueError: For an empty suffix.
    """
    v = v.strip()
    if not v:
      raise ValueError("tree_suffix must not be empty")
    return v if v.startswith(".") else f".{v}"

  @property
  def is_control_repo(self) -> bool:
    return is_control_repo(self.path)

  @property
  def environment_path(self) -> Path:
    """Directory that referencing-file names are relative to."""
    return self.control_dir or self.path

  @classmethod
  def load(
    cls,
    path: Optional[Path] = None,
    control_dir: Optional[Path] = None,
    modulepath: Optional[List[Path]] = None,
    use_env_modulepath: Optional[bool] = None,
    modules: Optional[List[str]] = None,
    scan_modules: Optional[List[str]] = None,
    restrict_scan: Optional[bool] = None,
    recurse: Optional[bool] = None,
    extra_dependencies: Optional[List[str]] = None,
    known_warnings_file: Optional[Path] = None,
    state_file: Optional[Path] = None,
    use_state: Optional[bool] = None,
    rescan_listed_modules: Optional[bool] = None,
    builtins_file: Optional[Path] = None,
    tree_suffix: Optional[str] = None,
    warnings_ok: Optional[bool] = None,
  ) -> "DeptoolConfig":
    """
    Loads configuration from ``.deptool/config.toml`` and overrides with CLI arguments.

    Args:
        path: Directory under analysis. Defaults to the working directory.
        control_dir: Separate control repository whose environment.conf and
            `.deptool` defaults apply to the analyzed directory.
        modulepath: Override for the modulepath.
        use_env_modulepath: Append the control repository's environment.conf
            modulepath to an explicit modulepath.
        modules: Modules to resolve.
        scan_modules: Modules to scan.
        restrict_scan: Scan only the resolved modules.
        recurse: Override for transitive resolution.
        extra_dependencies: Names appended to the resolved list.
        known_warnings_file: Override for the known-warnings file.
        state_file: Override for the snapshot file.
        use_state: Restore the snapshot before scanning.
        rescan_listed_modules: Rescan `scan_modules` on top of the snapshot.
        builtins_file: Override for the builtin catalog.
        tree_suffix: Override for the syntax dump suffix.
        warnings_ok: Override for warning-tolerant exit status.

    Returns:
        DeptoolConfig: The fully resolved configuration object.

    Raises:
        ModulePathError: If the analyzed directory, the control directory or a
            modulepath entry does not exist.
        DeptoolError: If the configuration file cannot be parsed, or the control
            directory holds no Puppetfile.
    """
    root = Path(path or Path.cwd()).resolve()
    if not root.is_dir():
      raise ModulePathError(f"basedir {root} does not exist")
    toml_config, toml_dir = _load_toml_settings(root)
    base_dir = toml_dir or root

    def _path_setting(override: Optional[Path], key: str) -> Optional[Path]:
      if override is not None:
        return Path(override).resolve()
      if key in toml_config:
        return (base_dir / Path(toml_config[key])).resolve()
      return None

    def _flag(override: Optional[bool], key: str) -> bool:
      if override is not None:
        return override
      return bool(toml_config.get(key, False))

    # 1. Control repository: explicit, or the analyzed directory itself
    control_root = _path_setting(control_dir, "control_dir")
    if control_root is not None:
      if not control_root.is_dir():
        raise ModulePathError(f"controldir {control_root} does not exist")
      if not is_control_repo(control_root):
        raise DeptoolError(f"controldir {control_root} does not appear to be a control repository")
    elif is_control_repo(root):
      control_root = root
    final_use_env = _flag(use_env_modulepath, "use_env_modulepath")

    # 2. Modulepath
    if modulepath:
      explicit = [Path(p).resolve() for p in modulepath]
    elif "modulepath" in toml_config:
      explicit = [(base_dir / Path(p)).resolve() for p in toml_config["modulepath"]]
    else:
      explicit = []

    if not explicit:
      final_modulepath = discover_modulepath(root, control_root)
    elif final_use_env and control_root is not None:
      final_modulepath = explicit + [p for p in environment_modulepath(control_root) if p not in explicit]
    else:
      final_modulepath = explicit

    for entry in final_modulepath:
      if not entry.is_dir():
        raise ModulePathError(f"modulepath directory {entry} does not exist")

    # 3. Control repository defaults
    final_known = _path_setting(known_warnings_file, "known_warnings_file")
    final_state = _path_setting(state_file, "state_file")
    if control_root is not None:
      final_known = final_known or control_root / CONFIG_DIR / KNOWN_WARNINGS_FILENAME
      final_state = final_state or control_root / CONFIG_DIR / STATE_FILENAME

    final_extra = list(toml_config.get("extra_dependencies", [])) + list(extra_dependencies or [])

    return cls(
      path=root,
      control_dir=control_root,
      modulepath=final_modulepath,
      use_env_modulepath=final_use_env,
      modules=list(modules or []),
      scan_modules=list(scan_modules or []),
      restrict_scan=_flag(restrict_scan, "restrict_scan"),
      recurse=_flag(recurse, "recurse"),
      extra_dependencies=final_extra,
      control_modules=list(toml_config.get("control_modules", CONTROL_MODULES)),
      known_warnings_file=final_known,
      state_file=final_state,
      use_state=_flag(use_state, "use_state"),
      rescan_listed_modules=_flag(rescan_listed_modules, "rescan_listed_modules"),
      builtins_file=_path_setting(builtins_file, "builtins_file"),
      tree_suffix=tree_suffix or toml_config.get("tree_suffix", DEFAULT_TREE_SUFFIX),
      warnings_ok=_flag(warnings_ok, "warnings_ok"),
    )


def discover_modulepath(root: Path, control_dir: Optional[Path] = None) -> List[Path]:
  """
  Derives the modulepath when none is given.

  The control repository's ``environment.conf`` ``modulepath`` wins;
  otherwise ``spec/fixtures/modules`` is used when present.

  Args:
      root: Directory under analysis.
      control_dir: Control repository of the environment. Defaults to `root`
          when it is one.

  Returns:
      List[Path]: Modulepath entries (possibly empty).
  """
  if control_dir is None and is_control_repo(root):
    control_dir = root
  if control_dir is not None:
    entries = environment_modulepath(control_dir)
    if entries:
      return entries

  fixtures = root / FIXTURES_MODULEPATH
  if fixtures.is_dir():
    return [fixtures.resolve()]
  return []


def environment_modulepath(control_dir: Path) -> List[Path]:
  """
  The ``environment.conf`` modulepath of a control repository, resolved
  against it. Entries starting with ``$`` are skipped.
  """
  conf = control_dir / ENVIRONMENT_CONF
  if not conf.is_file():
    return []
  return [(control_dir / entry).resolve() for entry in read_environment_modulepath(conf)]


def read_environment_modulepath(conf: Path) -> List[str]:
  """
  Reads the ``modulepath`` setting of an ``environment.conf``.

  Args:
      conf: The environment.conf file.

  Returns:
      List[str]: Relative entries, ``$``-prefixed entries removed.
  """
  for line in conf.read_text(encoding="utf-8").splitlines():
    line = line.split("#", 1)[0].strip()
    if not line or "=" not in line:
      continue
    key, value = (part.strip() for part in line.split("=", 1))
    if key == "modulepath":
      return [entry.strip() for entry in value.split(":") if entry.strip() and not entry.strip().startswith("$")]
  return []


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Recursively searches parents for '.deptool/config.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory holding `.deptool`.

  Raises:
      DeptoolError: If the file exists but cannot be parsed.
  """
  if not tomllib:
    return {}, None

  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / CONFIG_DIR / CONFIG_FILENAME
    if toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          return tomllib.load(f), parent
      except tomllib.TOMLDecodeError as e:
        raise DeptoolError(f"Invalid configuration file {toml_path}: {e}") from e

  return {}, None
