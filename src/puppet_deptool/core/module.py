"""
Puppet Module Model.

A `Module` is a directory of Puppet code: a regular module (``manifests/``,
``functions/``, ``types/``, ``lib/`` and an optional ``metadata.json``) or a
control repository (recognised by its ``Puppetfile``).

During a scan the walker fills the module's local dependency table::

    {Category.CLASS: {"apache": ["site/profile/manifests/web.pp"]}, ...}

The table is read-only once resolution starts.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from puppet_deptool.diagnostics import Diagnostics, MissingMetadataWarning
from puppet_deptool.enums import DEPENDENCY_CATEGORIES, Category
from puppet_deptool.errors import DeptoolError

logger = logging.getLogger(__name__)

# "author-name" or "author/name"
MODULE_NAME_PATTERN = re.compile(r"^([^-/]+)[-/](.+)$")
# Directory names Puppet accepts as module names.
MODULE_DIR_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
# Variables under this namespace are provided by the compiler.
RESERVED_VARIABLE_PREFIX = "settings::"

METADATA_FILENAME = "metadata.json"
PUPPETFILE = "Puppetfile"
MANIFEST_DIRS = ("manifests", "functions", "types")

DependencyTable = Dict[Category, Dict[str, List[str]]]


class ModuleMetadata(BaseModel):
  """
  The subset of ``metadata.json`` the tool reads. Unknown keys are preserved.
  """

  model_config = ConfigDict(extra="allow")

  name: Optional[str] = None
  version: str = "0.0.1"
  author: Optional[str] = None
  dependencies: List[Dict[str, Any]] = Field(default_factory=list)


# Synthetic record for modules without metadata.json.
DEFAULT_METADATA = ModuleMetadata(author="unknown", version="0.0.1")


class ModuleRecord(BaseModel):
  """
  Serializable form of a scanned module, stored in state snapshots.
  """

  name: str
  path: str
  control_repo: bool = False
  version: Optional[str] = None
  author: Optional[str] = None
  dependencies: Dict[Category, Dict[str, List[str]]] = Field(default_factory=dict)


def is_control_repo(path: Path) -> bool:
  """True if `path` is a control repository (holds a Puppetfile)."""
  return (Path(path) / PUPPETFILE).is_file()


def is_module_directory(name: str, parent: Path) -> bool:
  """
  Mirrors Puppet's own module directory check.

  Args:
      name: Directory entry name.
      parent: Modulepath directory containing the entry.
  """
  return bool(MODULE_DIR_PATTERN.match(name)) and (Path(parent) / name).is_dir()


def empty_dependency_table() -> DependencyTable:
  return {category: {} for category in DEPENDENCY_CATEGORIES}


class Module:
  """
  One scanned (or scannable) module and its local dependency table.
  """

  def __init__(self, path: Path, name: Optional[str] = None, control_repo: Optional[bool] = None):
    """
    Args:
        path: Module directory.
        name: Explicit name. Derived from the directory when omitted.
        control_repo: Explicit control repository flag, for modules restored
            from a snapshot whose directory may no longer exist.
    """
    if path is None:
      raise DeptoolError("Required parameter path missing")
    self.path = Path(path)
    self.metadata_path = self.path / METADATA_FILENAME
    self._name = name
    self._control_repo = control_repo
    self._metadata: Optional[ModuleMetadata] = None
    self.dependencies: DependencyTable = empty_dependency_table()

  @property
  def is_control_repo(self) -> bool:
    if self._control_repo is None:
      self._control_repo = is_control_repo(self.path)
    return self._control_repo

  @property
  def name(self) -> str:
    """
    Module name, as Puppet would load it.

    Control repositories use their directory name. Regular modules use the
    ``metadata.json`` name without its author prefix, falling back to the
    directory name. Anything else has an empty name.
    """
    if self._name is None:
      if self.is_control_repo:
        self._name = self.path.name
      elif self.metadata_path.is_file():
        self._name = _strip_author(self._read_metadata().name or self.path.name)
      elif (self.path / "manifests").exists():
        self._name = _strip_author(self.path.name)
      else:
        self._name = ""
    return self._name

  @property
  def has_metadata(self) -> bool:
    return self.metadata_path.is_file()

  @property
  def metadata(self) -> ModuleMetadata:
    """The parsed ``metadata.json``, or the synthetic default record."""
    if self._metadata is None:
      self._metadata = self._read_metadata() if self.has_metadata else DEFAULT_METADATA
    return self._metadata

  def _read_metadata(self) -> ModuleMetadata:
    logger.debug("Loading metadata from %s", self.metadata_path)
    try:
      with open(self.metadata_path, "r", encoding="utf-8") as f:
        return ModuleMetadata.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError) as e:
      raise DeptoolError(f"Unable to read metadata file {self.metadata_path}: {e}") from e

  def check_metadata(self, diagnostics: Diagnostics) -> None:
    """
    Reports a `missing_metadata` warning if the module ships no metadata.json.

    Control repositories never carry one and are exempt.
    """
    if self.has_metadata or self.is_control_repo:
      return
    warning = MissingMetadataWarning(name=self.name)
    diagnostics.report(warning, f"Missing metadata file {self.metadata_path}!")

  @property
  def version(self) -> str:
    return self.metadata.version

  @property
  def author(self) -> Optional[str]:
    for candidate in (self.metadata.name, self.path.name):
      if candidate:
        match = MODULE_NAME_PATTERN.match(candidate)
        if match:
          return match.group(1)
    return self.metadata.author

  def add_dependency(self, category: Category, name: str, source: str) -> None:
    """
    Records that file `source` references `name` under `category`.

    Args:
        category: One of `DEPENDENCY_CATEGORIES`.
        name: Referenced symbol; a leading ``::`` is stripped.
        source: Referencing file, relative to the environment.

    Raises:
        ValueError: For a category that cannot be a dependency.
    """
    if category not in self.dependencies:
      raise ValueError(f"Invalid dependency type {category}")
    if name.startswith("::"):
      name = name[2:]
    if category == Category.VARIABLE and name.startswith(RESERVED_VARIABLE_PREFIX):
      return
    sources = self.dependencies[category].setdefault(name, [])
    if source not in sources:
      sources.append(source)

  def dependency_items(self) -> Iterator[Tuple[Category, str, List[str]]]:
    """Yields ``(category, name, referencing files)`` in table order."""
    for category, table in self.dependencies.items():
      for name, sources in table.items():
        yield category, name, sources

  def to_record(self) -> ModuleRecord:
    """Snapshot representation of this module."""
    return ModuleRecord(
      name=self.name,
      path=str(self.path),
      control_repo=self.is_control_repo,
      version=self.version,
      author=self.author,
      dependencies={category: {k: list(v) for k, v in table.items()} for category, table in self.dependencies.items()},
    )

  @classmethod
  def from_record(cls, record: ModuleRecord) -> "Module":
    """Rebuilds a module from its snapshot record."""
    mod = cls(Path(record.path), name=record.name, control_repo=record.control_repo)
    # The directory may be gone; keep what the snapshot knew about it.
    mod._metadata = ModuleMetadata(version=record.version or DEFAULT_METADATA.version, author=record.author)
    for category, table in record.dependencies.items():
      for name, sources in table.items():
        mod.dependencies.setdefault(category, {})[name] = list(sources)
    return mod

  def __str__(self) -> str:
    return f"{self.author}-{self.name} ({self.path})"

  def __repr__(self) -> str:
    return f"Module({self.name!r}, {str(self.path)!r})"


def _strip_author(name: str) -> str:
  match = MODULE_NAME_PATTERN.match(name)
  if match:
    return match.group(2)
  return name
