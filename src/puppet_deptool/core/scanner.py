"""
Scan Orchestrator.

Drives a complete run over an environment:

1.  Seeds the registry with builtins and loads known warnings.
2.  Optionally restores a state snapshot.
3.  Scans the analyzed directory (control repository or module) and every
    module on the modulepath: Puppet sources through the walker, Ruby plugins
    through the plugin scanner.
4.  Resolves the requested modules.
"""

import logging
import os
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

from puppet_deptool.analysis.builtins import BuiltinCatalog, collect_builtins
from puppet_deptool.analysis.registry import ResolverContext
from puppet_deptool.analysis.resolver import ResolveResult, resolve
from puppet_deptool.analysis.walker import ModuleWalker
from puppet_deptool.config import DeptoolConfig
from puppet_deptool.core.module import MANIFEST_DIRS, Module, is_module_directory
from puppet_deptool.core.plugins import PluginScanner
from puppet_deptool.core.state import StateSnapshot
from puppet_deptool.errors import DeptoolError, ModulePathError
from puppet_deptool.syntax.loader import JsonTreeLoader, TreeLoader
from puppet_deptool.utils.console import log_info, log_success

logger = logging.getLogger(__name__)


class Scanner:
  """
  Scans modules into a `ResolverContext` and resolves them.

  Attributes:
      config: Run configuration.
      context: Registry, diagnostics and walker facts.
      modules: Scanned (or restored) modules by name.
      result: Outcome of the last `resolve` call.
  """

  def __init__(
    self,
    config: DeptoolConfig,
    context: Optional[ResolverContext] = None,
    tree_loader: Optional[TreeLoader] = None,
  ):
    """
    Args:
        config: Run configuration.
        context: Existing context; a fresh one is created when omitted.
        tree_loader: Callable turning a ``.pp`` path into a `ParsedFile`.
            Defaults to reading JSON dumps with the configured suffix.
    """
    self.config = config
    self.context = context or ResolverContext()
    self.tree_loader = tree_loader or JsonTreeLoader(config.tree_suffix)
    self.modules: Dict[str, Module] = {}
    self.result: Optional[ResolveResult] = None
    self.root_module = Module(config.path)

  @property
  def diagnostics(self):
    return self.context.diagnostics

  # --- Setup ---

  def prepare(self) -> None:
    """Loads builtins, known warnings and, if requested, the snapshot."""
    catalog = BuiltinCatalog.load(self.config.builtins_file) if self.config.builtins_file else None
    count = collect_builtins(self.context, catalog)
    logger.debug("Registered %d builtin definitions", count)

    known = self.config.known_warnings_file
    if known is not None and known.is_file():
      self.diagnostics.load_known(known)
      log_info(f"Suppressing {self.diagnostics.known_count()} known warnings")

    if self.config.use_state:
      state_file = self.config.state_file
      if state_file is None:
        raise DeptoolError(
          "--use-generated-state specified but no control repository found. Use --state-file or --controldir."
        )
      if not state_file.is_file():
        self.diagnostics.warn(f"State file {state_file} does not exist. Scanning all modules.")
        self.config = self.config.model_copy(update={"use_state": False})
        return
      snapshot = StateSnapshot.load(state_file)
      if not self.config.scan_modules and self.root_module.name:
        # Rescan the analyzed module, plus the control modules it carries, on top of the snapshot.
        rescan = [self.root_module.name]
        if self.root_module.is_control_repo:
          rescan += [name for name in self.config.control_modules if name in snapshot.modules]
        self.config = self.config.model_copy(update={"scan_modules": rescan, "rescan_listed_modules": True})
      self.load_state(snapshot)

  def load_state(self, snapshot: StateSnapshot) -> int:
    """
    Restores a snapshot, leaving out the modules listed for rescan.

    Returns:
        int: Number of modules restored.
    """
    exclude = self.config.scan_modules if self.config.rescan_listed_modules else []
    return snapshot.restore(self.context, self.modules, exclude)

  def generate_state(self) -> Path:
    """
    Writes a snapshot of the current registry and modules.

    Raises:
        DeptoolError: If no state file is configured.
    """
    if self.config.state_file is None:
      raise DeptoolError("No state file configured")
    return StateSnapshot.capture(self.context, self.modules).save(self.config.state_file)

  def generate_known_warnings(self, path: Optional[Path] = None) -> int:
    """
    Dumps every warning evaluated so far as a known-warnings file.

    Raises:
        DeptoolError: If no destination is given or configured.
    """
    target = path or self.config.known_warnings_file
    if target is None:
      raise DeptoolError("No known warnings file configured")
    return self.diagnostics.dump_known(target)

  # --- Scanning ---

  def scan(self) -> Dict[str, Module]:
    """
    Scans the analyzed directory and the modulepath.

    When `scan_modules` is set (or `restrict_scan` with `modules`) only those
    modules are scanned; otherwise every module is.

    Returns:
        Dict[str, Module]: The module table.

    Raises:
        ModulePathError: If there is nothing to scan.
        UnsupportedShapeError: On a syntax tree outside the supported subset.
    """
    if self.config.use_state and not self.config.scan_modules:
      return self.modules

    wanted = self._modules_to_scan()
    log_info(f"Found modules to scan {', '.join(wanted)}" if wanted else "Scanning all modules")

    if not self.config.modulepath and not self.root_module.name:
      raise ModulePathError(f"No modulepath found for {self.config.path} and it is not a module")

    if self.root_module.name and (not wanted or self.root_module.name in wanted):
      self.scan_module(self.root_module)

    for directory in self.config.modulepath:
      log_info(f"Processing modulepath {directory}")
      for entry in sorted(os.listdir(directory)):
        if not is_module_directory(entry, directory):
          continue
        module = Module(directory / entry)
        if wanted and module.name not in wanted:
          continue
        if module.name in self.modules:
          log_info(f"Module {module.name} already processed. Skipping")
          continue
        self.scan_module(module)

    expected = wanted or self.config.modules
    unscanned = [name for name in expected if name not in self.modules]
    if unscanned:
      self.diagnostics.warn(f"Failed to scan module(s) {', '.join(unscanned)}")

    if self.context.unhandled_kinds:
      counts = Counter(self.context.unhandled_kinds)
      summary = ", ".join(f"{kind} ({count})" for kind, count in sorted(counts.items()))
      self.diagnostics.warn(f"The following unknown syntax node kinds were encountered: {summary}")

    return self.modules

  def _modules_to_scan(self) -> List[str]:
    if self.config.scan_modules:
      return list(self.config.scan_modules)
    if self.config.restrict_scan:
      return list(self.config.modules)
    return []

  def scan_module(self, module: Module) -> bool:
    """
    Scans one module's Puppet sources and plugins.

    Args:
        module: The module to scan.

    Returns:
        bool: False if the directory is not a module and was skipped.
    """
    if not module.name:
      self.diagnostics.warn(f"{module.path} doesn't appear to be a module directory. Skipping path.")
      return False

    log_info(f"Scanning module {module.name} ({module.path}) version {module.version}")
    module.check_metadata(self.diagnostics)

    walker = ModuleWalker(self.context, module)
    for directory in MANIFEST_DIRS:
      base = module.path / directory
      if not base.is_dir():
        continue
      for source in sorted(base.rglob("*.pp")):
        if source.is_dir():
          continue
        parsed = self.tree_loader(source)
        walker.walk_file(parsed, self.relative_source(source))

    PluginScanner(self.context, module, self.config.environment_path).scan()
    self.modules[module.name] = module
    return True

  def relative_source(self, path: Path) -> str:
    """Names a file relative to the environment (the control repository, if any)."""
    return os.path.relpath(path, self.config.environment_path)

  # --- Resolution ---

  def resolve(self) -> ResolveResult:
    """
    Resolves the configured modules.

    Raises:
        ModulePathError: If nothing was scanned.
        UnknownModuleError: If a requested module was never scanned.
    """
    if not self.modules:
      raise ModulePathError("No parsed modules found! Check the modulepath or generate syntax dumps first.")

    names = self.config.modules or None
    primary = self.root_module.name or None
    self.result = resolve(
      self.context,
      self.modules,
      names=names,
      recursive=self.config.recurse,
      extra_dependencies=self.config.extra_dependencies,
      control_modules=self.config.control_modules,
      primary=primary,
    )
    log_success(f"Resolved {len(self.result.dependencies)} dependencies")
    return self.result

  def list_dependencies(self) -> str:
    """
    The resolved combined set as one space-separated line.

    Raises:
        DeptoolError: If `resolve` has not run.
    """
    if self.result is None:
      raise DeptoolError("No dependencies defined! Did you run resolve?")
    return self.result.line()

  def run(self) -> ResolveResult:
    """Prepare, scan and resolve."""
    self.prepare()
    self.scan()
    return self.resolve()
