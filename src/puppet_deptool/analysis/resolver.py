"""
Module Dependency Resolver.

Turns the completed registry and the per-module dependency tables into
per-module sets of module names. Runs once, after every module has been
scanned, so scan order never changes the outcome.

Lookup order for a reference ``(category, name)``:

1.  The reference's own category.
2.  The fixed fallback chain of that category (``FALLBACK_CHAINS``).
3.  Otherwise a `missing_definition` warning for the unsuppressed
    referencing files.
"""

import logging
from collections import deque
from typing import Callable, Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, Field

from puppet_deptool.analysis.registry import BUILTIN_MODULE, ResolverContext
from puppet_deptool.core.module import Module
from puppet_deptool.diagnostics import ControlDependencyWarning, MissingDefinitionWarning
from puppet_deptool.enums import Category
from puppet_deptool.errors import UnknownModuleError
from puppet_deptool.utils.console import log_info

logger = logging.getLogger(__name__)

# Modules reserved for site composition; other modules must not depend on them.
CONTROL_MODULES = ("profile", "role")


def _provider_type(name: str) -> Optional[str]:
  """``"mytype/myprovider"`` -> ``"mytype"``."""
  type_name, sep, _ = name.rpartition("/")
  return type_name if sep and type_name else None


# Tried in order after the direct lookup. Each entry maps the reference to the
# (category, name) actually looked up.
FALLBACK_CHAINS: Dict[Category, Sequence[Tuple[Category, Optional[Callable[[str], Optional[str]]]]]] = {
  Category.DATA_TYPE: (
    (Category.RESOURCE_TYPE, None),
    (Category.DEFINED_TYPE, None),
    (Category.TYPE_ALIAS, None),
  ),
  Category.RESOURCE_TYPE: (
    (Category.DEFINED_TYPE, None),
    (Category.DATA_TYPE, None),
  ),
  Category.FUNCTION: ((Category.LEGACY_FUNCTION, None),),
  Category.PROVIDER: ((Category.DEFINED_TYPE, _provider_type),),
}


class ResolveResult(BaseModel):
  """
  Outcome of a resolve pass.

  Attributes:
      modules: Requested module name -> sorted dependency module names.
      dependencies: Sorted union over all requested modules plus extras,
          excluding the primary module.
  """

  modules: Dict[str, List[str]] = Field(default_factory=dict)
  dependencies: List[str] = Field(default_factory=list)

  def line(self) -> str:
    """The combined set as one space-separated line."""
    return " ".join(self.dependencies)


class DependencyResolver:
  """
  Resolves module dependency tables against a context's registry.
  """

  def __init__(
    self,
    context: ResolverContext,
    modules: Dict[str, Module],
    control_modules: Iterable[str] = CONTROL_MODULES,
  ):
    """
    Args:
        context: Run context holding the completed registry.
        modules: Every scanned module, by name.
        control_modules: Names of the privileged control modules.
    """
    self.context = context
    self.modules = modules
    self.control_modules = tuple(control_modules)
    self._direct: Dict[str, List[str]] = {}

  # --- Inheritance ---

  def alias_inherited_variables(self) -> int:
    """
    Registers every ``parent::x`` variable as ``child::x`` for each recorded
    inheritance edge, owned by the parent variable's module.

    Returns:
        int: Number of aliases newly registered.
    """
    registry = self.context.registry
    variables = registry.definitions(Category.VARIABLE)
    added = 0
    for child, parent in self.context.inherits.items():
      prefix = f"{parent}::"
      for variable, owner in variables.items():
        if variable.startswith(prefix):
          alias = f"{child}::{variable[len(prefix):]}"
          if registry.add_definition(Category.VARIABLE, alias, owner, allow_duplicate=True):
            added += 1
    return added

  # --- Lookup ---

  def lookup(self, category: Category, name: str) -> Optional[str]:
    """
    Finds the module owning a referenced symbol.

    Args:
        category: Reference category.
        name: Referenced name.

    Returns:
        The owning module name, or None if no category in the chain defines it.
    """
    registry = self.context.registry
    owner = registry.owner(category, name)
    if owner is not None:
      return owner

    for fallback, transform in FALLBACK_CHAINS.get(category, ()):
      target = transform(name) if transform else name
      if target is None:
        continue
      owner = registry.owner(fallback, target)
      if owner is not None:
        logger.debug("Resolved %s %s as %s %s", category.value, name, fallback.value, target)
        return owner
    return None

  def resolve_module(self, name: str) -> List[str]:
    """
    Resolves one module's direct dependencies.

    Results are cached, so warnings for a module are emitted once per run.

    Args:
        name: Scanned module name.

    Returns:
        List[str]: Sorted owning modules, without the module itself or ``builtin``.

    Raises:
        UnknownModuleError: If the module was never scanned.
    """
    if name in self._direct:
      return self._direct[name]

    module = self._get_module(name)
    log_info(f"Resolving module {name}")
    diagnostics = self.context.diagnostics
    owners: Set[str] = set()

    for category, dependency, sources in module.dependency_items():
      owner = self.lookup(category, dependency)
      if owner is not None:
        logger.debug("Found dependency %s for %s %s", owner, category.value, dependency)
        owners.add(owner)
        continue

      unknown_sources = [
        source
        for source in sources
        if not diagnostics.is_known(MissingDefinitionWarning(type=category, name=dependency, source=source))
      ]
      if unknown_sources:
        diagnostics.warn(f"Failed to find {category.value} {dependency}. Sources {', '.join(unknown_sources)}")

    owners.discard(BUILTIN_MODULE)
    owners.discard(name)
    resolved = sorted(owners)
    self._check_control_dependencies(module, resolved)

    logger.debug("Found %s dependencies %s", name, resolved)
    self._direct[name] = resolved
    return resolved

  def _check_control_dependencies(self, module: Module, resolved: List[str]) -> None:
    if module.name in self.control_modules or module.is_control_repo:
      return
    offending = [name for name in self.control_modules if name in resolved]
    if not offending:
      return
    warning = ControlDependencyWarning(name=module.name)
    quoted = ", ".join(f"'{name}'" for name in offending)
    self.context.diagnostics.report(warning, f"Module {module.name} depends on control repo module {quoted}")

  def _get_module(self, name: str) -> Module:
    try:
      return self.modules[name]
    except KeyError:
      raise UnknownModuleError(f"Module {name} has not been scanned") from None

  # --- Entry point ---

  def resolve(
    self,
    names: Optional[Sequence[str]] = None,
    recursive: bool = False,
    extra_dependencies: Iterable[str] = (),
    primary: Optional[str] = None,
  ) -> ResolveResult:
    """
    Resolves the requested modules.

    Args:
        names: Modules to resolve. Defaults to every scanned module.
        recursive: Union each module's transitive closure into its set.
            Control modules are reported but never expanded.
        extra_dependencies: Names added to the combined set.
        primary: Module excluded from the combined set. Defaults to the only
            requested module when exactly one is named.

    Returns:
        ResolveResult: Per-module and combined dependency lists.

    Raises:
        UnknownModuleError: If a requested (or transitively reached) module
            was never scanned.
    """
    log_info("Resolving dependencies")
    self.alias_inherited_variables()

    roots = list(names) if names else list(self.modules)
    if primary is None and names and len(roots) == 1:
      primary = roots[0]

    queue: Deque[str] = deque(roots)
    queued: Set[str] = set(roots)
    while queue:
      name = queue.popleft()
      for dependency in self.resolve_module(name):
        if recursive and dependency not in queued and dependency not in self.control_modules:
          queued.add(dependency)
          queue.append(dependency)

    result = ResolveResult()
    combined: Set[str] = set()
    for root in roots:
      resolved = self._closure(root) if recursive else set(self._direct[root])
      resolved.discard(root)
      result.modules[root] = sorted(resolved)
      combined.update(resolved)

    combined.update(extra_dependencies)
    combined.discard(BUILTIN_MODULE)
    if primary:
      combined.discard(primary)
    result.dependencies = sorted(combined)
    return result

  def _closure(self, root: str) -> Set[str]:
    seen: Set[str] = set()
    pending: Deque[str] = deque(self._direct[root])
    while pending:
      name = pending.popleft()
      if name in seen:
        continue
      seen.add(name)
      if name not in self.control_modules:
        pending.extend(self._direct.get(name, ()))
    return seen


def resolve(
  context: ResolverContext,
  modules: Dict[str, Module],
  names: Optional[Sequence[str]] = None,
  recursive: bool = False,
  extra_dependencies: Iterable[str] = (),
  control_modules: Iterable[str] = CONTROL_MODULES,
  primary: Optional[str] = None,
) -> ResolveResult:
  """
  Functional entry point over `DependencyResolver`.

  Args:
      context: Run context with a completed registry.
      modules: Every scanned module, by name.
      names: Subset to resolve; all modules when omitted.
      recursive: Transitive mode.
      extra_dependencies: Names unioned into the combined set.
      control_modules: Privileged control module names.
      primary: Module excluded from the combined set.

  Returns:
      ResolveResult: The resolved sets.
  """
  resolver = DependencyResolver(context, modules, control_modules)
  return resolver.resolve(names, recursive, extra_dependencies, primary)
