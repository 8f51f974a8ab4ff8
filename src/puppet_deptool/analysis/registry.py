"""
Definition Registry and Resolver Context.

The registry is the global map ``(category, name) -> owning module``. Ownership
is first-writer-wins: a later definition of the same pair only produces a
`duplicate_definition` warning.

`ResolverContext` bundles the registry with the diagnostics sink and the
per-run facts gathered by the walker (inheritance edges, unhandled node
kinds). It is passed explicitly through the walker and resolver so that tests
can run against isolated state.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from puppet_deptool.diagnostics import Diagnostics, DuplicateDefinitionWarning
from puppet_deptool.enums import Category

logger = logging.getLogger(__name__)

BUILTIN_MODULE = "builtin"
"""Pseudo-module owning every symbol seeded by the builtin loader."""


def normalize_name(name: str) -> str:
  """Strips a leading top-scope marker (``::foo`` -> ``foo``)."""
  name = str(name)
  if name.startswith("::"):
    return name[2:]
  return name


class DefinitionRegistry:
  """
  Global (category, symbol) -> module ownership table.
  """

  def __init__(self, diagnostics: Diagnostics):
    """
    Args:
        diagnostics: Sink receiving duplicate-definition warnings.
    """
    self.diagnostics = diagnostics
    self._definitions: Dict[Category, Dict[str, str]] = {category: {} for category in Category}

  def add_definition(self, category: Category, name: str, source: str, allow_duplicate: bool = False) -> bool:
    """
    Records that module `source` defines `name` under `category`.

    Args:
        category: The symbol category.
        name: Symbol name; a leading ``::`` is stripped.
        source: Owning module name (or ``builtin``).
        allow_duplicate: Silently accept an existing entry. Used for variable
            reassignment inside a class body.

    Returns:
        bool: True if ownership was recorded, False if the pair already existed.
    """
    category = Category(category)
    name = normalize_name(name)
    table = self._definitions[category]
    logger.debug("Adding %s definition %s from %s", category.value, name, source)

    if name in table:
      if not allow_duplicate:
        warning = DuplicateDefinitionWarning(type=category, name=name, source=source)
        self.diagnostics.report(warning, f"{category.value} {name} ({source}): Already defined in {table[name]}")
      return False

    table[name] = source
    return True

  def owner(self, category: Category, name: str) -> Optional[str]:
    """
    Looks up the module owning a symbol.

    Returns:
        The owning module name, or None if undefined.
    """
    return self._definitions[category].get(normalize_name(name))

  def __contains__(self, key: Tuple[Category, str]) -> bool:
    category, name = key
    return normalize_name(name) in self._definitions[category]

  def definitions(self, category: Category) -> Mapping[str, str]:
    """Read-only view of one category's table."""
    return dict(self._definitions[category])

  def to_dict(self) -> Dict[Category, Dict[str, str]]:
    """Deep copy of the whole table, for persistence."""
    return {category: dict(table) for category, table in self._definitions.items()}

  def __len__(self) -> int:
    return sum(len(table) for table in self._definitions.values())


@dataclass
class ResolverContext:
  """
  Shared state of one scan/resolve run.

  Attributes:
      diagnostics: Warning sink and suppression set.
      registry: Global definition registry.
      inherits: Child class -> parent class edges recorded by the walker.
      unhandled_kinds: Node kinds encountered outside the walker's dispatch set.
      builtins_loaded: Set once the builtin catalog has been registered.
  """

  diagnostics: Diagnostics = field(default_factory=Diagnostics)
  registry: DefinitionRegistry = field(init=False)
  inherits: Dict[str, str] = field(default_factory=dict)
  unhandled_kinds: List[str] = field(default_factory=list)
  builtins_loaded: bool = False

  def __post_init__(self) -> None:
    self.registry = DefinitionRegistry(self.diagnostics)
