"""
Enumerations for puppet-deptool.

This module defines the closed sets used across the codebase: the symbol
categories stored in the definition registry and the warning taxonomy
understood by the known-warnings file.
"""

from enum import Enum
from typing import Dict, Tuple


class Category(str, Enum):
  """
  Symbol categories a definition or dependency can belong to.

  The value doubles as the symbol written in the known-warnings file
  (e.g. ``type: :resource_type``).
  """

  CLASS = "class"
  FUNCTION = "function"
  LEGACY_FUNCTION = "legacy_function"  # 3.x Ruby functions (lib/puppet/parser/functions)
  RESOURCE_TYPE = "resource_type"
  PROVIDER = "provider"
  DEFINED_TYPE = "defined_type"
  DATA_TYPE = "data_type"
  TYPE_ALIAS = "type_alias"
  VARIABLE = "variable"


# Categories a walker or plugin scanner may record as a dependency.
# A capitalised type reference (``Foo::Bar``) cannot be told apart from a
# resource type reference without resolution, so it is recorded as DATA_TYPE
# and disambiguated by the resolver's fallback chain.
DEPENDENCY_CATEGORIES: Tuple[Category, ...] = (
  Category.CLASS,
  Category.FUNCTION,
  Category.DATA_TYPE,
  Category.PROVIDER,
  Category.RESOURCE_TYPE,
  Category.VARIABLE,
)


class WarningKind(str, Enum):
  """
  The fixed warning taxonomy.

  Each kind maps to one statement keyword of the known-warnings DSL.
  """

  DUPLICATE_DEFINITION = "duplicate_definition"
  MISSING_DEFINITION = "missing_definition"
  TYPE_ERROR = "type_error"
  CONTROL_DEPENDENCY = "control_dependency"
  MISSING_METADATA = "missing_metadata"


# Attribute tuple of each warning kind, in declaration order.
WARNING_ATTRIBUTES: Dict[WarningKind, Tuple[str, ...]] = {
  WarningKind.DUPLICATE_DEFINITION: ("type", "name", "source"),
  WarningKind.MISSING_DEFINITION: ("type", "name", "source"),
  WarningKind.TYPE_ERROR: ("name", "error", "source"),
  WarningKind.CONTROL_DEPENDENCY: ("name",),
  WarningKind.MISSING_METADATA: ("name",),
}
