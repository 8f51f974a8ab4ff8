"""
Builtin Loader.

Seeds the registry with every symbol Puppet itself provides, attributed to the
``builtin`` pseudo-module, before any module is scanned. Dependencies on these
symbols are always satisfied and never become module edges.

The symbol list comes from the Puppet runtime's own introspection (types and
their providers, the type parser's type map, autoloadable functions, static
type aliases). That introspection is done outside this package; the result is
a JSON catalog. A catalog captured from Puppet core ships with the package and
an alternative can be supplied with ``--builtins``.
"""

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from puppet_deptool.analysis.registry import BUILTIN_MODULE, ResolverContext
from puppet_deptool.enums import Category
from puppet_deptool.utils.console import log_info

if sys.version_info >= (3, 9):
  from importlib.resources import files
else:
  files = None

CATALOG_FILENAME = "builtin_catalog.json"


class BuiltinCatalog(BaseModel):
  """
  Introspected Puppet core symbols.
  """

  puppet_version: str = Field("", description="Puppet release the catalog was captured from.")
  resource_types: Dict[str, List[str]] = Field(
    default_factory=dict, description="Resource type name -> provider names."
  )
  provider_classes: List[str] = Field(default_factory=list, description="Provider base classes (lib/puppet/provider/*.rb).")
  data_types: List[str] = Field(default_factory=list, description="Type parser type map keys.")
  type_aliases: List[str] = Field(default_factory=list, description="Static loader builtin aliases.")
  functions: List[str] = Field(default_factory=list, description="4.x API functions.")
  legacy_functions: List[str] = Field(default_factory=list, description="3.x API functions.")

  @classmethod
  def load(cls, path: Optional[Path] = None) -> "BuiltinCatalog":
    """
    Reads a catalog file.

    Args:
        path: Catalog location. Defaults to the bundled Puppet core catalog.

    Returns:
        BuiltinCatalog: The parsed catalog.
    """
    target = path or resolve_catalog_path()
    with open(target, "r", encoding="utf-8") as f:
      return cls.model_validate(json.load(f))


def resolve_catalog_path() -> Path:
  """
  Locates the bundled catalog, preferring the source tree over package resources.

  Returns:
      Path: Absolute path of ``builtin_catalog.json``.
  """
  local_path = Path(__file__).parent / CATALOG_FILENAME
  if local_path.exists():
    return local_path

  if files is not None:
    try:
      return Path(str(files("puppet_deptool.analysis") / CATALOG_FILENAME))
    except (ModuleNotFoundError, TypeError):
      pass

  return local_path


def collect_builtins(context: ResolverContext, catalog: Optional[BuiltinCatalog] = None) -> int:
  """
  Registers the builtin catalog in the context's registry.

  Runs at most once per context; later calls are no-ops.

  Args:
      context: The run context to seed.
      catalog: Symbols to register. Defaults to the bundled catalog.

  Returns:
      int: Number of definitions registered by this call.
  """
  if context.builtins_loaded:
    return 0

  log_info("Loading built-in types, providers and functions")
  catalog = catalog or BuiltinCatalog.load()
  registry = context.registry
  before = len(registry)

  seen_providers = set()
  for type_name, providers in catalog.resource_types.items():
    registry.add_definition(Category.RESOURCE_TYPE, type_name, BUILTIN_MODULE)
    for provider in providers:
      provider_name = f"{type_name}/{provider}"
      if provider_name in seen_providers:
        context.diagnostics.warn(f"Found duplicate provider {provider_name}")
        continue
      seen_providers.add(provider_name)
      registry.add_definition(Category.PROVIDER, provider_name, BUILTIN_MODULE)

  for provider_class in catalog.provider_classes:
    registry.add_definition(Category.PROVIDER, provider_class, BUILTIN_MODULE)
  for data_type in catalog.data_types:
    registry.add_definition(Category.DATA_TYPE, data_type.lower(), BUILTIN_MODULE)
  for function in catalog.legacy_functions:
    registry.add_definition(Category.LEGACY_FUNCTION, function, BUILTIN_MODULE)
  for function in catalog.functions:
    registry.add_definition(Category.FUNCTION, function, BUILTIN_MODULE)
  for alias in catalog.type_aliases:
    registry.add_definition(Category.TYPE_ALIAS, alias.lower(), BUILTIN_MODULE)

  context.builtins_loaded = True
  return len(registry) - before
