"""
Ruby Plugin Scanner.

Discovers the Ruby plugins a module ships under ``lib/puppet/`` by Puppet's
autoloader path conventions, reading each file as text:

* ``parser/functions/*.rb``       -> legacy functions (``newfunction``)
* ``functions/**/*.rb``           -> functions (``create_function``), namespaced
  by sub-directory
* ``type/*.rb``                   -> resource types (``newtype``)
* ``provider/*.rb``               -> provider base classes
* ``provider/<type>/<name>.rb``   -> providers ``<type>/<name>``
* ``datatypes/**/*.rb``           -> data types (``create_type``)

Providers also depend on their resource type and on any parent provider or
type they derive from.
"""

import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from puppet_deptool.analysis.registry import ResolverContext
from puppet_deptool.core.module import Module
from puppet_deptool.diagnostics import TypeErrorWarning
from puppet_deptool.enums import Category

logger = logging.getLogger(__name__)

PLUGIN_ROOT = ("lib", "puppet")

NEWFUNCTION_RE = re.compile(r"newfunction\s*\(?\s*:?['\"]?(\w+)")
CREATE_FUNCTION_RE = re.compile(r"Puppet::Functions\.create_function\s*\(?\s*:?['\"]?([\w:]+)")
CREATE_TYPE_RE = re.compile(r"Puppet::DataTypes\.create_type\s*\(?\s*['\"]([\w:]+)")
NEWTYPE_RE = re.compile(r"Puppet::Type\.newtype\s*\(?\s*:?['\"]?(\w+)")
PROVIDE_RE = re.compile(r"\.provide\b\s*\(?\s*:?['\"]?(\w+)")

# Parent declarations of a provider.
PARENT_RE = re.compile(r"(?::parent\s*=>|\bparent:)\s*([\w:]+(?:\.type\(\s*:\w+\s*\)\.provider\(\s*:\w+\s*\))?)")
TYPE_PROVIDER_CALL_RE = re.compile(r"Puppet::Type\.type\(\s*:(\w+)\s*\)\.provider\(\s*:(\w+)\s*\)")
PROVIDER_CLASS_RE = re.compile(r"Puppet::Provider::(\w+)")
TYPE_PROVIDER_CONST_RE = re.compile(r"Puppet::Type::([^:\s]+)::Provider(\w+)")
TYPE_CONST_RE = re.compile(r"Puppet::Type::([^:\s]+)")


class PluginScanner:
  """
  Registers the plugin definitions of one module.

  Attributes:
      context: The run context.
      module: Module whose ``lib/puppet`` tree is scanned.
      relative_to: Base directory for referencing-file names.
  """

  def __init__(self, context: ResolverContext, module: Module, relative_to: Optional[Path] = None):
    self.context = context
    self.module = module
    self.relative_to = relative_to
    self.root = module.path.joinpath(*PLUGIN_ROOT)

  def scan(self) -> int:
    """
    Scans every plugin convention.

    Returns:
        int: Number of definitions registered.
    """
    if not self.root.is_dir():
      return 0
    registry = self.context.registry
    before = len(registry)
    self.scan_legacy_functions()
    self.scan_functions()
    self.scan_data_types()
    self.scan_types()
    self.scan_provider_classes()
    self.scan_providers()
    return len(registry) - before

  # --- Helpers ---

  def _files(self, *parts: str, recursive: bool = False) -> Iterator[Path]:
    base = self.root.joinpath(*parts)
    if not base.is_dir():
      return iter(())
    return iter(sorted(base.rglob("*.rb") if recursive else base.glob("*.rb")))

  def _source(self, path: Path) -> str:
    if self.relative_to is not None:
      try:
        return str(path.relative_to(self.relative_to))
      except ValueError:
        pass
    return str(path)

  def _read(self, path: Path) -> Optional[str]:
    try:
      return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
      self.context.diagnostics.warn(f"Failed to load {path}: {e}")
      return None

  def _define(self, category: Category, name: str, path: Path) -> None:
    logger.debug("Found %s %s in %s", category.value, name, path)
    self.context.registry.add_definition(category, name, self.module.name)

  def _type_error(self, category: Category, error: str, path: Path) -> None:
    warning = TypeErrorWarning(name=category, error=error, source=self._source(path))
    self.context.diagnostics.report(warning, f"Found {category.value} error {error}")

  # --- Conventions ---

  def scan_legacy_functions(self) -> None:
    for path in self._files("parser", "functions"):
      text = self._read(path)
      if text is None:
        continue
      match = NEWFUNCTION_RE.search(text)
      self._define(Category.LEGACY_FUNCTION, match.group(1) if match else path.stem, path)

  def scan_functions(self) -> None:
    """
    ``functions/mymod/do_it.rb`` must declare ``mymod::do_it``; a missing or
    mismatched name is a type error and nothing is registered.
    """
    base = self.root / "functions"
    for path in self._files("functions", recursive=True):
      expected = "::".join(path.relative_to(base).with_suffix("").parts)
      text = self._read(path)
      if text is None:
        continue
      match = CREATE_FUNCTION_RE.search(text)
      if match is None:
        self._type_error(Category.FUNCTION, f"{expected}: no create_function call found", path)
        continue
      declared = match.group(1)
      if declared != expected:
        self._type_error(Category.FUNCTION, f"{expected}: declared name '{declared}' does not match file path", path)
        continue
      self._define(Category.FUNCTION, declared, path)

  def scan_data_types(self) -> None:
    base = self.root / "datatypes"
    for path in self._files("datatypes", recursive=True):
      expected = "::".join(path.relative_to(base).with_suffix("").parts)
      text = self._read(path)
      if text is None:
        continue
      match = CREATE_TYPE_RE.search(text)
      if match is None:
        self._type_error(Category.DATA_TYPE, f"{expected}: no create_type call found", path)
        continue
      self._define(Category.DATA_TYPE, match.group(1).lower(), path)

  def scan_types(self) -> None:
    for path in self._files("type"):
      text = self._read(path)
      if text is None:
        continue
      match = NEWTYPE_RE.search(text)
      if match is None:
        self.context.diagnostics.warn(f"Failed to find type {path.stem} after loading file {path}")
        continue
      self._define(Category.RESOURCE_TYPE, match.group(1), path)

  def scan_provider_classes(self) -> None:
    for path in self._files("provider"):
      self._define(Category.PROVIDER, path.stem, path)

  def scan_providers(self) -> None:
    base = self.root / "provider"
    if not base.is_dir():
      return
    for type_dir in sorted(p for p in base.iterdir() if p.is_dir()):
      for path in sorted(type_dir.glob("*.rb")):
        self.scan_provider(type_dir.name, path)

  def scan_provider(self, type_name: str, path: Path) -> None:
    """
    Registers provider ``<type>/<name>`` and its dependencies.

    Args:
        type_name: Resource type directory name.
        path: Provider source file.
    """
    text = self._read(path)
    if text is None:
      return
    match = PROVIDE_RE.search(text)
    if match is None:
      self.context.diagnostics.warn(f"Failed to find provider {path.stem} for type {type_name} after loading file {path}")
      return

    source = self._source(path)
    self._define(Category.PROVIDER, f"{type_name}/{path.stem}", path)
    self.module.add_dependency(Category.RESOURCE_TYPE, type_name, source)
    for category, name in parent_references(text):
      logger.debug("Provider %s/%s derives from %s %s", type_name, path.stem, category.value, name)
      self.module.add_dependency(category, name, source)


def parent_references(text: str) -> List[Tuple[Category, str]]:
  """
  Extracts the providers and resource types a provider file derives from.

  Args:
      text: Ruby source of a provider.

  Returns:
      List[Tuple[Category, str]]: ``(category, name)`` pairs in discovery order.
  """
  found: List[Tuple[Category, str]] = []

  def add(category: Category, name: str) -> None:
    if (category, name) not in found:
      found.append((category, name))

  for parent in PARENT_RE.findall(text):
    call = TYPE_PROVIDER_CALL_RE.search(parent)
    if call:
      add(Category.PROVIDER, f"{call.group(1).lower()}/{call.group(2).lower()}")
      add(Category.RESOURCE_TYPE, call.group(1).lower())
      continue
    provider_class = PROVIDER_CLASS_RE.search(parent)
    if provider_class:
      add(Category.PROVIDER, provider_class.group(1).lower())
    type_provider = TYPE_PROVIDER_CONST_RE.search(parent)
    if type_provider:
      add(Category.PROVIDER, f"{type_provider.group(1).lower()}/{type_provider.group(2).lower()}")
    type_const = TYPE_CONST_RE.search(parent)
    if type_const:
      add(Category.RESOURCE_TYPE, type_const.group(1).lower())
  return found
