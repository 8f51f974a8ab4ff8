"""
Warning Taxonomy.

One frozen pydantic model per `WarningKind`. Instances are hashable and
compare by their full attribute tuple, which is exactly what known-warning
suppression matches on.
"""

from typing import ClassVar, Dict, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict

from puppet_deptool.enums import WARNING_ATTRIBUTES, Category, WarningKind


class Diagnostic(BaseModel):
  """
  Base class of all warnings in the taxonomy.
  """

  model_config = ConfigDict(frozen=True)

  kind: ClassVar[WarningKind]

  def attributes(self) -> Tuple[Union[str, Category], ...]:
    """
    Returns the attribute values in declaration order.

    Returns:
        Tuple: e.g. ``(Category.CLASS, "foo", "modulex")``.
    """
    return tuple(getattr(self, attr) for attr in WARNING_ATTRIBUTES[self.kind])

  def describe(self) -> str:
    """Human readable one-line summary."""
    pairs = ", ".join(f"{attr}={_plain(getattr(self, attr))}" for attr in WARNING_ATTRIBUTES[self.kind])
    return f"{self.kind.value}({pairs})"


def _plain(value: Union[str, Category]) -> str:
  if isinstance(value, Category):
    return value.value
  return value


class DuplicateDefinitionWarning(Diagnostic):
  """A (category, name) pair was defined again by `source`."""

  kind: ClassVar[WarningKind] = WarningKind.DUPLICATE_DEFINITION

  type: Category
  name: str
  source: str


class MissingDefinitionWarning(Diagnostic):
  """The file `source` references a symbol no scanned module defines."""

  kind: ClassVar[WarningKind] = WarningKind.MISSING_DEFINITION

  type: Category
  name: str
  source: str


class TypeErrorWarning(Diagnostic):
  """A plugin file (`name` is the plugin category) could not be interpreted."""

  kind: ClassVar[WarningKind] = WarningKind.TYPE_ERROR

  name: Category
  error: str
  source: str


class ControlDependencyWarning(Diagnostic):
  """Ordinary module `name` depends on a control module (role/profile)."""

  kind: ClassVar[WarningKind] = WarningKind.CONTROL_DEPENDENCY

  name: str


class MissingMetadataWarning(Diagnostic):
  """Module `name` ships no metadata.json."""

  kind: ClassVar[WarningKind] = WarningKind.MISSING_METADATA

  name: str


WARNING_MODELS: Dict[WarningKind, Type[Diagnostic]] = {
  WarningKind.DUPLICATE_DEFINITION: DuplicateDefinitionWarning,
  WarningKind.MISSING_DEFINITION: MissingDefinitionWarning,
  WarningKind.TYPE_ERROR: TypeErrorWarning,
  WarningKind.CONTROL_DEPENDENCY: ControlDependencyWarning,
  WarningKind.MISSING_METADATA: MissingMetadataWarning,
}

# Attributes written as ``:symbol`` in the known-warnings file.
SYMBOL_ATTRIBUTES: Dict[WarningKind, Tuple[str, ...]] = {
  WarningKind.DUPLICATE_DEFINITION: ("type",),
  WarningKind.MISSING_DEFINITION: ("type",),
  WarningKind.TYPE_ERROR: ("name",),
  WarningKind.CONTROL_DEPENDENCY: (),
  WarningKind.MISSING_METADATA: (),
}
