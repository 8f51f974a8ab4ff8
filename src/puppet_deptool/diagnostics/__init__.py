"""
Diagnostics Package.

Modules:
    - ``models``: The fixed warning taxonomy.
    - ``known_warnings``: Reader/writer of the known-warnings file.
    - ``sink``: The `Diagnostics` accumulator used by walker and resolver.
"""

from puppet_deptool.diagnostics.models import (
  ControlDependencyWarning,
  Diagnostic,
  DuplicateDefinitionWarning,
  MissingDefinitionWarning,
  MissingMetadataWarning,
  TypeErrorWarning,
)
from puppet_deptool.diagnostics.sink import Diagnostics

__all__ = [
  "ControlDependencyWarning",
  "Diagnostic",
  "Diagnostics",
  "DuplicateDefinitionWarning",
  "MissingDefinitionWarning",
  "MissingMetadataWarning",
  "TypeErrorWarning",
]
