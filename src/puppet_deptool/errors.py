"""
Fatal error types.

Anything raised from here aborts the run: the registry may be partially
populated, so there is no meaningful way to continue. Recoverable problems
are reported through :class:`puppet_deptool.diagnostics.Diagnostics` instead.
"""

from typing import Optional


class DeptoolError(ValueError):
  """Base class for fatal puppet-deptool errors."""


class UnsupportedShapeError(DeptoolError):
  """
  A node inside a recognised walker branch has a shape outside the supported subset.

  Attributes:
      kind: The kind tag of the offending node.
      file: The source file being walked.
      excerpt: The source text covered by the offending node.
  """

  def __init__(self, message: str, kind: str = "", file: str = "", excerpt: Optional[str] = None):
    super().__init__(message)
    self.kind = kind
    self.file = file
    self.excerpt = excerpt

  def __str__(self) -> str:
    base = super().__str__()
    if self.file:
      return f"{self.file}: {base}"
    return base


class UnknownModuleError(DeptoolError):
  """Resolution was requested for a module that was never scanned."""


class KnownWarningsError(DeptoolError):
  """The known-warnings file holds a malformed declaration."""


class ModulePathError(DeptoolError):
  """A required module, modulepath entry or base directory does not exist."""
