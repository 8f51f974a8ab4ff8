"""
Diagnostics Sink.

Every warning produced during a scan or resolve passes through a single
`Diagnostics` object:

1.  Taxonomy warnings are checked against the known-warning set by exact
    attribute match. Suppressed or not, each one is recorded in the
    accumulator so the known-warnings file can be regenerated.
2.  Surfaced warnings are logged and raise the `warnings_encountered` flag,
    which automation uses to gate on an otherwise successful run.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from puppet_deptool.diagnostics.known_warnings import load_known_warnings, write_known_warnings
from puppet_deptool.diagnostics.models import Diagnostic
from puppet_deptool.enums import WarningKind
from puppet_deptool.utils.console import log_info, log_warning

logger = logging.getLogger(__name__)


class Diagnostics:
  """
  Known-warning suppression set plus accumulator of evaluated warnings.

  Attributes:
      warnings_encountered (bool): True once any warning has been surfaced.
      messages (List[str]): Surfaced warning messages, in order.
  """

  def __init__(self, known: Optional[Iterable[Diagnostic]] = None):
    self._known: Dict[WarningKind, Set[Diagnostic]] = {kind: set() for kind in WarningKind}
    # Insertion-ordered set of every evaluated warning.
    self._found: Dict[Diagnostic, None] = {}
    self.warnings_encountered = False
    self.messages: List[str] = []
    if known:
      self.add_known(known)

  def add_known(self, warnings: Iterable[Diagnostic]) -> None:
    """
    Extends the suppression set.

    Args:
        warnings: Warnings to accept silently from now on.
    """
    for warning in warnings:
      self._known[warning.kind].add(warning)

  def load_known(self, path: Path) -> int:
    """
    Loads a known-warnings file into the suppression set.

    Args:
        path: The known-warnings file.

    Returns:
        int: Number of declarations loaded.

    Raises:
        KnownWarningsError: If the file is malformed.
    """
    log_info(f"Loading known warnings from {path}")
    warnings = load_known_warnings(path)
    self.add_known(warnings)
    return len(warnings)

  def is_known(self, warning: Diagnostic) -> bool:
    """
    Records `warning` in the accumulator and checks it against the suppression set.

    Args:
        warning: The candidate warning.

    Returns:
        bool: True if an identical warning is known (suppressed).
    """
    self._found.setdefault(warning, None)
    return warning in self._known[warning.kind]

  def report(self, warning: Diagnostic, message: Optional[str] = None) -> bool:
    """
    Surfaces `warning` unless it is known.

    Args:
        warning: The taxonomy warning.
        message: Text to log; defaults to the warning's description.

    Returns:
        bool: True if the warning was surfaced.
    """
    if self.is_known(warning):
      logger.debug("Suppressed known warning %s", warning.describe())
      return False
    self.warn(message or warning.describe())
    return True

  def warn(self, message: str) -> None:
    """
    Surfaces a warning that is not part of the suppressible taxonomy.

    Args:
        message: Text to log.
    """
    self.warnings_encountered = True
    self.messages.append(message)
    log_warning(message)

  @property
  def found(self) -> List[Diagnostic]:
    """Every evaluated warning, deduplicated, in first-seen order."""
    return list(self._found)

  def known_count(self) -> int:
    """Size of the suppression set."""
    return sum(len(entries) for entries in self._known.values())

  def dump_known(self, path: Path) -> int:
    """
    Writes every evaluated warning as a known-warnings file.

    Reloading the file and rescanning unchanged input surfaces none of them.

    Args:
        path: Destination file.

    Returns:
        int: Number of statements written.
    """
    _, count = write_known_warnings(path, self.found)
    log_info(f"Wrote {count} known warnings to {path}")
    return count
