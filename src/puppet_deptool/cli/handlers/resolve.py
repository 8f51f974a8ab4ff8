"""
Resolve Command Handler.

Scans the environment, resolves the requested modules and prints the combined
dependency list on stdout.
"""

from typing import Optional

from puppet_deptool.config import DeptoolConfig
from puppet_deptool.core.scanner import Scanner
from puppet_deptool.syntax.loader import TreeLoader
from puppet_deptool.utils.console import log_info, log_success, log_warning


def exit_status(scanner: Scanner, warnings_ok: bool) -> int:
  """
  Maps the outcome of a completed run to an exit code.

  Args:
      scanner: The finished scanner.
      warnings_ok: Tolerate surfaced warnings.

  Returns:
      int: 0 when clean (or warnings are tolerated), 2 when warnings were surfaced.
  """
  diagnostics = scanner.diagnostics
  if not diagnostics.warnings_encountered:
    log_success("No warnings encountered")
    return 0
  log_warning(f"{len(diagnostics.messages)} warning(s) encountered")
  return 0 if warnings_ok else 2


def handle_resolve(config: DeptoolConfig, tree_loader: Optional[TreeLoader] = None) -> int:
  """
  Handles the 'resolve' command.

  Args:
      config: Run configuration.
      tree_loader: Optional syntax tree loader override.

  Returns:
      int: Exit code.
  """
  scanner = Scanner(config, tree_loader=tree_loader)
  result = scanner.run()

  for name, dependencies in result.modules.items():
    log_info(f"{name}: {' '.join(dependencies) or '(none)'}")
  print(scanner.list_dependencies())

  return exit_status(scanner, config.warnings_ok)
