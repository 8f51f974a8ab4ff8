"""
Generation Command Handlers.

Both commands operate on control repositories only:

1.  **state**: scans every module and writes the state snapshot.
2.  **known-warnings**: scans and resolves, then writes every warning
    evaluated during the run as the new known-warnings file.
"""

from pathlib import Path
from typing import Optional

from puppet_deptool.cli.handlers.resolve import exit_status
from puppet_deptool.config import DeptoolConfig
from puppet_deptool.core.scanner import Scanner
from puppet_deptool.syntax.loader import TreeLoader
from puppet_deptool.utils.console import log_error, log_success


def _require_control_repo(config: DeptoolConfig, option: str) -> bool:
  if config.is_control_repo:
    return True
  log_error(f"{option} is only valid for control repositories ({config.path})")
  return False


def handle_generate_state(config: DeptoolConfig, tree_loader: Optional[TreeLoader] = None) -> int:
  """
  Handles the 'state' command.

  Args:
      config: Run configuration. Snapshot restore is disabled for this run.
      tree_loader: Optional syntax tree loader override.

  Returns:
      int: Exit code.
  """
  if not _require_control_repo(config, "state"):
    return 1

  config = config.model_copy(update={"use_state": False})
  scanner = Scanner(config, tree_loader=tree_loader)
  scanner.prepare()
  scanner.scan()
  path = scanner.generate_state()
  log_success(f"Saved {len(scanner.modules)} modules to {path}")
  return exit_status(scanner, config.warnings_ok)


def handle_generate_known_warnings(
  config: DeptoolConfig,
  output: Optional[Path] = None,
  tree_loader: Optional[TreeLoader] = None,
) -> int:
  """
  Handles the 'known-warnings' command.

  Warnings already listed in the current file are still written out, so the
  regenerated file covers everything the run evaluated.

  Args:
      config: Run configuration.
      output: Destination. Defaults to the configured known-warnings file.
      tree_loader: Optional syntax tree loader override.

  Returns:
      int: Exit code (0 once the file is written).
  """
  if not _require_control_repo(config, "known-warnings"):
    return 1

  scanner = Scanner(config, tree_loader=tree_loader)
  scanner.run()
  count = scanner.generate_known_warnings(output)
  log_success(f"Recorded {count} known warnings")
  return 0
