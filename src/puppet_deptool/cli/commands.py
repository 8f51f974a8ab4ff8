"""
CLI Command Handlers Facade.

Re-exports the handlers from `puppet_deptool.cli.handlers` so the dispatcher
(and tests patching it) have a single import point.
"""

from puppet_deptool.cli.handlers.generate import handle_generate_known_warnings, handle_generate_state
from puppet_deptool.cli.handlers.resolve import exit_status, handle_resolve

__all__ = [
  "exit_status",
  "handle_generate_known_warnings",
  "handle_generate_state",
  "handle_resolve",
]
