from .resolve import handle_resolve, exit_status
from .generate import handle_generate_known_warnings, handle_generate_state

__all__ = [
  "exit_status",
  "handle_generate_known_warnings",
  "handle_generate_state",
  "handle_resolve",
]
