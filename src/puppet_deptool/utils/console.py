"""
Central Logging and Console Utilities.

Diagnostics are emitted through the standard `logging` library and rendered by
`rich`. Everything is written to the error channel so that the resolved
dependency list on stdout stays machine-readable.

The Rich console lives behind a proxy: tests (or embedding tools) can swap the
backend with `set_console` and capture every log line, while modules keep
importing the same `console` object.

Attributes:
    console (_ConsoleProxy): A global, stable reference to the active Rich Console.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Between INFO and WARNING, used for "done" messages.
SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme({"logging.level.success": "green"})


def _new_backend() -> Console:
  return Console(theme=_THEME, stderr=True)


class _ConsoleProxy:
  """
  A Proxy wrapper around `rich.console.Console`.

  Swapping the backend rebinds the root logger's `RichHandler`, so
  `logging.warning(...)` follows the console wherever it goes.

  Attributes:
      _backend (Console): The active Rich Console instance.
  """

  def __init__(self) -> None:
    self._backend: Console = _new_backend()
    self._level = logging.INFO
    self._configure_logging()

  def set_backend(self, new_console: Console) -> None:
    """
    Injects a new Console backend and updates logging handlers.

    Args:
        new_console (Console): The new Rich Console instance to use.
    """
    self._backend = new_console
    self._configure_logging()

  def reset(self) -> None:
    """Resets the proxy to a fresh stderr console."""
    self._backend = _new_backend()
    self._configure_logging()

  def set_level(self, level: int) -> None:
    """
    Changes the root logger threshold.

    Args:
        level (int): A `logging` level (e.g. ``logging.DEBUG``).
    """
    self._level = level
    logging.getLogger().setLevel(level)

  def _configure_logging(self) -> None:
    """
    Points the root logger at the current backend console, replacing any
    RichHandler installed earlier.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
      if isinstance(handler, RichHandler):
        root_logger.removeHandler(handler)

    rich_handler = RichHandler(
      console=self._backend,
      show_time=False,
      omit_repeated_times=False,
      show_path=False,
      markup=False,
      rich_tracebacks=True,
    )

    root_logger.setLevel(self._level)
    root_logger.addHandler(rich_handler)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Global helper to inject a specific console instance.

  Args:
      new_console (Console): The configured Rich console to use globally.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """Global helper to reset logging and console to stderr."""
  console.reset()


def set_verbosity(verbose: int = 0, quiet: bool = False) -> None:
  """
  Maps the CLI verbosity flags onto a logging level.

  Args:
      verbose: 0 shows warnings only, 1 adds progress messages, 2 adds debug tracing.
      quiet: Silences everything below ERROR. Wins over `verbose`.
  """
  if quiet:
    level = logging.ERROR
  elif verbose >= 2:
    level = logging.DEBUG
  elif verbose == 1:
    level = logging.INFO
  else:
    level = logging.WARNING
  console.set_level(level)


def log_info(msg: str) -> None:
  """
  Logs an informational message via standard logging.

  Args:
      msg (str): The message content.
  """
  logging.info(msg)


def log_success(msg: str) -> None:
  """
  Logs a success message via standard logging.

  Args:
      msg (str): The message content.
  """
  logging.log(SUCCESS_LEVEL_NUM, msg)


def log_warning(msg: str) -> None:
  """
  Logs a warning message via standard logging.

  Args:
      msg (str): The message content.
  """
  logging.warning(msg)


def log_error(msg: str) -> None:
  """
  Logs an error message via standard logging.

  Args:
      msg (str): The message content.
  """
  logging.error(msg)
