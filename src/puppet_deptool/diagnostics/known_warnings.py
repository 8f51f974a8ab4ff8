"""
Known-Warnings File Reader and Writer.

The file holds one statement per accepted warning::

    # comments and blank lines are ignored
    duplicate_definition type: :class, name: 'apache', source: 'apache_legacy'
    missing_definition type: :function, name: 'foo', source: 'site/profile/manifests/web.pp'
    control_dependency name: 'nginx'

The statement keyword is a `WarningKind`; the arguments are the kind's
attribute tuple, each given exactly once. Category-valued attributes are
written as Ruby-style symbols (``:class``), everything else as quoted strings.

`format_known_warnings` produces text that `parse_known_warnings` reads back
into the identical set of warnings.
"""

import re
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

from pydantic import ValidationError

from puppet_deptool.diagnostics.models import SYMBOL_ATTRIBUTES, WARNING_MODELS, Diagnostic
from puppet_deptool.enums import WARNING_ATTRIBUTES, Category, WarningKind
from puppet_deptool.errors import KnownWarningsError

_STATEMENT_RE = re.compile(r"^(?P<keyword>[a-z_]+)\s*(?P<args>.*)$")
_ARGUMENT_RE = re.compile(
  r"""\s*(?P<attr>[a-z_]+)\s*:\s*
      (?P<value>:[A-Za-z0-9_:/.\-]+|'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      \s*(?P<sep>,|$)""",
  re.VERBOSE,
)
_ESCAPE_RE = re.compile(r"\\(.)")


def parse_known_warnings(text: str, filename: str = "<known_warnings>") -> List[Diagnostic]:
  """
  Parses the contents of a known-warnings file.

  Args:
      text: File contents.
      filename: Used in error messages.

  Returns:
      List[Diagnostic]: Declared warnings in file order.

  Raises:
      KnownWarningsError: On any malformed statement.
  """
  warnings: List[Diagnostic] = []
  for lineno, raw in enumerate(text.splitlines(), start=1):
    line = raw.strip()
    if not line or line.startswith("#"):
      continue
    warnings.append(_parse_statement(line, f"{filename}:{lineno}"))
  return warnings


def _parse_statement(line: str, where: str) -> Diagnostic:
  match = _STATEMENT_RE.match(line)
  if not match:
    raise KnownWarningsError(f"{where}: cannot parse statement: {line}")

  keyword = match.group("keyword")
  try:
    kind = WarningKind(keyword)
  except ValueError:
    raise KnownWarningsError(f"{where}: unknown warning type '{keyword}'") from None

  args = match.group("args").strip()
  if args.startswith("(") and args.endswith(")"):
    args = args[1:-1]

  values = _parse_arguments(args, kind, where)
  expected = WARNING_ATTRIBUTES[kind]
  missing = [attr for attr in expected if attr not in values]
  if missing:
    raise KnownWarningsError(f"{where}: {kind.value} missing argument(s) {', '.join(missing)}: {line}")

  try:
    return WARNING_MODELS[kind](**values)
  except ValidationError as e:
    raise KnownWarningsError(f"{where}: invalid {kind.value} declaration: {e}") from None


def _parse_arguments(args: str, kind: WarningKind, where: str) -> Dict[str, str]:
  values: Dict[str, str] = {}
  pos = 0
  while pos < len(args):
    match = _ARGUMENT_RE.match(args, pos)
    if not match or match.end() == pos:
      raise KnownWarningsError(f"{where}: cannot parse arguments near '{args[pos:]}'")

    attr = match.group("attr")
    if attr not in WARNING_ATTRIBUTES[kind]:
      raise KnownWarningsError(f"{where}: invalid {kind.value} option {attr}")
    if attr in values:
      raise KnownWarningsError(f"{where}: {kind.value} option {attr} given twice")

    values[attr] = _decode_value(match.group("value"))
    pos = match.end()
    if match.group("sep") != "," and pos < len(args):
      raise KnownWarningsError(f"{where}: expected ',' near '{args[pos:]}'")
  return values


def _decode_value(token: str) -> str:
  if token.startswith(":"):
    return token[1:]
  return _ESCAPE_RE.sub(r"\1", token[1:-1])


def _encode_value(value: Union[str, Category], as_symbol: bool) -> str:
  raw = value.value if isinstance(value, Category) else value
  if as_symbol:
    return f":{raw}"
  escaped = raw.replace("\\", "\\\\").replace("'", "\\'")
  return f"'{escaped}'"


def format_warning(warning: Diagnostic) -> str:
  """
  Renders one warning as a known-warnings statement.

  Args:
      warning: Any warning of the taxonomy.

  Returns:
      str: The statement, without trailing newline.
  """
  kind = warning.kind
  symbols = SYMBOL_ATTRIBUTES[kind]
  args = ", ".join(
    f"{attr}: {_encode_value(value, attr in symbols)}" for attr, value in zip(WARNING_ATTRIBUTES[kind], warning.attributes())
  )
  return f"{kind.value} {args}"


def format_known_warnings(warnings: Iterable[Diagnostic]) -> str:
  """
  Renders warnings grouped by kind (taxonomy order), each group in input order.

  Args:
      warnings: Warnings to persist.

  Returns:
      str: Full file contents.
  """
  grouped: Dict[WarningKind, List[Diagnostic]] = {kind: [] for kind in WarningKind}
  for warning in warnings:
    grouped[warning.kind].append(warning)

  lines = [format_warning(w) for kind in WarningKind for w in grouped[kind]]
  return "".join(f"{line}\n" for line in lines)


def load_known_warnings(path: Path) -> List[Diagnostic]:
  """
  Reads a known-warnings file from disk.

  Args:
      path: Location of the file.

  Returns:
      List[Diagnostic]: Declared warnings.
  """
  return parse_known_warnings(path.read_text(encoding="utf-8"), str(path))


def write_known_warnings(path: Path, warnings: Iterable[Diagnostic]) -> Tuple[Path, int]:
  """
  Writes warnings to `path`, creating parent directories.

  Returns:
      Tuple[Path, int]: The path written and the number of statements.
  """
  content = format_known_warnings(warnings)
  path.parent.mkdir(parents=True, exist_ok=True)
  path.write_text(content, encoding="utf-8")
  return path, content.count("\n")
