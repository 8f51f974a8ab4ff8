"""
Syntax Tree Loading.

The external grammar engine dumps one JSON document per source file, stored
next to it as ``<file>.pp.json`` (the suffix is configurable)::

    {
      "source": "class foo { include bar }",
      "tree": {
        "kind": "Program",
        "span": [0, 25],
        "fields": {"body": {"kind": "HostClassDefinition", ...}}
      }
    }

Any JSON object carrying a ``kind`` key is a node; lists of such objects are
lists of child nodes; everything else is kept as a scalar field.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict

from puppet_deptool.errors import DeptoolError
from puppet_deptool.syntax.nodes import Node, ParsedFile

DEFAULT_TREE_SUFFIX = ".json"

# Signature of anything able to turn a source path into a parsed tree.
TreeLoader = Callable[[Path], ParsedFile]


def node_from_dict(data: Dict[str, Any]) -> Node:
  """
  Builds a `Node` (and its subtree) from its JSON representation.

  Args:
      data: Decoded JSON object with ``kind``, optional ``span`` and ``fields``.

  Returns:
      Node: The reconstructed node.

  Raises:
      DeptoolError: If the object has no ``kind``.
  """
  if "kind" not in data:
    raise DeptoolError(f"Malformed syntax tree node (no 'kind'): {sorted(data.keys())}")

  span = data.get("span") or (0, 0)
  fields = {name: _convert(value) for name, value in (data.get("fields") or {}).items()}
  return Node(kind=data["kind"], fields=fields, offset=int(span[0]), length=int(span[1]))


def _convert(value: Any) -> Any:
  if isinstance(value, dict) and "kind" in value:
    return node_from_dict(value)
  if isinstance(value, list):
    return [_convert(item) for item in value]
  return value


class JsonTreeLoader:
  """
  Reads syntax tree dumps written next to the source files.
  """

  def __init__(self, suffix: str = DEFAULT_TREE_SUFFIX):
    """
    Args:
        suffix: Appended to the source file name to locate its dump.
    """
    self.suffix = suffix

  def dump_path(self, source: Path) -> Path:
    """Returns where the dump for `source` is expected."""
    return source.with_name(source.name + self.suffix)

  def __call__(self, source: Path) -> ParsedFile:
    """
    Loads the tree of one source file.

    Args:
        source: Path to the ``.pp`` file.

    Returns:
        ParsedFile: The decoded tree with its source text.

    Raises:
        DeptoolError: If the dump is missing or not valid JSON.
    """
    dump = self.dump_path(source)
    if not dump.is_file():
      raise DeptoolError(f"No syntax tree dump for {source} (expected {dump})")

    try:
      with open(dump, "r", encoding="utf-8") as f:
        content = json.load(f)
    except json.JSONDecodeError as e:
      raise DeptoolError(f"Corrupt syntax tree dump {dump}: {e}") from e

    if "tree" not in content:
      raise DeptoolError(f"Syntax tree dump {dump} has no 'tree' entry")

    return ParsedFile(path=source, source=content.get("source", ""), root=node_from_dict(content["tree"]))
