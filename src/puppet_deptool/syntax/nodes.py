"""
Generic Syntax Tree Model.

Puppet source is parsed by an external grammar engine; this package only ever
sees the resulting tree through the small interface defined here:

1.  A **kind tag** naming the model class (e.g. ``ResourceExpression``).
2.  **Fields**: kind-specific attributes in model order. Values are scalars,
    child `Node` objects, or lists of child nodes.
3.  A **source span** (offset, length) into the file text.
4.  A **used marker**, set when a walker branch has recognised the meaning
    of a literal or bare name (see `puppet_deptool.analysis.walker`).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional


@dataclass(eq=False)
class Node:
  """
  One node of a parsed Puppet syntax tree.

  Nodes compare by identity; two structurally equal literals at different
  places in a file are different nodes.
  """

  kind: str
  fields: Dict[str, Any] = field(default_factory=dict)
  offset: int = 0
  length: int = 0
  used: bool = False

  def get(self, name: str, default: Any = None) -> Any:
    """
    Returns a kind-specific field.

    Args:
        name: Field name (e.g. ``type_name``).
        default: Value returned when the field is absent.
    """
    return self.fields.get(name, default)

  @property
  def value(self) -> Any:
    """Shortcut for the ``value`` field carried by literals and names."""
    return self.fields.get("value")

  def is_a(self, *kinds: str) -> bool:
    """True if this node's kind is one of `kinds`."""
    return self.kind in kinds

  def children(self) -> Iterator["Node"]:
    """
    Yields child nodes in field order.

    Scalar fields are skipped; list fields contribute each node element.
    """
    for value in self.fields.values():
      if isinstance(value, Node):
        yield value
      elif isinstance(value, list):
        for item in value:
          if isinstance(item, Node):
            yield item

  def __repr__(self) -> str:
    if self.value is not None:
      return f"<{self.kind} {self.value!r}>"
    return f"<{self.kind}>"


@dataclass
class ParsedFile:
  """
  The grammar engine's output for one source file.

  Attributes:
      path: Location of the ``.pp`` file on disk.
      source: Full text of the file, used for error excerpts.
      root: The ``Program`` node.
  """

  path: Path
  source: str
  root: Node

  def excerpt(self, node: Node) -> str:
    """
    Returns the source text covered by `node`.

    Args:
        node: Any node of this file.

    Returns:
        str: The covered text, or an empty string if the span is unknown.
    """
    if node.length <= 0:
      return ""
    return self.source[node.offset : node.offset + node.length]


def find_ancestor(parents: List[Node], *kinds: str) -> Optional[Node]:
  """
  Finds the nearest ancestor of one of the given kinds.

  Args:
      parents: The ancestor chain, outermost first.
      *kinds: Acceptable kind tags.

  Returns:
      The closest matching ancestor, or None.
  """
  for parent in reversed(parents):
    if parent.is_a(*kinds):
      return parent
  return None
