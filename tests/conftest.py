"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Console isolation so log output never leaks between tests.
- Builders for syntax trees and on-disk module trees (with JSON tree dumps).
"""

import io
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

# Add src to path so we can import 'puppet_deptool' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from rich.console import Console  # noqa: E402

from puppet_deptool.analysis.registry import ResolverContext  # noqa: E402
from puppet_deptool.syntax.nodes import Node, ParsedFile  # noqa: E402
from puppet_deptool.utils.console import console, reset_console, set_console  # noqa: E402


class TreeBuilder:
  """
  Builds syntax tree nodes shaped like the grammar engine's dumps.
  """

  def node(self, kind: str, **fields: Any) -> Node:
    return Node(kind, dict(fields))

  def program(self, *statements: Node) -> Node:
    return Node("Program", {"body": Node("BlockExpression", {"statements": list(statements)})})

  def name(self, value: str) -> Node:
    return Node("QualifiedName", {"value": value})

  def string(self, value: str) -> Node:
    return Node("LiteralString", {"value": value})

  def ref(self, value: str) -> Node:
    return Node("QualifiedReference", {"cased_value": value, "value": value.lower()})

  def var(self, name: str) -> Node:
    return Node("VariableExpression", {"expr": self.name(name)})

  def call(self, name: str, *arguments: Node) -> Node:
    return Node(
      "CallNamedFunctionExpression",
      {"functor_expr": self.name(name), "arguments": list(arguments), "rval_required": False},
    )

  def method(self, receiver: Node, name: str, *arguments: Node) -> Node:
    functor = Node("NamedAccessExpression", {"left_expr": receiver, "right_expr": self.name(name)})
    return Node("CallMethodExpression", {"functor_expr": functor, "arguments": list(arguments)})

  def klass(self, name: str, *body: Node, parameters=(), parent: Optional[str] = None) -> Node:
    return Node(
      "HostClassDefinition",
      {
        "name": name,
        "parameters": [Node("Parameter", {"name": p}) for p in parameters],
        "parent_class": parent,
        "body": Node("BlockExpression", {"statements": list(body)}),
      },
    )

  def define(self, name: str, *body: Node) -> Node:
    return Node(
      "ResourceTypeDefinition",
      {"name": name, "parameters": [], "body": Node("BlockExpression", {"statements": list(body)})},
    )

  def attr(self, name: str, value: Node) -> Node:
    return Node("AttributeOperation", {"attribute_name": name, "operator": "=>", "value_expr": value})

  def resource(self, type_name: str, title: Any, *operations: Node) -> Node:
    title_node = title if isinstance(title, Node) else self.string(title)
    body = Node("ResourceBody", {"title": title_node, "operations": list(operations)})
    return Node("ResourceExpression", {"form": "regular", "type_name": self.name(type_name), "bodies": [body]})

  def assign(self, name: str, value: Node) -> Node:
    return Node("AssignmentExpression", {"operator": "=", "left_expr": self.var(name), "right_expr": value})

  def access(self, left: Node, *keys: Node) -> Node:
    return Node("AccessExpression", {"left_expr": left, "keys": list(keys)})

  def parsed(self, root: Node, path: str = "manifests/init.pp", source: str = "") -> ParsedFile:
    return ParsedFile(path=Path(path), source=source, root=root)


def node_to_dict(node: Node) -> Dict[str, Any]:
  """Serializes a node the way the grammar engine dumps it."""

  def convert(value: Any) -> Any:
    if isinstance(value, Node):
      return node_to_dict(value)
    if isinstance(value, list):
      return [convert(item) for item in value]
    return value

  return {
    "kind": node.kind,
    "span": [node.offset, node.length],
    "fields": {name: convert(value) for name, value in node.fields.items()},
  }


class ModuleTreeFactory:
  """
  Writes module directories with ``.pp`` sources and their tree dumps.
  """

  def __init__(self, root: Path):
    self.root = root

  def module(
    self,
    name: str,
    manifests: Optional[Dict[str, Node]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    lib: Optional[Dict[str, str]] = None,
    parent: Optional[Path] = None,
    with_metadata: bool = True,
  ) -> Path:
    """
    Creates ``<parent>/<name>``.

    Args:
        name: Directory name.
        manifests: Relative ``.pp`` path -> Program node.
        metadata: metadata.json content. Defaults to ``{"name": "test-<name>"}``.
        lib: Relative path under ``lib/`` -> Ruby source.
        parent: Parent directory. Defaults to ``<root>/modules``.
        with_metadata: Write metadata.json at all.
    """
    base = (parent or self.root / "modules") / name
    base.mkdir(parents=True, exist_ok=True)
    (base / "manifests").mkdir(exist_ok=True)
    if with_metadata:
      content = metadata if metadata is not None else {"name": f"test-{name}", "version": "1.2.3"}
      (base / "metadata.json").write_text(json.dumps(content), encoding="utf-8")
    for relpath, tree in (manifests or {}).items():
      self.manifest(base / relpath, tree)
    for relpath, text in (lib or {}).items():
      target = base / "lib" / relpath
      target.parent.mkdir(parents=True, exist_ok=True)
      target.write_text(text, encoding="utf-8")
    return base

  def manifest(self, path: Path, tree: Node, source: str = "# generated\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding="utf-8")
    dump = {"source": source, "tree": node_to_dict(tree)}
    path.with_name(path.name + ".json").write_text(json.dumps(dump), encoding="utf-8")
    return path

  def control_repo(self, name: str = "control", manifests: Optional[Dict[str, Node]] = None) -> Path:
    """Creates a control repository with a Puppetfile and a ``site`` modulepath."""
    base = self.root / name
    base.mkdir(parents=True, exist_ok=True)
    (base / "Puppetfile").write_text("mod 'puppetlabs/stdlib'\n", encoding="utf-8")
    (base / "environment.conf").write_text("modulepath = site:modules:$basemodulepath\n", encoding="utf-8")
    (base / "site").mkdir(exist_ok=True)
    (base / "modules").mkdir(exist_ok=True)
    for relpath, tree in (manifests or {}).items():
      self.manifest(base / relpath, tree)
    return base


@pytest.fixture
def pp() -> TreeBuilder:
  """Syntax tree builder."""
  return TreeBuilder()


@pytest.fixture
def trees(tmp_path) -> ModuleTreeFactory:
  """On-disk module tree factory rooted at tmp_path."""
  return ModuleTreeFactory(tmp_path)


@pytest.fixture
def context() -> ResolverContext:
  """A fresh, isolated run context."""
  return ResolverContext()


@pytest.fixture(autouse=True)
def isolate_console():
  """
  Routes all logging into an in-memory console for the duration of a test.
  """
  buffer = io.StringIO()
  console.set_level(logging.INFO)
  set_console(Console(file=buffer, width=200, record=True))
  yield buffer
  reset_console()
