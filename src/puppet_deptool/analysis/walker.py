"""
Puppet Syntax Tree Walker.

This module provides the ``ModuleWalker``, which turns the parsed tree of one
Puppet file into facts about the module being scanned:

1.  **Definitions** (classes, defined types, functions, type aliases, class
    variables) go into the global registry, owned by the module.
2.  **Dependencies** (included classes, declared resource types, called
    functions, type references, providers, qualified variables) go into the
    module's local dependency table, keyed by the referencing file.
3.  **Inheritance** edges (``class child inherits parent``) are recorded on
    the context and resolved later.

Traversal is depth-first and pre-order, keeping the chain of ancestors. Each
node kind is handled by a ``visit_<Kind>`` method; kinds with no handler are
either structurally inert (listed in ``INERT_KINDS``) or unknown, in which
case they are collected for a summary and traversal continues into them.

Ambiguous tokens
----------------
A bare ``LiteralString`` or ``QualifiedName`` may or may not name a symbol.
Branches that understand a token's role (an ``include`` argument, a resource
title, a ``Class['x']`` key ...) mark it as used before it is visited. A token
visited unmarked and outside an inert context is pending, and every pending
token left at the end of the file is reported as unresolved.

Unsupported shapes
------------------
The walker supports a known subset of the grammar. A node shape inside a
recognised branch that falls outside that subset raises
``UnsupportedShapeError`` with the offending source excerpt; the run aborts.
"""

import logging
import re
from typing import Iterable, List, Optional

from puppet_deptool.analysis.registry import ResolverContext
from puppet_deptool.core.module import Module
from puppet_deptool.enums import Category
from puppet_deptool.errors import UnsupportedShapeError
from puppet_deptool.syntax.nodes import Node, ParsedFile, find_ancestor

logger = logging.getLogger(__name__)

# Kinds understood by the walker that carry no facts of their own.
INERT_KINDS = frozenset(
  {
    "AndExpression",
    "ArithmeticExpression",
    "AttributesOperation",
    "BlockExpression",
    "BreakExpression",
    "CaseExpression",
    "CaseOption",
    "CollectExpression",
    "ComparisonExpression",
    "ConcatenatedString",
    "ExportedQuery",
    "HeredocExpression",
    "IfExpression",
    "InExpression",
    "KeyedEntry",
    "LambdaExpression",
    "LiteralBoolean",
    "LiteralDefault",
    "LiteralFloat",
    "LiteralHash",
    "LiteralInteger",
    "LiteralList",
    "LiteralRegularExpression",
    "LiteralUndef",
    "MatchExpression",
    "NamedAccessExpression",
    "NextExpression",
    "NodeDefinition",
    "Nop",
    "NotExpression",
    "OrExpression",
    "Parameter",
    "ParenthesizedExpression",
    "Program",
    "RelationshipExpression",
    "ResourceBody",
    "ResourceOverrideExpression",
    "ReturnExpression",
    "SelectorEntry",
    "SelectorExpression",
    "SubLocatedExpression",
    "TextExpression",
    "UnaryMinusExpression",
    "UnfoldExpression",
    "UnlessExpression",
    "VirtualQuery",
  }
)

# Ancestors below which a literal string is data, never a symbol.
LITERAL_STRING_INERT_CONTEXTS = frozenset(
  {
    "AccessExpression",
    "AssignmentExpression",
    "AttributeOperation",
    "CallMethodExpression",
    "CallNamedFunctionExpression",
    "CaseOption",
    "ComparisonExpression",
    "ConcatenatedString",
    "FunctionDefinition",
    "IfExpression",
    "InExpression",
    "KeyedEntry",
    "LambdaExpression",
    "LiteralList",
    "MatchExpression",
    "NamedAccessExpression",
    "NodeDefinition",
    "Parameter",
    "ReturnExpression",
    "SelectorEntry",
    "SubLocatedExpression",
    "UnlessExpression",
  }
)

# Ancestors below which a bare word is data, never a symbol.
QUALIFIED_NAME_INERT_CONTEXTS = frozenset(
  {
    "AttributeOperation",
    "CallNamedFunctionExpression",
    "CaseOption",
    "CollectExpression",
    "KeyedEntry",
    "NodeDefinition",
    "Parameter",
    "SelectorEntry",
  }
)

RESOURCE_LIKE_KINDS = (
  "CollectExpression",
  "ResourceDefaultsExpression",
  "ResourceExpression",
  "ResourceOverrideExpression",
)

# Functions whose literal arguments are class names.
CLASS_INCLUDING_FUNCTIONS = frozenset({"include", "require", "contain"})
# Functions whose first argument is a resource type name.
RESOURCE_CREATING_FUNCTIONS = frozenset({"create_resources", "ensure_resource"})

SYMBOL_KINDS = ("LiteralString", "QualifiedName")
QUALIFIED_VARIABLE_RE = re.compile(r"\w::")


class ModuleWalker:
  """
  Emits definition and dependency facts for the files of one module.

  Attributes:
      context: Shared registry, diagnostics and inheritance edges.
      module: The module being scanned; receives dependency facts.
      unresolved: Ambiguous tokens left pending by the last walked file.
  """

  def __init__(self, context: ResolverContext, module: Module):
    self.context = context
    self.module = module
    self.unresolved: List[Node] = []
    self._parsed: Optional[ParsedFile] = None
    self._source = ""
    self._pending: List[Node] = []

  # --- Entry point ---

  def walk_file(self, parsed: ParsedFile, source: Optional[str] = None) -> List[Node]:
    """
    Walks one parsed file.

    Args:
        parsed: The file's syntax tree.
        source: Name recorded as the referencing file of dependencies.
            Defaults to the parsed path.

    Returns:
        List[Node]: Tokens whose role could not be determined (also reported
        as warnings).

    Raises:
        UnsupportedShapeError: On a node shape outside the supported subset.
    """
    self._parsed = parsed
    self._source = source or str(parsed.path)
    self._pending = []
    logger.debug("Parsing %s", self._source)

    self._visit(parsed.root, [])

    self.unresolved = [node for node in self._pending if not node.used]
    for node in self.unresolved:
      label = "literal string" if node.kind == "LiteralString" else "qualified name"
      self.context.diagnostics.warn(f"Unresolved {label} in {self._source}: '{node.value}'")
    return self.unresolved

  def _visit(self, node: Node, parents: List[Node]) -> None:
    if logger.isEnabledFor(logging.DEBUG):
      detail = f" '{node.value}'" if node.value is not None else ""
      logger.debug("%sFound %s%s", "  " * len(parents), node.kind, detail)

    handler = getattr(self, f"visit_{node.kind}", None)
    if handler is not None:
      handler(node, parents)
    elif node.kind not in INERT_KINDS:
      self.context.unhandled_kinds.append(node.kind)

    parents.append(node)
    try:
      for child in node.children():
        self._visit(child, parents)
    finally:
      parents.pop()

  # --- Fact helpers ---

  def _define(self, category: Category, name: str, allow_duplicate: bool = False) -> None:
    self.context.registry.add_definition(category, name, self.module.name, allow_duplicate)

  def _depend(self, category: Category, name: str) -> None:
    logger.debug("Adding %s dependency %s from %s", category.value, name, self._source)
    self.module.add_dependency(category, name, self._source)

  def _claim(self, node: Node) -> None:
    """Marks an ambiguous token as understood."""
    node.used = True

  def _track(self, node: Node, parents: List[Node], inert_contexts: Iterable[str]) -> None:
    if node.used:
      return
    if any(parent.kind in inert_contexts for parent in parents):
      return
    self._pending.append(node)

  def _unsupported(self, node: Node, message: str) -> UnsupportedShapeError:
    excerpt = self._parsed.excerpt(node) if self._parsed else ""
    return UnsupportedShapeError(message, kind=node.kind, file=self._source, excerpt=excerpt)

  def _enclosing_class(self, parents: List[Node]) -> Optional[str]:
    host = find_ancestor(parents, "HostClassDefinition")
    if host is None:
      return None
    return _strip_top(host.get("name", "")).lower()

  # --- Ambiguous tokens ---

  def visit_LiteralString(self, node: Node, parents: List[Node]) -> None:
    self._track(node, parents, LITERAL_STRING_INERT_CONTEXTS)

  def visit_QualifiedName(self, node: Node, parents: List[Node]) -> None:
    self._track(node, parents, QUALIFIED_NAME_INERT_CONTEXTS)

  # --- Definitions ---

  def visit_HostClassDefinition(self, node: Node, parents: List[Node]) -> None:
    """Registers the class, its parameters as class variables, and its parent."""
    name = _strip_top(node.get("name", "")).lower()
    self._define(Category.CLASS, name)

    for parameter in node.get("parameters") or []:
      if not isinstance(parameter, Node) or parameter.kind != "Parameter":
        raise self._unsupported(node, f"Unknown HostClassDefinition parameter {_kind_of(parameter)}")
      self._define(Category.VARIABLE, f"{name}::{str(parameter.get('name', '')).lower()}")

    parent_class = node.get("parent_class")
    if parent_class:
      logger.debug("%s inherits %s", name, parent_class)
      self.context.inherits[name] = _strip_top(parent_class).lower()

  def visit_ResourceTypeDefinition(self, node: Node, parents: List[Node]) -> None:
    self._define(Category.DEFINED_TYPE, _strip_top(node.get("name", "")).lower())

  def visit_FunctionDefinition(self, node: Node, parents: List[Node]) -> None:
    self._define(Category.FUNCTION, _strip_top(node.get("name", "")).lower())

  def visit_TypeAlias(self, node: Node, parents: List[Node]) -> None:
    self._define(Category.TYPE_ALIAS, _strip_top(node.get("name", "")).lower())

  def visit_AssignmentExpression(self, node: Node, parents: List[Node]) -> None:
    """
    Handles ``$var = value``. Inside a class body the variable becomes
    ``class::var``; reassignment is allowed without a duplicate warning.
    """
    left = node.get("left_expr")
    if isinstance(left, Node) and left.kind == "LiteralList":
      targets = left.get("values") or []
    else:
      targets = [left]

    for target in targets:
      if not isinstance(target, Node) or target.kind != "VariableExpression":
        raise self._unsupported(node, f"Unknown AssignmentExpression left_expr {_kind_of(target)}")
      expr = target.get("expr")
      if not isinstance(expr, Node) or expr.kind != "QualifiedName":
        raise self._unsupported(node, f"Unknown VariableExpression expr {_kind_of(expr)}")

      self._claim(expr)
      class_name = self._enclosing_class(parents)
      if class_name:
        self._define(Category.VARIABLE, f"{class_name}::{expr.value}", allow_duplicate=True)

  # --- Dependencies ---

  def visit_QualifiedReference(self, node: Node, parents: List[Node]) -> None:
    self._depend(Category.DATA_TYPE, str(node.value).lower())

  def visit_VariableExpression(self, node: Node, parents: List[Node]) -> None:
    expr = node.get("expr")
    if isinstance(expr, Node) and expr.kind == "QualifiedName":
      self._claim(expr)
      if QUALIFIED_VARIABLE_RE.search(expr.value):
        self._depend(Category.VARIABLE, expr.value)
    elif isinstance(expr, Node) and expr.kind == "LiteralInteger":
      # Regex capture variables ($0, $1 ...)
      pass
    else:
      raise self._unsupported(node, f"Unknown VariableExpression expr {_kind_of(expr)}")

  def visit_ResourceDefaultsExpression(self, node: Node, parents: List[Node]) -> None:
    type_ref = node.get("type_ref")
    if not isinstance(type_ref, Node) or type_ref.kind != "QualifiedReference":
      raise self._unsupported(node, f"Unknown ResourceDefaultsExpression type_ref {_kind_of(type_ref)}")

  def visit_ResourceExpression(self, node: Node, parents: List[Node]) -> None:
    """
    Handles ``type { 'title': ... }``. The type is a resource type dependency;
    for ``class { 'name': }`` every literal title is a class dependency.
    """
    type_name = node.get("type_name")
    is_class = False
    if isinstance(type_name, Node) and type_name.kind == "QualifiedName":
      self._claim(type_name)
      is_class = type_name.value == "class"
      if not is_class:
        self._depend(Category.RESOURCE_TYPE, type_name.value)
    elif not (isinstance(type_name, Node) and type_name.kind == "AccessExpression"):
      raise self._unsupported(node, f"Unknown ResourceExpression type_name {_kind_of(type_name)}")

    for body in node.get("bodies") or []:
      title = body.get("title") if isinstance(body, Node) else None
      if not isinstance(title, Node):
        continue
      titles = title.get("values") or [] if title.kind == "LiteralList" else [title]
      for entry in titles:
        if isinstance(entry, Node) and entry.kind in SYMBOL_KINDS:
          self._claim(entry)
          if is_class:
            self._depend(Category.CLASS, _strip_top(entry.value).lower())

  def visit_CallMethodExpression(self, node: Node, parents: List[Node]) -> None:
    functor = node.get("functor_expr")
    if not isinstance(functor, Node) or functor.kind != "NamedAccessExpression":
      raise self._unsupported(node, f"Unknown CallMethodExpression functor_expr {_kind_of(functor)}")
    right = functor.get("right_expr")
    if not isinstance(right, Node) or right.kind != "QualifiedName":
      raise self._unsupported(node, f"Unknown NamedAccessExpression right_expr {_kind_of(right)}")
    self._claim(right)
    self._depend(Category.FUNCTION, right.value)

  def visit_CallNamedFunctionExpression(self, node: Node, parents: List[Node]) -> None:
    """
    Handles ``name(args)`` and statement calls such as ``include foo``.
    """
    functor = node.get("functor_expr")
    arguments = node.get("arguments") or []

    if isinstance(functor, Node) and functor.kind == "QualifiedReference":
      # Type conversion, e.g. Integer($x); the reference itself is visited.
      return
    if not isinstance(functor, Node) or functor.kind != "QualifiedName":
      raise self._unsupported(node, f"Unknown CallNamedFunctionExpression functor_expr {_kind_of(functor)}")

    name = functor.value
    self._claim(functor)
    self._depend(Category.FUNCTION, name)

    if name in RESOURCE_CREATING_FUNCTIONS and arguments:
      self._resource_type_argument(node, arguments[0])

    if name in CLASS_INCLUDING_FUNCTIONS:
      for argument in arguments:
        self._class_argument(node, argument)

  def _resource_type_argument(self, call: Node, argument: Node) -> None:
    if not isinstance(argument, Node):
      raise self._unsupported(call, f"Unknown create_resources/ensure_resource argument {_kind_of(argument)}")
    if argument.kind in SYMBOL_KINDS:
      self._claim(argument)
      self._depend(Category.RESOURCE_TYPE, _strip_top(argument.value).lower())
    elif argument.kind not in ("AccessExpression", "ConcatenatedString", "VariableExpression"):
      raise self._unsupported(call, f"Unknown create_resources/ensure_resource argument {argument.kind}")

  def _class_argument(self, call: Node, argument: Node) -> None:
    if not isinstance(argument, Node):
      raise self._unsupported(call, f"Unknown include/require/contain arg {_kind_of(argument)}")
    if argument.kind in SYMBOL_KINDS:
      self._claim(argument)
      self._depend(Category.CLASS, _strip_top(argument.value).lower())
    elif argument.kind == "LiteralList":
      for entry in argument.get("values") or []:
        if isinstance(entry, Node) and entry.kind in SYMBOL_KINDS:
          self._claim(entry)
          self._depend(Category.CLASS, _strip_top(entry.value).lower())
    elif argument.kind not in ("AccessExpression", "ConcatenatedString", "QualifiedReference", "VariableExpression"):
      raise self._unsupported(call, f"Unknown include/require/contain arg {argument.kind}")

  def visit_AccessExpression(self, node: Node, parents: List[Node]) -> None:
    """
    Handles ``Class['x']`` and ``Resource['x']`` lookups, and keys of
    variable access such as ``$facts['os']``.
    """
    left = node.get("left_expr")
    if not isinstance(left, Node):
      raise self._unsupported(node, f"Unknown AccessExpression left_expr {_kind_of(left)}")

    if left.kind in ("QualifiedReference", "VariableExpression"):
      lookup = str(left.value).lower() if left.kind == "QualifiedReference" else None
      for key in node.get("keys") or []:
        if not isinstance(key, Node) or key.kind not in SYMBOL_KINDS:
          continue
        self._claim(key)
        if lookup == "class":
          self._depend(Category.CLASS, _strip_top(key.value).lower())
        elif lookup == "resource":
          self._depend(Category.RESOURCE_TYPE, _strip_top(key.value).lower())
    elif left.kind not in ("AccessExpression", "CallMethodExpression", "CallNamedFunctionExpression"):
      raise self._unsupported(node, f"Unknown AccessExpression left_expr {left.kind}")

  def visit_AttributeOperation(self, node: Node, parents: List[Node]) -> None:
    """
    A ``provider => x`` attribute depends on provider ``<type>/x`` of the
    nearest enclosing resource-like expression.
    """
    if node.get("attribute_name") != "provider":
      return

    resource = find_ancestor(parents, *RESOURCE_LIKE_KINDS)
    if resource is None:
      self.context.diagnostics.warn(f"Failed to find parent resource for provider attribute in {self._source}")
      return

    if resource.kind == "ResourceExpression":
      type_result = resource.get("type_name")
    elif resource.kind == "CollectExpression":
      type_result = resource.get("type_expr")
    elif resource.kind == "ResourceDefaultsExpression":
      type_result = resource.get("type_ref")
    else:
      resources = resource.get("resources")
      type_result = resources.get("left_expr") if isinstance(resources, Node) else None

    if isinstance(type_result, Node) and type_result.kind in ("QualifiedName", "QualifiedReference"):
      value = node.get("value_expr")
      if isinstance(value, Node) and value.kind in ("QualifiedName", "LiteralString"):
        self._depend(Category.PROVIDER, f"{str(type_result.value).lower()}/{value.value}")
      elif not (isinstance(value, Node) and value.kind == "VariableExpression"):
        raise self._unsupported(node, f"Unknown AttributeOperation value_expr {_kind_of(value)}")
    elif not (isinstance(type_result, Node) and type_result.kind == "AccessExpression"):
      raise self._unsupported(resource, f"Unknown provider parent model {_kind_of(type_result)}")


def _strip_top(name: str) -> str:
  name = str(name)
  return name[2:] if name.startswith("::") else name


def _kind_of(value: object) -> str:
  if isinstance(value, Node):
    return value.kind
  return type(value).__name__
