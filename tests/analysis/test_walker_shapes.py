"""
Tests for Walker Shape Handling.

Verifies:
1. Ambiguous literals/names are reported only when no branch claims them.
2. Unsupported sub-shapes inside recognised branches are fatal, with an excerpt.
3. Unknown node kinds are collected and traversed, not fatal.
"""

import pytest

from puppet_deptool.analysis.walker import ModuleWalker
from puppet_deptool.core.module import Module
from puppet_deptool.enums import Category
from puppet_deptool.errors import UnsupportedShapeError
from puppet_deptool.syntax.nodes import Node


@pytest.fixture
def module(tmp_path):
  return Module(tmp_path / "mod", name="mod")


def walk_source(context, module, parsed, source):
  return ModuleWalker(context, module).walk_file(parsed, source)


def test_bare_string_statement_is_unresolved(context, module, pp):
  """
  Scenario: a literal string used as a statement.
  Expectation: one unresolved warning naming the file and value.
  """
  unresolved = walk_source(context, module, pp.parsed(pp.program(pp.string("ntp"))), "init.pp")

  assert [n.value for n in unresolved] == ["ntp"]
  assert context.diagnostics.messages == ["Unresolved literal string in init.pp: 'ntp'"]
  assert context.diagnostics.warnings_encountered


def test_bare_name_statement_is_unresolved(context, module, pp):
  unresolved = walk_source(context, module, pp.parsed(pp.program(pp.name("ntp"))), "init.pp")

  assert len(unresolved) == 1
  assert "Unresolved qualified name in init.pp: 'ntp'" in context.diagnostics.messages


def test_claimed_tokens_are_not_reported(context, module, pp):
  """
  Scenario: include/resource titles/Class[] keys are all recognised.
  Expectation: nothing pending.
  """
  tree = pp.program(
    pp.call("include", pp.name("ntp")),
    pp.resource("file", "/tmp/x"),
    pp.resource("class", pp.name("apache")),
    pp.access(pp.ref("Class"), pp.string("mysql")),
  )
  unresolved = walk_source(context, module, pp.parsed(tree), "init.pp")

  assert unresolved == []
  assert not context.diagnostics.warnings_encountered


def test_inert_contexts_never_pend(context, module, pp):
  """
  Scenario: strings in hash keys, case labels, parameters and comparisons.
  """
  entry = pp.node("KeyedEntry", key=pp.string("k"), value=pp.name("v"))
  case = pp.node(
    "CaseExpression",
    test=pp.var("x"),
    options=[pp.node("CaseOption", values=[pp.string("a")], then_expr=pp.node("Nop"))],
  )
  comparison = pp.node("ComparisonExpression", operator="==", left_expr=pp.var("x"), right_expr=pp.string("y"))
  tree = pp.program(pp.node("LiteralHash", entries=[entry]), case, comparison)

  assert walk_source(context, module, pp.parsed(tree), "init.pp") == []


def test_unresolved_list_is_per_file(context, module, pp):
  walker = ModuleWalker(context, module)
  walker.walk_file(pp.parsed(pp.program(pp.string("one"))), "a.pp")
  walker.walk_file(pp.parsed(pp.program(pp.call("include", pp.name("two")))), "b.pp")

  assert walker.unresolved == []
  assert len(context.diagnostics.messages) == 1


def test_unsupported_resource_type_shape_is_fatal(context, module, pp):
  """
  Scenario: a resource whose type is a variable.
  Expectation: UnsupportedShapeError carrying file, kind and the source excerpt.
  """
  source = "$t { 'x': }"
  bad = Node(
    "ResourceExpression",
    {"type_name": pp.var("t"), "bodies": []},
    offset=0,
    length=len(source),
  )
  parsed = pp.parsed(pp.program(bad), source=source)

  with pytest.raises(UnsupportedShapeError) as excinfo:
    walk_source(context, module, parsed, "init.pp")

  err = excinfo.value
  assert err.kind == "ResourceExpression"
  assert err.file == "init.pp"
  assert err.excerpt == source
  assert "VariableExpression" in str(err)
  assert str(err).startswith("init.pp: ")


@pytest.mark.parametrize(
  "statement_factory",
  [
    lambda pp: pp.call("include", pp.node("LiteralInteger", value=3)),
    lambda pp: pp.node("CallNamedFunctionExpression", functor_expr=pp.var("f"), arguments=[]),
    lambda pp: pp.node("CallMethodExpression", functor_expr=pp.name("x"), arguments=[]),
    lambda pp: pp.node("VariableExpression", expr=pp.string("x")),
    lambda pp: pp.node("AccessExpression", left_expr=pp.string("abc"), keys=[]),
    lambda pp: pp.node("ResourceDefaultsExpression", type_ref=pp.name("file"), operations=[]),
    lambda pp: pp.node("AssignmentExpression", left_expr=pp.string("x"), right_expr=pp.string("y")),
    lambda pp: pp.resource("package", "x", pp.attr("provider", pp.node("LiteralInteger", value=1))),
  ],
)
def test_other_fatal_shapes(context, module, pp, statement_factory):
  with pytest.raises(UnsupportedShapeError):
    walk_source(context, module, pp.parsed(pp.program(statement_factory(pp))), "init.pp")


def test_unknown_kind_is_collected_and_traversed(context, module, pp):
  """
  Scenario: an unknown wrapper kind around an include.
  Expectation: kind recorded, child still processed.
  """
  wrapper = pp.node("ApplyExpression", body=pp.call("include", pp.name("ntp")))
  walk_source(context, module, pp.parsed(pp.program(wrapper)), "init.pp")

  assert context.unhandled_kinds == ["ApplyExpression"]
  assert "ntp" in module.dependencies[Category.CLASS]


def test_debug_trace(context, module, pp, caplog):
  caplog.set_level("DEBUG", logger="puppet_deptool.analysis.walker")
  walk_source(context, module, pp.parsed(pp.program(pp.call("include", pp.name("ntp")))), "init.pp")

  assert any("Found QualifiedName 'ntp'" in rec.getMessage() for rec in caplog.records)
