import sys

import pytest

from stepwise import ast_nodes
from stepwise.errors import ParseError
from stepwise.parser import parse_source


PROCESS_SOURCE = """
workflow MyProcess v0.1 {
    step Initialize {
        $R1 = ""
        $R2 = "Summarize the following text"
    }
    step Inference {
        $R1 = call inference($R2)
    }
} @@ops.team sticky
"""


def test_parse_workflow_header_and_tags():
    tree = parse_source(PROCESS_SOURCE)
    assert isinstance(tree, ast_nodes.WorkflowDecl)
    assert tree.name == "MyProcess"
    assert tree.version == "v0.1"
    assert tree.author == "ops.team"
    assert tree.sticky is True
    assert [step.name for step in tree.steps] == ["Initialize", "Inference"]


def test_tags_are_optional():
    tree = parse_source("workflow W v1 { step S { noop() } }")
    assert tree.author is None
    assert tree.sticky is False


def test_sticky_without_author():
    tree = parse_source("workflow W v1 { step S { noop() } } sticky")
    assert tree.author is None
    assert tree.sticky is True


def test_whole_workflow_on_one_line_with_tabs_and_crlf():
    source = "workflow\tW v2.0 {\r\n step S {\t$a = 1 $b = $a }\r\n}"
    tree = parse_source(source)
    assignments = tree.steps[0].statements
    assert [stmt.register for stmt in assignments] == ["a", "b"]
    assert isinstance(assignments[1].value, ast_nodes.RegisterRef)


def test_assignment_from_external_call():
    tree = parse_source(PROCESS_SOURCE)
    stmt = tree.steps[1].statements[0]
    assert isinstance(stmt, ast_nodes.RegisterAssignStatement)
    assert isinstance(stmt.value, ast_nodes.CallExpr)
    assert stmt.value.external is True
    assert stmt.value.name == "inference"
    assert stmt.value.args[0].name == "R2"


def test_actions_with_mixed_params():
    tree = parse_source('workflow W v1 { step S { notify($x, "hi", 42, true, user) call log() } }')
    command, function = tree.steps[0].statements
    assert isinstance(command, ast_nodes.ActionStatement)
    assert command.call.external is False
    kinds = [type(arg).__name__ for arg in command.call.args]
    assert kinds == ["RegisterRef", "Literal", "Literal", "Literal", "Identifier"]
    assert [arg.value for arg in command.call.args[1:4]] == ["hi", 42, True]
    assert function.call.external is True
    assert function.call.args == []


def test_if_with_comparison_and_empty_body():
    tree = parse_source("workflow W v1 { step S { if $n >= 3 { } } }")
    cond = tree.steps[0].statements[0]
    assert isinstance(cond, ast_nodes.IfStatement)
    assert isinstance(cond.condition, ast_nodes.ComparisonExpr)
    assert cond.condition.op == ">="
    assert cond.body == []


def test_if_guard_prefers_range_over_simple_expression():
    tree = parse_source("workflow W v1 { step S { if low..high { go() } } }")
    guard = tree.steps[0].statements[0].condition
    assert isinstance(guard, ast_nodes.RangeExpr)
    assert (guard.start.name, guard.end.name) == ("low", "high")


def test_bare_guard():
    tree = parse_source("workflow W v1 { step S { if ready { go() } } }")
    guard = tree.steps[0].statements[0].condition
    assert isinstance(guard, ast_nodes.Identifier)
    assert guard.name == "ready"


def test_for_over_split_and_range():
    source = """
    workflow W v1 {
        step S {
            for item in $list.split(",") {
                for i in 1..3 {
                    handle(item, i)
                }
            }
            for word in "a b".split(" ") { }
        }
    }
    """
    tree = parse_source(source)
    outer, words = tree.steps[0].statements
    assert isinstance(outer.iterable, ast_nodes.SplitExpr)
    assert outer.iterable.delimiter == ","
    assert isinstance(outer.iterable.source, ast_nodes.RegisterRef)
    inner = outer.body[0]
    assert isinstance(inner.iterable, ast_nodes.RangeExpr)
    assert (inner.iterable.start.name, inner.iterable.end.name) == ("1", "3")
    assert words.iterable.source.value == "a b"


def test_statement_spans_point_at_source():
    tree = parse_source("workflow W v1 {\n  step S {\n    go()\n  }\n}")
    stmt = tree.steps[0].statements[0]
    assert (stmt.span.line, stmt.span.column) == (3, 5)


def test_missing_version_reports_expected():
    with pytest.raises(ParseError) as excinfo:
        parse_source("workflow W { step S { go() } }")
    err = excinfo.value
    assert err.expected == ("version",)
    assert err.position == 11
    assert (err.line, err.column) == (1, 12)


def test_workflow_needs_a_step():
    with pytest.raises(ParseError) as excinfo:
        parse_source("workflow W v1 { }")
    assert "at least one step" in excinfo.value.message
    assert excinfo.value.expected == ("'step'",)


def test_step_needs_a_statement():
    with pytest.raises(ParseError) as excinfo:
        parse_source("workflow W v1 { step S { } }")
    assert "at least one statement" in excinfo.value.message


def test_author_must_precede_sticky():
    with pytest.raises(ParseError) as excinfo:
        parse_source("workflow W v1 { step S { go() } } sticky @@me")
    assert "before 'sticky'" in excinfo.value.message


def test_trailing_input_lists_what_could_follow():
    with pytest.raises(ParseError) as excinfo:
        parse_source("workflow W v1 { step S { go() } } extra")
    assert excinfo.value.expected == ("'@@' author tag", "'sticky'", "end of input")


def test_missing_comma_between_params():
    with pytest.raises(ParseError) as excinfo:
        parse_source("workflow W v1 { step S { go(1 2) } }")
    assert excinfo.value.expected == ("','", "')'")
    assert "found '2'" in excinfo.value.message


def test_unclosed_step_reports_end_of_input():
    with pytest.raises(ParseError) as excinfo:
        parse_source("workflow W v1 { step S { go()")
    assert "found end of input" in excinfo.value.message


def test_command_cannot_be_assigned():
    with pytest.raises(ParseError):
        parse_source("workflow W v1 { step S { $a = go() } }")


def test_for_requires_split_or_range():
    with pytest.raises(ParseError):
        parse_source("workflow W v1 { step S { for x in 5 { } } }")


@pytest.mark.skipif(not hasattr(sys, "get_int_max_str_digits"), reason="no integer string conversion limit")
def test_integer_literal_too_long_to_convert():
    source = "workflow W v1 { step S { $a = " + "9" * 5000 + " } }"
    with pytest.raises(ParseError) as excinfo:
        parse_source(source)
    err = excinfo.value
    assert err.expected == ("NUMBER",)
    assert err.position == 30
    assert err.message == "Integer literal is too long, found '" + "9" * 37 + "...'"
