import dataclasses

import pytest

import stepwise
from stepwise import ast_nodes, ir
from stepwise.errors import BuildError


SOURCE = """
workflow Pipeline v1.2 {
    step Fetch {
        $raw = call fetch($url)
        log("fetched")
    }
    step Process {
        for line in $raw.split("\\n") {
            if line != "" {
                $out = call summarize(line)
                store($out)
            }
        }
        $count = call fetch($url)
    }
} @@data-team
"""


def test_ast_to_ir_builds_frozen_model():
    workflow = stepwise.parse(SOURCE)
    assert isinstance(workflow, ir.Workflow)
    assert workflow.name == "Pipeline"
    assert workflow.version == "v1.2"
    assert workflow.author == "data-team"
    assert workflow.sticky is False
    assert isinstance(workflow.steps, tuple)
    fetch = workflow.steps[0]
    assert fetch.body[0] == ir.RegisterAssignment(
        register="raw",
        value=ir.Call(kind=ir.CallKind.FUNCTION, name="fetch", params=(ir.RegisterReference("url"),)),
    )
    assert fetch.body[1] == ir.Action(ir.Call(kind=ir.CallKind.COMMAND, name="log", params=(ir.StringLiteral("fetched"),)))
    with pytest.raises(dataclasses.FrozenInstanceError):
        workflow.name = "Other"


def test_nested_statements_are_typed():
    workflow = stepwise.parse(SOURCE)
    loop = workflow.step("Process").body[0]
    assert isinstance(loop, ir.ForLoop)
    assert loop.var_name == "line"
    assert loop.iterable == ir.SplitExpression(source=ir.RegisterReference("raw"), delimiter="\\n")
    cond = loop.body[0]
    assert isinstance(cond, ir.Condition)
    assert cond.guard == ir.Comparison(
        left=ir.Identifier("line"), op=ir.ComparisonOperator.NE, right=ir.StringLiteral("")
    )
    assert len(cond.body) == 2


def test_function_and_command_names_are_ordered_and_unique():
    workflow = stepwise.parse(SOURCE)
    assert workflow.function_names() == ["fetch", "summarize"]
    assert workflow.command_names() == ["log", "store"]


def test_step_lookup():
    workflow = stepwise.parse(SOURCE)
    assert workflow.step("Fetch") is workflow.steps[0]
    assert workflow.step("Missing") is None


def test_parse_twice_builds_equal_models():
    assert stepwise.parse(SOURCE) == stepwise.parse(SOURCE)


def test_range_bounds_keep_literal_identifiers():
    workflow = stepwise.parse("workflow W v1 { step S { for i in 1..n { go(i) } } }")
    rng = workflow.steps[0].body[0].iterable
    assert rng == ir.RangeExpression(start=ir.Identifier("1"), end=ir.Identifier("n"))
    assert rng.start.is_literal is True
    assert rng.end.is_literal is False


def test_parse_file_reads_utf8(tmp_path):
    path = tmp_path / "flow.wf"
    path.write_text('workflow W v1 { step S { $greeting = "héllo" } }', encoding="utf-8")
    workflow = stepwise.parse_file(path)
    assert workflow.steps[0].body[0].value == ir.StringLiteral("héllo")


def _decl(statements, **kwargs):
    defaults = dict(name="W", version="v1", steps=[ast_nodes.StepDecl(name="S", statements=statements)])
    defaults.update(kwargs)
    return ast_nodes.WorkflowDecl(**defaults)


def _go():
    return ast_nodes.ActionStatement(call=ast_nodes.CallExpr(name="go"))


def test_builder_rejects_command_assignment():
    stmt = ast_nodes.RegisterAssignStatement(
        register="a",
        value=ast_nodes.CallExpr(name="go", external=False),
        span=ast_nodes.Span(line=4, column=9),
    )
    with pytest.raises(BuildError) as excinfo:
        ir.ast_to_ir(_decl([stmt]))
    assert excinfo.value.line == 4
    assert excinfo.value.code == "SW-1101"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "bad name"},
        {"version": "1.0"},
        {"author": "has space"},
        {"steps": []},
    ],
)
def test_builder_rejects_malformed_workflow_fields(overrides):
    with pytest.raises(BuildError):
        ir.ast_to_ir(_decl([_go()], **overrides))


def test_builder_rejects_empty_step():
    with pytest.raises(BuildError):
        ir.ast_to_ir(_decl([]))


def test_builder_rejects_negative_integer():
    stmt = ast_nodes.RegisterAssignStatement(register="a", value=ast_nodes.Literal(kind="number", value=-1))
    with pytest.raises(BuildError):
        ir.ast_to_ir(_decl([stmt]))


def test_builder_rejects_integer_split_source():
    loop = ast_nodes.ForStatement(
        var_name="x",
        iterable=ast_nodes.SplitExpr(source=ast_nodes.Literal(kind="number", value=3), delimiter=","),
    )
    with pytest.raises(BuildError):
        ir.ast_to_ir(_decl([loop]))


def test_builder_rejects_non_workflow():
    with pytest.raises(BuildError):
        ir.ast_to_ir(ast_nodes.StepDecl(name="S"))


def test_builder_rejects_keyword_identifier_with_location():
    stmt = ast_nodes.ActionStatement(
        call=ast_nodes.CallExpr(
            name="go",
            args=[ast_nodes.Identifier(name="sticky", span=ast_nodes.Span(line=3, column=12))],
        )
    )
    with pytest.raises(BuildError) as excinfo:
        ir.ast_to_ir(_decl([stmt]))
    assert excinfo.value.line == 3
    assert excinfo.value.column == 12
