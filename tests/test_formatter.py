import pytest

import stepwise
from stepwise import ir
from stepwise.errors import BuildError, RenderError
from stepwise.formatter import format_source, render_workflow


MESSY = """workflow   Messy v1.0{step First{$a="x" if $a=="x"{go($a,1,true)} for i in 1..3{ } }
step Second { for part in $a.split(",") { $b = call join(part, "say \\"hi\\"") } }}@@me sticky"""


CANONICAL = """workflow Messy v1.0 {
    step First {
        $a = "x"
        if $a == "x" {
            go($a, 1, true)
        }
        for i in 1..3 {
        }
    }
    step Second {
        for part in $a.split(",") {
            $b = call join(part, "say \\"hi\\"")
        }
    }
} @@me sticky
"""


def test_format_source_produces_canonical_text():
    assert format_source(MESSY) == CANONICAL


def test_format_is_idempotent():
    once = format_source(MESSY)
    assert format_source(once) == once


def test_render_round_trips_through_parser():
    workflow = stepwise.parse(MESSY)
    assert stepwise.parse(render_workflow(workflow)) == workflow


def test_escaped_quote_survives_round_trip():
    workflow = stepwise.parse(MESSY)
    value = workflow.step("Second").body[0].body[0].value.params[1].value
    assert value == 'say "hi"'


def test_render_without_tags():
    text = render_workflow(stepwise.parse("workflow W v1 { step S { go() } }"))
    assert text.splitlines()[-1] == "}"


def test_format_source_propagates_parse_errors():
    with pytest.raises(stepwise.ParseError):
        format_source("workflow W { }")


def _command(name, *params):
    return ir.Action(ir.Call(ir.CallKind.COMMAND, name, tuple(params)))


def _workflow(*body, **kwargs):
    return ir.Workflow(name="W", version="v1", steps=(ir.Step("S", tuple(body)),), **kwargs)


BUILT = [
    _workflow(ir.ForLoop("i", ir.RangeExpression(ir.Identifier("1"), ir.Identifier("v1")))),
    _workflow(ir.RegisterAssignment("1", ir.StringLiteral("x")), _command("go", ir.RegisterReference("1"))),
    _workflow(ir.RegisterAssignment("step", ir.RegisterReference("in"))),
    _workflow(_command("go", ir.Identifier("v1"), ir.IntegerLiteral(0), ir.BooleanLiteral(False))),
    _workflow(_command("say", ir.StringLiteral('a\\"b'), ir.StringLiteral('"'), ir.StringLiteral("back\\slash"))),
    _workflow(ir.Condition(ir.Comparison(ir.Identifier("v1"), ir.ComparisonOperator.GE, ir.IntegerLiteral(2)))),
    _workflow(
        ir.ForLoop(
            "part",
            ir.SplitExpression(ir.RegisterReference("csv"), '","'),
            (ir.RegisterAssignment("out", ir.Call(ir.CallKind.FUNCTION, "join", (ir.Identifier("part"),))),),
        )
    ),
    _workflow(_command("go"), author="ops.team-1", sticky=True),
    ir.Workflow(name="W", version="v0.1.2", steps=(ir.Step("A", (_command("a"),)), ir.Step("B", (_command("b"),)))),
]


@pytest.mark.parametrize("workflow", BUILT)
def test_built_models_round_trip(workflow):
    assert stepwise.parse(render_workflow(workflow)) == workflow


@pytest.mark.parametrize(
    "build",
    [
        lambda: ir.Identifier("true"),
        lambda: ir.Identifier("step"),
        lambda: ir.Identifier("in"),
        lambda: ir.Identifier("has space"),
        lambda: ir.Call(ir.CallKind.FUNCTION, "123"),
        lambda: ir.Call(ir.CallKind.COMMAND, "sticky"),
        lambda: _command("go", ir.Identifier("123")),
        lambda: ir.RegisterAssignment("a", ir.Call(ir.CallKind.COMMAND, "go")),
        lambda: ir.RegisterAssignment("a.b", ir.StringLiteral("x")),
        lambda: ir.ForLoop("for", ir.RangeExpression(ir.Identifier("1"), ir.Identifier("2"))),
        lambda: ir.IntegerLiteral(-1),
        lambda: ir.IntegerLiteral(True),
        lambda: ir.Step("S", ()),
        lambda: ir.Step("9", (_command("go"),)),
        lambda: ir.Workflow(name="W", version="1.0", steps=(ir.Step("S", (_command("go"),)),)),
        lambda: ir.Workflow(name="W", version="v1", steps=()),
    ],
)
def test_model_rejects_nodes_without_source_form(build):
    with pytest.raises(BuildError):
        build()


def test_render_rejects_string_ending_in_backslash():
    workflow = _workflow(_command("say", ir.StringLiteral("ends\\")))
    with pytest.raises(RenderError) as excinfo:
        render_workflow(workflow)
    assert excinfo.value.code == "SW-1201"


def test_render_rejects_split_delimiter_ending_in_backslash():
    loop = ir.ForLoop("x", ir.SplitExpression(ir.StringLiteral("a,b"), "\\"))
    with pytest.raises(RenderError):
        render_workflow(_workflow(loop))
