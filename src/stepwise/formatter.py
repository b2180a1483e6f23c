"""
Canonical source rendering for workflow models.
"""

from __future__ import annotations

from typing import List

from . import ir
from .errors import RenderError
from .parser import parse_source

INDENT = "    "


def render_string(text: str) -> str:
    if text.endswith("\\"):
        # The closing quote would read as an escaped quote.
        raise RenderError(f"String {text!r} ends with a backslash and has no source form")
    return '"' + text.replace('"', '\\"') + '"'


def render_value(value: ir.Value) -> str:
    if isinstance(value, ir.StringLiteral):
        return render_string(value.value)
    if isinstance(value, ir.BooleanLiteral):
        return "true" if value.value else "false"
    if isinstance(value, ir.IntegerLiteral):
        try:
            return str(value.value)
        except ValueError:
            raise RenderError("Integer literal has too many digits to write out") from None
    if isinstance(value, ir.RegisterReference):
        return f"${value.name}"
    if isinstance(value, ir.Identifier):
        return value.name
    raise TypeError(f"Cannot render value node {type(value).__name__}")


def render_call(call: ir.Call) -> str:
    args = ", ".join(render_value(param) for param in call.params)
    prefix = "call " if call.kind is ir.CallKind.FUNCTION else ""
    return f"{prefix}{call.name}({args})"


def render_expression(expr: ir.Expression) -> str:
    if isinstance(expr, ir.RangeExpression):
        return f"{expr.start.name}..{expr.end.name}"
    if isinstance(expr, ir.Comparison):
        return f"{render_value(expr.left)} {expr.op.value} {render_value(expr.right)}"
    return render_value(expr)


def render_iterable(iterable: ir.Iterable) -> str:
    if isinstance(iterable, ir.SplitExpression):
        return f"{render_value(iterable.source)}.split({render_string(iterable.delimiter)})"
    return render_expression(iterable)


def _render_body(body, depth: int, lines: List[str]) -> None:
    pad = INDENT * depth
    for stmt in body:
        if isinstance(stmt, ir.Condition):
            lines.append(f"{pad}if {render_expression(stmt.guard)} {{")
            _render_body(stmt.body, depth + 1, lines)
            lines.append(f"{pad}}}")
        elif isinstance(stmt, ir.ForLoop):
            lines.append(f"{pad}for {stmt.var_name} in {render_iterable(stmt.iterable)} {{")
            _render_body(stmt.body, depth + 1, lines)
            lines.append(f"{pad}}}")
        elif isinstance(stmt, ir.RegisterAssignment):
            rhs = render_call(stmt.value) if isinstance(stmt.value, ir.Call) else render_value(stmt.value)
            lines.append(f"{pad}${stmt.register} = {rhs}")
        elif isinstance(stmt, ir.Action):
            lines.append(f"{pad}{render_call(stmt.call)}")
        else:
            raise TypeError(f"Cannot render statement node {type(stmt).__name__}")


def render_workflow(workflow: ir.Workflow) -> str:
    lines = [f"workflow {workflow.name} {workflow.version} {{"]
    for step in workflow.steps:
        lines.append(f"{INDENT}step {step.name} {{")
        _render_body(step.body, 2, lines)
        lines.append(f"{INDENT}}}")
    closing = "}"
    if workflow.author is not None:
        closing += f" @@{workflow.author}"
    if workflow.sticky:
        closing += " sticky"
    lines.append(closing)
    return "\n".join(lines) + "\n"


def format_source(source: str, filename: str = "<string>") -> str:
    """Parse and re-render; idempotent on its own output."""
    return render_workflow(ir.ast_to_ir(parse_source(source, filename=filename)))
