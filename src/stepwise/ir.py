"""
Workflow model (IR) for Stepwise and the parse-tree to model builder.

The model is immutable: sequences are tuples and every node is a frozen
dataclass, so a built workflow can be executed any number of times. Nodes
validate their names on construction, so every model can be written back as
source that parses to the same model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple, Union

from . import ast_nodes
from .errors import BuildError
from .lexer import KEYWORDS

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_]+")
VERSION_PATTERN = re.compile(r"v[0-9]+(\.[0-9]+)*")
IDENTITY_PATTERN = re.compile(r"[A-Za-z0-9_.\-]+")


def is_register_name(name: Any) -> bool:
    return isinstance(name, str) and bool(IDENTIFIER_PATTERN.fullmatch(name))


def is_range_bound(name: Any) -> bool:
    """Bounds may be digit-only (`1..3`) but never a keyword."""
    return is_register_name(name) and name not in KEYWORDS


def is_name(name: Any) -> bool:
    """Workflow, step, loop variable, call and identifier names."""
    return is_range_bound(name) and not name.isdigit()


def _require(ok: bool, message: str) -> None:
    if not ok:
        raise BuildError(message)


class ComparisonOperator(str, Enum):
    EQ = "=="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="

    @property
    def is_ordering(self) -> bool:
        return self not in (ComparisonOperator.EQ, ComparisonOperator.NE)


class CallKind(str, Enum):
    COMMAND = "command"
    FUNCTION = "function"


@dataclass(frozen=True)
class StringLiteral:
    value: str

    def __post_init__(self) -> None:
        _require(isinstance(self.value, str), f"String literal needs a str, got {self.value!r}")


@dataclass(frozen=True)
class IntegerLiteral:
    value: int

    def __post_init__(self) -> None:
        ok = isinstance(self.value, int) and not isinstance(self.value, bool) and self.value >= 0
        _require(ok, f"Integer literals are unsigned ints, got {self.value!r}")


@dataclass(frozen=True)
class BooleanLiteral:
    value: bool

    def __post_init__(self) -> None:
        _require(isinstance(self.value, bool), f"Boolean literal needs a bool, got {self.value!r}")


@dataclass(frozen=True)
class Identifier:
    name: str

    def __post_init__(self) -> None:
        _require(is_range_bound(self.name), f"Invalid identifier {self.name!r}")

    @property
    def is_literal(self) -> bool:
        """Digit-only names (range bounds like 1..3) stand for themselves."""
        return self.name.isdigit()


@dataclass(frozen=True)
class RegisterReference:
    name: str

    def __post_init__(self) -> None:
        _require(is_register_name(self.name), f"Invalid register name {self.name!r}")


Value = Union[StringLiteral, IntegerLiteral, BooleanLiteral, Identifier, RegisterReference]
SimpleExpression = Value
_VALUE_TYPES = (StringLiteral, IntegerLiteral, BooleanLiteral, Identifier, RegisterReference)


def _require_value(value: Any, where: str) -> None:
    _require(isinstance(value, _VALUE_TYPES), f"{where} must be a value, got {type(value).__name__}")
    if isinstance(value, Identifier) and value.is_literal:
        raise BuildError(f"{where} uses digit-only identifier '{value.name}'; only range bounds may")


@dataclass(frozen=True)
class RangeExpression:
    start: Identifier
    end: Identifier

    def __post_init__(self) -> None:
        _require(isinstance(self.start, Identifier) and isinstance(self.end, Identifier), "Range bounds must be identifiers")


@dataclass(frozen=True)
class SplitExpression:
    source: Union[RegisterReference, Identifier, StringLiteral]
    delimiter: str

    def __post_init__(self) -> None:
        _require(
            isinstance(self.source, (RegisterReference, Identifier, StringLiteral)),
            "A split source must be a register, identifier or string",
        )
        _require_value(self.source, "A split source")
        _require(isinstance(self.delimiter, str), "A split delimiter must be a string")


@dataclass(frozen=True)
class Comparison:
    left: SimpleExpression
    op: ComparisonOperator
    right: SimpleExpression

    def __post_init__(self) -> None:
        _require_value(self.left, "A comparison operand")
        _require_value(self.right, "A comparison operand")
        _require(isinstance(self.op, ComparisonOperator), f"Unknown comparison operator {self.op!r}")


Expression = Union[RangeExpression, Comparison, SimpleExpression]
Iterable = Union[SplitExpression, RangeExpression]


@dataclass(frozen=True)
class Call:
    """A command (`name(...)`) or external function call (`call name(...)`)."""

    kind: CallKind
    name: str
    params: Tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        _require(isinstance(self.kind, CallKind), f"Unknown call kind {self.kind!r}")
        _require(is_name(self.name), f"Invalid {self.kind.value} name {self.name!r}")
        for param in self.params:
            _require_value(param, f"A parameter of '{self.name}'")


@dataclass(frozen=True)
class Action:
    call: Call


@dataclass(frozen=True)
class RegisterAssignment:
    register: str
    value: Union[Call, Value]

    def __post_init__(self) -> None:
        _require(is_register_name(self.register), f"Invalid register name {self.register!r}")
        if isinstance(self.value, Call):
            _require(self.value.kind is CallKind.FUNCTION, "Only external function calls can be assigned to a register")
        else:
            _require_value(self.value, f"The value assigned to ${self.register}")


@dataclass(frozen=True)
class Condition:
    guard: Expression
    body: Tuple["Statement", ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.guard, (RangeExpression, Comparison)):
            _require_value(self.guard, "A condition guard")


@dataclass(frozen=True)
class ForLoop:
    var_name: str
    iterable: Iterable
    body: Tuple["Statement", ...] = ()

    def __post_init__(self) -> None:
        _require(is_name(self.var_name), f"Invalid loop variable {self.var_name!r}")
        _require(isinstance(self.iterable, (SplitExpression, RangeExpression)), "A loop needs a split or range")


Statement = Union[Condition, RegisterAssignment, Action, ForLoop]


@dataclass(frozen=True)
class Step:
    name: str
    body: Tuple[Statement, ...]

    def __post_init__(self) -> None:
        _require(is_name(self.name), f"Invalid step name {self.name!r}")
        _require(len(self.body) > 0, f"Step '{self.name}' has no statements")


@dataclass(frozen=True)
class Workflow:
    name: str
    version: str
    steps: Tuple[Step, ...]
    author: Optional[str] = None
    sticky: bool = False

    def __post_init__(self) -> None:
        _require(is_name(self.name), f"Invalid workflow name {self.name!r}")
        _require(
            isinstance(self.version, str) and bool(VERSION_PATTERN.fullmatch(self.version)),
            f"Invalid workflow version {self.version!r}",
        )
        _require(
            self.author is None or (isinstance(self.author, str) and bool(IDENTITY_PATTERN.fullmatch(self.author))),
            f"Invalid author tag {self.author!r}",
        )
        _require(len(self.steps) > 0, f"Workflow '{self.name}' has no steps")

    def step(self, name: str) -> Optional[Step]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def iter_calls(self) -> Iterator[Call]:
        """Yield every call in source order, including those nested in bodies."""
        for step in self.steps:
            yield from _iter_body_calls(step.body)

    def function_names(self) -> List[str]:
        return _unique(call.name for call in self.iter_calls() if call.kind is CallKind.FUNCTION)

    def command_names(self) -> List[str]:
        return _unique(call.name for call in self.iter_calls() if call.kind is CallKind.COMMAND)


def _iter_body_calls(body: Tuple[Statement, ...]) -> Iterator[Call]:
    for stmt in body:
        if isinstance(stmt, Action):
            yield stmt.call
        elif isinstance(stmt, RegisterAssignment):
            if isinstance(stmt.value, Call):
                yield stmt.value
        elif isinstance(stmt, (Condition, ForLoop)):
            yield from _iter_body_calls(stmt.body)


def _unique(names) -> List[str]:
    seen: dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    return list(seen)


def _location(node) -> tuple[int | None, int | None]:
    span = getattr(node, "span", None)
    if span is None:
        return None, None
    return span.line, span.column


def _build_error(message: str, node) -> BuildError:
    line, column = _location(node)
    return BuildError(message, line, column)


def _check_identifier(name: str, what: str, node, valid=is_name) -> str:
    if not valid(name):
        raise _build_error(f"Invalid {what} '{name}'", node)
    return name


def ast_to_ir(decl: ast_nodes.WorkflowDecl) -> Workflow:
    """Map a parse tree onto the workflow model; purely structural."""
    if not isinstance(decl, ast_nodes.WorkflowDecl):
        raise BuildError(f"Expected a workflow declaration, got {type(decl).__name__}")
    name = _check_identifier(decl.name, "workflow name", decl)
    if not VERSION_PATTERN.fullmatch(decl.version or ""):
        raise _build_error(f"Invalid workflow version '{decl.version}'", decl)
    if decl.author is not None and not IDENTITY_PATTERN.fullmatch(decl.author):
        raise _build_error(f"Invalid author tag '{decl.author}'", decl)
    if not decl.steps:
        raise _build_error(f"Workflow '{name}' has no steps", decl)
    steps = tuple(_build_step(step) for step in decl.steps)
    return Workflow(name=name, version=decl.version, steps=steps, author=decl.author, sticky=bool(decl.sticky))


def _build_step(step: ast_nodes.StepDecl) -> Step:
    if not isinstance(step, ast_nodes.StepDecl):
        raise _build_error(f"Expected a step, got {type(step).__name__}", step)
    name = _check_identifier(step.name, "step name", step)
    if not step.statements:
        raise _build_error(f"Step '{name}' has no statements", step)
    return Step(name=name, body=_build_body(step.statements))


def _build_body(statements: List[ast_nodes.Statement]) -> Tuple[Statement, ...]:
    return tuple(_build_statement(stmt) for stmt in statements)


def _build_statement(stmt: ast_nodes.Statement) -> Statement:
    if isinstance(stmt, ast_nodes.IfStatement):
        return Condition(guard=_build_expression(stmt.condition), body=_build_body(stmt.body))
    if isinstance(stmt, ast_nodes.ForStatement):
        var_name = _check_identifier(stmt.var_name, "loop variable", stmt)
        return ForLoop(var_name=var_name, iterable=_build_iterable(stmt.iterable), body=_build_body(stmt.body))
    if isinstance(stmt, ast_nodes.RegisterAssignStatement):
        register = _check_identifier(stmt.register, "register name", stmt, valid=is_register_name)
        if isinstance(stmt.value, ast_nodes.CallExpr):
            if not stmt.value.external:
                raise _build_error("Only external function calls can be assigned to a register", stmt)
            return RegisterAssignment(register=register, value=_build_call(stmt.value))
        return RegisterAssignment(register=register, value=_build_value(stmt.value))
    if isinstance(stmt, ast_nodes.ActionStatement):
        return Action(call=_build_call(stmt.call))
    raise _build_error(f"Unsupported statement node {type(stmt).__name__}", stmt)


def _build_call(call: ast_nodes.CallExpr) -> Call:
    kind = CallKind.FUNCTION if call.external else CallKind.COMMAND
    name = _check_identifier(call.name, f"{kind.value} name", call)
    return Call(kind=kind, name=name, params=tuple(_build_value(arg) for arg in call.args))


def _build_value(node: ast_nodes.Operand) -> Value:
    if isinstance(node, ast_nodes.Literal):
        if node.kind == "string" and isinstance(node.value, str):
            return StringLiteral(node.value)
        if node.kind == "number" and isinstance(node.value, int) and not isinstance(node.value, bool):
            if node.value < 0:
                raise _build_error("Integer literals are unsigned", node)
            return IntegerLiteral(node.value)
        if node.kind == "boolean" and isinstance(node.value, bool):
            return BooleanLiteral(node.value)
        raise _build_error(f"Malformed {node.kind} literal {node.value!r}", node)
    if isinstance(node, ast_nodes.Identifier):
        return Identifier(_check_identifier(node.name, "identifier", node))
    if isinstance(node, ast_nodes.RegisterRef):
        return RegisterReference(_check_identifier(node.name, "register name", node, valid=is_register_name))
    raise _build_error(f"Unsupported value node {type(node).__name__}", node)


def _build_expression(node: ast_nodes.Expr) -> Expression:
    if isinstance(node, ast_nodes.RangeExpr):
        return _build_range(node)
    if isinstance(node, ast_nodes.ComparisonExpr):
        try:
            op = ComparisonOperator(node.op)
        except ValueError:
            raise _build_error(f"Unknown comparison operator '{node.op}'", node) from None
        return Comparison(left=_build_value(node.left), op=op, right=_build_value(node.right))
    return _build_value(node)


def _build_range(node: ast_nodes.RangeExpr) -> RangeExpression:
    return RangeExpression(
        start=Identifier(_check_identifier(node.start.name, "range start", node, valid=is_range_bound)),
        end=Identifier(_check_identifier(node.end.name, "range end", node, valid=is_range_bound)),
    )


def _build_iterable(node: ast_nodes.SplitExpr | ast_nodes.RangeExpr) -> Iterable:
    if isinstance(node, ast_nodes.RangeExpr):
        return _build_range(node)
    if isinstance(node, ast_nodes.SplitExpr):
        source = _build_value(node.source)
        if isinstance(source, (IntegerLiteral, BooleanLiteral)):
            raise _build_error("A split source must be a register, identifier or string", node)
        if not isinstance(node.delimiter, str):
            raise _build_error("A split delimiter must be a string", node)
        return SplitExpression(source=source, delimiter=node.delimiter)
    raise _build_error(f"Unsupported loop iterable {type(node).__name__}", node)
