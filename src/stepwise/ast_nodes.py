"""
Parse tree node definitions for the Stepwise workflow language.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass
class Span:
    """Location span for diagnostics."""

    line: int
    column: int


@dataclass
class Literal:
    """String, number or boolean literal; `kind` is one of string/number/boolean."""

    kind: str
    value: Union[str, int, bool]
    span: Optional[Span] = None


@dataclass
class Identifier:
    name: str
    span: Optional[Span] = None


@dataclass
class RegisterRef:
    """$name"""

    name: str
    span: Optional[Span] = None


Operand = Union[Literal, Identifier, RegisterRef]


@dataclass
class CallExpr:
    """name(args) or call name(args); `external` marks the `call` form."""

    name: str
    args: List[Operand] = field(default_factory=list)
    external: bool = False
    span: Optional[Span] = None


@dataclass
class RangeExpr:
    """start..end"""

    start: Identifier
    end: Identifier
    span: Optional[Span] = None


@dataclass
class SplitExpr:
    """source.split("delimiter")"""

    source: Operand
    delimiter: str
    span: Optional[Span] = None


@dataclass
class ComparisonExpr:
    left: Operand
    op: str
    right: Operand
    span: Optional[Span] = None


Expr = Union[RangeExpr, ComparisonExpr, Literal, Identifier, RegisterRef]


@dataclass
class IfStatement:
    """if <expr> { ... }"""

    condition: Expr
    body: List["Statement"] = field(default_factory=list)
    span: Optional[Span] = None


@dataclass
class ForStatement:
    """for <var> in <iterable> { ... }"""

    var_name: str
    iterable: Union[SplitExpr, RangeExpr]
    body: List["Statement"] = field(default_factory=list)
    span: Optional[Span] = None


@dataclass
class RegisterAssignStatement:
    """$name = <call or value>"""

    register: str
    value: Union[CallExpr, Operand]
    span: Optional[Span] = None


@dataclass
class ActionStatement:
    call: CallExpr
    span: Optional[Span] = None


Statement = Union[IfStatement, ForStatement, RegisterAssignStatement, ActionStatement]


@dataclass
class StepDecl:
    """step Name { ... }"""

    name: str
    statements: List[Statement] = field(default_factory=list)
    span: Optional[Span] = None


@dataclass
class WorkflowDecl:
    """workflow Name vX.Y { step ... } @@author sticky"""

    name: str
    version: str
    steps: List[StepDecl] = field(default_factory=list)
    author: Optional[str] = None
    sticky: bool = False
    span: Optional[Span] = None
