from __future__ import annotations

import json
import re
from typing import Any, List, Optional

from .. import ir
from ..errors import LoopLimitError, ResolutionError, TypeMismatchError
from .registers import NOT_FOUND, LoopScope

INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


def value_domain(value: Any) -> str:
    # bool before int: True is an int in Python.
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, str):
        return "string"
    return "structured"


def render_value(value: Any) -> str:
    """String form used for lexical comparison and splitting."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, str)):
        return str(value)
    if value is None:
        return ""
    return json.dumps(value, sort_keys=True, default=str)


def is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value != ""
    return False


def _shorten(text: str) -> str:
    return text if len(text) <= 40 else text[:37] + "..."


def _describe(value: Any) -> str:
    return f"{value_domain(value)} {_shorten(repr(value))}"


class ExpressionEvaluator:
    """Evaluates values, guards and loop iterables against one run's scope."""

    def __init__(self, scope: LoopScope) -> None:
        self.scope = scope

    def resolve(self, value: ir.Value) -> Any:
        if isinstance(value, ir.StringLiteral):
            return value.value
        if isinstance(value, ir.IntegerLiteral):
            return value.value
        if isinstance(value, ir.BooleanLiteral):
            return value.value
        if isinstance(value, ir.RegisterReference):
            return self.scope.store.resolve(value.name)
        if isinstance(value, ir.Identifier):
            return self.resolve_identifier(value)
        raise TypeError(f"Unsupported value node {type(value).__name__}")

    def resolve_identifier(self, ident: ir.Identifier) -> Any:
        found = self.scope.lookup(ident.name)
        if found is not NOT_FOUND:
            return found
        if ident.is_literal:
            try:
                return int(ident.name)
            except ValueError:
                raise TypeMismatchError(f"Integer '{_shorten(ident.name)}' has too many digits") from None
        raise ResolutionError(f"I don't know what '{ident.name}' is here; it is neither a loop variable nor a register")

    def evaluate_guard(self, expr: ir.Expression) -> bool:
        if isinstance(expr, ir.Comparison):
            left = self.resolve(expr.left)
            right = self.resolve(expr.right)
            return compare(left, expr.op, right)
        if isinstance(expr, ir.RangeExpression):
            return len(self._range(expr)) > 0
        return is_truthy(self.resolve(expr))

    def evaluate_iterable(self, iterable: ir.Iterable, limit: Optional[int] = None) -> List[Any]:
        """Materialize a loop sequence once, refusing sequences longer than `limit`."""
        if isinstance(iterable, ir.RangeExpression):
            bounds = self._range(iterable)
            _check_limit(len(bounds), limit)
            return list(bounds)
        if isinstance(iterable, ir.SplitExpression):
            items = self.evaluate_split(iterable)
            _check_limit(len(items), limit)
            return items
        raise TypeError(f"Unsupported iterable node {type(iterable).__name__}")

    def evaluate_range(self, expr: ir.RangeExpression) -> List[int]:
        return list(self._range(expr))

    def _range(self, expr: ir.RangeExpression) -> range:
        start = self._range_bound(expr.start, "start")
        end = self._range_bound(expr.end, "end")
        return range(start, end + 1)

    def _range_bound(self, ident: ir.Identifier, which: str) -> int:
        value = self.resolve_identifier(ident)
        if value_domain(value) != "integer":
            raise TypeMismatchError(f"Range {which} '{ident.name}' must be an integer, got {_describe(value)}")
        return value

    def evaluate_split(self, expr: ir.SplitExpression) -> List[str]:
        source = self.resolve(expr.source)
        if value_domain(source) == "structured":
            raise TypeMismatchError(f"Cannot split {_describe(source)}; expected a string")
        text = render_value(source)
        if expr.delimiter == "":
            return [""] + list(text) + [""]
        return text.split(expr.delimiter)


def compare(left: Any, op: ir.ComparisonOperator, right: Any) -> bool:
    left_domain = value_domain(left)
    right_domain = value_domain(right)
    domain: Optional[str] = left_domain if left_domain == right_domain else None
    if domain == "integer":
        if op is ir.ComparisonOperator.GT:
            return left > right
        if op is ir.ComparisonOperator.LT:
            return left < right
        if op is ir.ComparisonOperator.GE:
            return left >= right
        if op is ir.ComparisonOperator.LE:
            return left <= right
    elif op.is_ordering:
        raise TypeMismatchError(
            f"Operator '{op.value}' needs two integers, got {_describe(left)} and {_describe(right)}"
        )
    equal = _equal(left, right)
    if op is ir.ComparisonOperator.EQ:
        return equal
    if op is ir.ComparisonOperator.NE:
        return not equal
    raise TypeMismatchError(f"Unsupported comparison operator '{op.value}'")


def parse_integer(value: Any) -> Optional[int]:
    """Integer reading of a value: ints as-is, strings of decimal digits parsed."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and INTEGER_TEXT.fullmatch(value):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def parse_boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value == "true" or value == "false":
        return value == "true"
    return None


def _equal(left: Any, right: Any) -> bool:
    left_int, right_int = parse_integer(left), parse_integer(right)
    if left_int is not None and right_int is not None:
        return left_int == right_int
    left_bool, right_bool = parse_boolean(left), parse_boolean(right)
    if left_bool is not None and right_bool is not None:
        return left_bool == right_bool
    return render_value(left) == render_value(right)


def _check_limit(count: int, limit: Optional[int]) -> None:
    if limit is not None and count > limit:
        raise LoopLimitError(f"Loop would run {count} times, more than the limit of {limit}")
