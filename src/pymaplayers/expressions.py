"""Builders for style-spec data expressions.

Expressions are plain nested lists, exactly as the render target's
style specification expects them, e.g. ``["case", cond, a, b]``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Literal

Expression = list[Any]
ExpressionInput = Any

BinaryOperator = Literal["==", "!=", ">", ">=", "<", "<="]


def case(cases: Sequence[tuple[ExpressionInput, ExpressionInput]], default: ExpressionInput) -> Expression:
    """``["case", cond1, out1, cond2, out2, ..., default]``."""
    if not cases:
        raise ValueError("At least one case is required")
    expression: Expression = ["case"]
    for condition, output in cases:
        expression.extend([condition, output])
    expression.append(default)
    return expression


def if_(condition: ExpressionInput, then: ExpressionInput, otherwise: ExpressionInput) -> Expression:
    return ["case", condition, then, otherwise]


def switch(
    expression: ExpressionInput,
    cases: Sequence[tuple[ExpressionInput, ExpressionInput]],
    default: ExpressionInput,
) -> Expression:
    """Compare ``expression`` against each case value with ``==``."""
    return case([(eq(expression, value), output) for value, output in cases], default)


def interpolate(spec: Expression, value: ExpressionInput, *stops: tuple[float, ExpressionInput]) -> Expression:
    if not stops:
        raise ValueError("At least one stop is required")
    expression: Expression = ["interpolate", spec, value]
    for stop, output in stops:
        expression.extend([stop, output])
    return expression


def id_() -> Expression:
    return ["id"]


def get(name: str) -> Expression:
    return ["get", name]


def feature_state(name: str) -> Expression:
    return ["feature-state", name]


def boolean(value: ExpressionInput, fallback: bool = False) -> Expression:
    return ["boolean", value, fallback]


def literal(value: Any) -> Expression:
    return ["literal", value]


def binary(op: BinaryOperator, a: ExpressionInput, b: ExpressionInput) -> Expression:
    return [op, a, b]


def eq(a: ExpressionInput, b: ExpressionInput) -> Expression:
    return binary("==", a, b)


def neq(a: ExpressionInput, b: ExpressionInput) -> Expression:
    return binary("!=", a, b)


def gt(a: ExpressionInput, b: ExpressionInput) -> Expression:
    return binary(">", a, b)


def gte(a: ExpressionInput, b: ExpressionInput) -> Expression:
    return binary(">=", a, b)


def lt(a: ExpressionInput, b: ExpressionInput) -> Expression:
    return binary("<", a, b)


def lte(a: ExpressionInput, b: ExpressionInput) -> Expression:
    return binary("<=", a, b)


def hover_switch(hovered: ExpressionInput, default: ExpressionInput) -> Expression:
    """Pick ``hovered`` while the feature's ``hover`` state is set."""
    return if_(boolean(feature_state("hover"), False), hovered, default)
