from __future__ import annotations

import pytest

from tuyabridge.core.errors import ConfigValidationError, ExpressionError
from tuyabridge.core.expression import parse_expression


def test_arithmetic_follows_precedence() -> None:
    assert parse_expression("x*2.3+25").evaluate(10) == pytest.approx(48.0)
    assert parse_expression("(x-25)/2.3").evaluate(48) == pytest.approx(10.0)


def test_constants_are_substituted_at_parse_time() -> None:
    expr = parse_expression("x/scale_factor*-range_factor+max_mireds", {"scale_factor": 2.55, "range_factor": 2.46, "max_mireds": 400})
    assert expr.evaluate(0) == pytest.approx(400)
    assert expr.evaluate(255) == pytest.approx(154)
    assert "scale_factor" not in expr.render()


def test_unary_minus_and_plus() -> None:
    assert parse_expression("-x+1").evaluate(2) == pytest.approx(-1)
    assert parse_expression("+x").evaluate(7) == pytest.approx(7)


@pytest.mark.parametrize(
    "source",
    [
        "__import__('os').system('true')",
        "x**2",
        "x % 3",
        "y + 1",
        "'a'",
        "True",
        "x +",
        "[x]",
    ],
)
def test_unsafe_or_invalid_expressions_rejected(source: str) -> None:
    with pytest.raises(ExpressionError):
        parse_expression(source)


def test_expression_error_is_a_config_error() -> None:
    with pytest.raises(ConfigValidationError):
        parse_expression("open('x')")


def test_division_by_zero_is_reported() -> None:
    with pytest.raises(ZeroDivisionError):
        parse_expression("x/0").evaluate(1)
