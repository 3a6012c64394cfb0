import math

import pytest

from modbus_exporter.exception import ExpressionEvaluationError
from modbus_exporter.util.expression_evaluator import evaluate_expression, parse_expression, validate_expression


class TestEvaluateExpression:
    @pytest.mark.parametrize(
        "expression, variable, expected",
        [
            ("x**2 + 10", 5.0, 35.0),
            ("x*2 + 10", 5.0, 20.0),
            ("(x - 32) * 5 / 9", 212.0, 100.0),
            ("-x", 4.0, -4.0),
            ("x // 3", 10.0, 3.0),
            ("x % 3", 10.0, 1.0),
            ("sqrt(x) + abs(-1)", 16.0, 5.0),
            ("max(x, 0)", -7.0, 0.0),
            ("round(x / 3, 2)", 10.0, 3.33),
            ("42", 1.0, 42.0),
        ],
    )
    def test_when_expression_valid_then_returns_float(self, expression, variable, expected):
        result = evaluate_expression(expression, variable)

        assert result == pytest.approx(expected)
        assert isinstance(result, float)

    def test_when_variable_has_other_name_then_bound_to_raw(self):
        assert evaluate_expression("raw * 0.1", 250.0) == pytest.approx(25.0)

    def test_when_constant_pi_used_then_not_treated_as_variable(self):
        assert evaluate_expression("2 * pi * r", 1.0) == pytest.approx(2 * math.pi)

    def test_when_conditional_then_branch_selected(self):
        assert evaluate_expression("x if x < 32768 else x - 65536", 65535.0) == -1.0
        assert evaluate_expression("x if x < 32768 else x - 65536", 100.0) == 100.0

    def test_when_comparison_then_returns_one_or_zero(self):
        assert evaluate_expression("x > 10 and x < 20", 15.0) == 1.0
        assert evaluate_expression("not x", 0.0) == 1.0
        assert evaluate_expression("1 < x < 3", 5.0) == 0.0

    def test_when_boolean_operators_then_deciding_operand_returned(self):
        assert evaluate_expression("x or 5", 0.0) == 5.0
        assert evaluate_expression("x or 5", 3.0) == 3.0
        assert evaluate_expression("x and 7", 2.0) == 7.0
        assert evaluate_expression("x and 7", 0.0) == 0.0

    def test_when_integer_power_small_then_exact(self):
        assert evaluate_expression("2 ** 10 + x", 1.0) == 1025.0


class TestExpressionErrors:
    @pytest.mark.parametrize(
        "expression",
        [
            "x +* 2",
            "x.real",
            "x[0]",
            "__import__('os')",
            "lambda: 1",
            "open('f')",
            "sqrt(x=1)",
            "'text'",
            "x + y",
            "sqrt + 1",
        ],
    )
    def test_when_expression_not_allowed_then_raises(self, expression):
        with pytest.raises(ExpressionEvaluationError) as exc_info:
            evaluate_expression(expression, 1.0)

        assert exc_info.value.expression == expression

    def test_when_division_by_zero_then_raises(self):
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression("1 / x", 0.0)

    def test_when_math_domain_error_then_raises(self):
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression("log(x)", -1.0)

    def test_when_result_is_complex_then_raises(self):
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression("x ** 0.5", -4.0)

    @pytest.mark.parametrize(
        "expression, variable",
        [
            ("round(x) * 10**400", 5.0),
            ("floor(x) ** 500", 5.0),
            ("ceil(x) * 2 ** 2000", 1.0),
        ],
    )
    def test_when_integer_result_exceeds_float_range_then_raises(self, expression, variable):
        with pytest.raises(ExpressionEvaluationError) as exc_info:
            evaluate_expression(expression, variable)

        assert exc_info.value.expression == expression

    def test_when_integer_exponent_huge_then_raises_without_big_int_arithmetic(self):
        with pytest.raises(ExpressionEvaluationError):
            evaluate_expression("9**9**9", 1.0)

    def test_when_validating_then_syntax_checked_without_evaluating(self):
        validate_expression("1 / x")

        with pytest.raises(ExpressionEvaluationError):
            validate_expression("x +")


class TestParseExpression:
    def test_when_parsed_twice_then_cached_tree_reused(self):
        first = parse_expression("x * 3")
        second = parse_expression("x * 3")

        assert first is second
        assert first[1] == "x"

    def test_when_no_variable_then_name_is_none(self):
        assert parse_expression("1 + 2")[1] is None
