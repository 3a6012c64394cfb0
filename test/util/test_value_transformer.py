import pytest

from modbus_exporter.exception import ExpressionEvaluationError
from modbus_exporter.util.value_transformer import apply_transformations, scale_value


class TestScaleValue:
    @pytest.mark.parametrize(
        "factor, bias, value, expected",
        [
            (None, None, 10.0, 10.0),
            (2.0, None, 5.0, 10.0),
            (None, 3.0, 7.0, 4.0),
            (2.0, 3.0, 2.0, 1.0),
            (0.1, 40.0, 650.0, 25.0),
        ],
    )
    def test_when_factor_and_bias_given_then_scales_before_subtracting_bias(self, factor, bias, value, expected):
        assert scale_value(factor, bias, value) == pytest.approx(expected)

    def test_when_factor_is_zero_then_result_is_minus_bias(self):
        assert scale_value(0.0, 1.5, 99.0) == -1.5


class TestApplyTransformations:
    @pytest.mark.parametrize("value", [0.0, -3.5, 10.0, 1e12])
    def test_when_nothing_configured_then_value_unchanged(self, value):
        assert apply_transformations(None, None, None, value) == value

    def test_when_only_factor_then_scaled(self):
        assert apply_transformations(2.0, None, None, 10.0) == 20.0

    def test_when_only_bias_then_bias_subtracted(self):
        assert apply_transformations(None, 5.0, None, 10.0) == 5.0

    def test_when_expression_then_evaluated_with_raw_value(self):
        assert apply_transformations(None, None, "x**2 + 10", 5.0) == 35.0

    def test_when_expression_and_factor_bias_then_expression_wins(self):
        assert apply_transformations(2.0, 5.0, "x*2 + 10", 5.0) == 20.0

    def test_when_expression_empty_then_falls_back_to_scaling(self):
        assert apply_transformations(2.0, None, "", 5.0) == 10.0

    def test_when_expression_invalid_then_raises_evaluation_error(self):
        with pytest.raises(ExpressionEvaluationError):
            apply_transformations(None, None, "x +* 2", 5.0)
