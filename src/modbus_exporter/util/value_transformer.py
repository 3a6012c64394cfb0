"""Post-decode value transformations (linear scale/bias or expression)."""

from modbus_exporter.util.expression_evaluator import evaluate_expression


def scale_value(factor: float | None, bias: float | None, value: float) -> float:
    """
    Apply linear scaling:
        value * factor - bias

    The factor is applied first, then the bias is subtracted. A missing
    factor counts as 1 and a missing bias as 0.
    """
    if factor is not None:
        value = value * factor
    if bias is not None:
        value = value - bias
    return value


def apply_transformations(
    factor: float | None, bias: float | None, expression: str | None, value: float
) -> float:
    """
    Turn a decoded register value into the final observation value.

    If an expression is configured it fully replaces factor and bias.

    Raises:
        ExpressionEvaluationError: the expression cannot be parsed or evaluated.
    """
    if expression:
        return evaluate_expression(expression, value)
    return scale_value(factor, bias, value)
