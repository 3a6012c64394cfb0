"""
Scalar expression evaluation for metric transformations.

An expression is a single arithmetic formula over one free variable, e.g.::

    x**2 + 10
    sqrt(raw) * 0.5 if raw > 0 else 0

The free variable (whatever its name) is bound to the decoded register value.
Only a whitelisted subset of Python expression syntax is accepted; anything
else (attribute access, subscripts, lambdas, unknown functions) is rejected.
"""

import ast
import math
import operator
from functools import lru_cache
from typing import Callable

from modbus_exporter.exception import ExpressionEvaluationError

MAX_INT_POWER_BITS = 4096


def _bounded_pow(base, exponent):
    """
    Power that falls back to float arithmetic once an integer result would exceed
    MAX_INT_POWER_BITS, so huge exponents overflow instead of running unbounded.
    """
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0 and abs(base) > 1:
        if base.bit_length() * exponent > MAX_INT_POWER_BITS:
            return math.pow(base, exponent)
    return operator.pow(base, exponent)


BINARY_OPERATORS: dict[type, Callable] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: _bounded_pow,
}

UNARY_OPERATORS: dict[type, Callable] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

COMPARE_OPERATORS: dict[type, Callable] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

FUNCTIONS: dict[str, Callable] = {
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "sqrt": math.sqrt,
    "log": math.log,
    "log10": math.log10,
    "exp": math.exp,
    "pow": math.pow,
    "floor": math.floor,
    "ceil": math.ceil,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}

CONSTANTS: dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}


@lru_cache(maxsize=256)
def parse_expression(expression: str) -> tuple[ast.Expression, str | None]:
    """
    Parse and validate an expression.

    Returns:
        The parsed tree and the name of its free variable (None for a constant expression).

    Raises:
        ExpressionEvaluationError: on syntax errors, disallowed constructs,
            or more than one free variable.
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ExpressionEvaluationError(f"invalid expression '{expression}': {e.msg}", expression) from e

    free_names: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                raise ExpressionEvaluationError(f"unsupported function call in '{expression}'", expression)
            if node.keywords:
                raise ExpressionEvaluationError(f"keyword arguments not supported in '{expression}'", expression)
        elif isinstance(node, ast.Name):
            if node.id not in FUNCTIONS and node.id not in CONSTANTS:
                free_names.add(node.id)
        elif not isinstance(node, _ALLOWED_NODES):
            raise ExpressionEvaluationError(
                f"unsupported syntax '{type(node).__name__}' in '{expression}'", expression
            )

    if len(free_names) > 1:
        names = ", ".join(sorted(free_names))
        raise ExpressionEvaluationError(f"expression '{expression}' has more than one variable: {names}", expression)

    return tree, next(iter(free_names), None)


def validate_expression(expression: str) -> None:
    """Raise ExpressionEvaluationError if the expression cannot be parsed."""
    parse_expression(expression)


def evaluate_expression(expression: str, variable: float) -> float:
    """
    Evaluate ``expression`` with its free variable bound to ``variable``.

    Raises:
        ExpressionEvaluationError: parse failure, arithmetic failure or non-numeric result.
    """
    tree, variable_name = parse_expression(expression)
    names: dict[str, float] = dict(CONSTANTS)
    if variable_name is not None:
        names[variable_name] = variable

    try:
        result = _eval_node(tree.body, names)
        if isinstance(result, complex) or not isinstance(result, (int, float)):
            raise ExpressionEvaluationError(f"expression '{expression}' did not produce a real number", expression)
        # ints beyond float range raise OverflowError here
        return float(result)
    except ExpressionEvaluationError as e:
        e.expression = e.expression or expression
        raise
    except (ArithmeticError, ValueError, TypeError) as e:
        raise ExpressionEvaluationError(f"failed to evaluate '{expression}': {e}", expression) from e


_ALLOWED_NODES = (
    ast.Expression,
    ast.Constant,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Load,
    ast.And,
    ast.Or,
    *BINARY_OPERATORS,
    *UNARY_OPERATORS,
    *COMPARE_OPERATORS,
)


def _eval_node(node: ast.AST, names: dict[str, float]):
    match node:
        case ast.Constant(value=value):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ExpressionEvaluationError(f"unsupported literal {value!r}")
            return value

        case ast.Name(id=name):
            if name not in names:
                raise ExpressionEvaluationError(f"'{name}' is a function, not a value")
            return names[name]

        case ast.BinOp(left=left, op=op, right=right):
            return BINARY_OPERATORS[type(op)](_eval_node(left, names), _eval_node(right, names))

        case ast.UnaryOp(op=op, operand=operand):
            return UNARY_OPERATORS[type(op)](_eval_node(operand, names))

        case ast.BoolOp(op=ast.And(), values=values):
            # short-circuits and yields the deciding operand, like Python
            for v in values:
                result = _eval_node(v, names)
                if not result:
                    return result
            return result

        case ast.BoolOp(op=ast.Or(), values=values):
            for v in values:
                result = _eval_node(v, names)
                if result:
                    return result
            return result

        case ast.Compare(left=left, ops=ops, comparators=comparators):
            current = _eval_node(left, names)
            for op, comparator in zip(ops, comparators):
                right = _eval_node(comparator, names)
                if not COMPARE_OPERATORS[type(op)](current, right):
                    return False
                current = right
            return True

        case ast.IfExp(test=test, body=body, orelse=orelse):
            return _eval_node(body, names) if _eval_node(test, names) else _eval_node(orelse, names)

        case ast.Call(func=ast.Name(id=func_name), args=args):
            return FUNCTIONS[func_name](*(_eval_node(a, names) for a in args))

        case _:
            raise ExpressionEvaluationError(f"unsupported syntax '{type(node).__name__}'")
