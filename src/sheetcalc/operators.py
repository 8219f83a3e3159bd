import math
import operator
from typing import Any, Callable

from sheetcalc.errors import DivisionByZero, EvaluationError
from sheetcalc.types import EvalValue, Scalar, coerce_to_text, is_number

Number = int | float


def divide(left: Number, right: Number) -> float:
    if right == 0:
        raise DivisionByZero("Division by zero")
    return left / right


def power(left: Number, right: Number) -> float:
    try:
        return math.pow(left, right)
    except (OverflowError, ValueError):
        raise EvaluationError(f"Invalid exponentiation: {left} ^ {right}")


NUMERIC_OPERATORS: dict[str, Callable[[Number, Number], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": divide,
    "^": power,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "<>": operator.ne,
}


def strict_equals(left: Scalar, right: Scalar) -> bool:
    """Equality without cross-kind coercion: TRUE is not 1, "1" is not 1."""
    if is_number(left) and is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def apply_binary(op: str, left: EvalValue, right: EvalValue) -> Scalar:
    """Apply a binary operator to two evaluated operands."""
    if is_number(left) and is_number(right):
        if op not in NUMERIC_OPERATORS:
            raise EvaluationError(f"Unknown operator: {op}")
        return NUMERIC_OPERATORS[op](left, right)

    if isinstance(left, list) or isinstance(right, list):
        raise EvaluationError(f"Ranges are not allowed as operands of {op}")

    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return coerce_to_text(left) + coerce_to_text(right)

    match op:
        case "=":
            return strict_equals(left, right)
        case "<>":
            return not strict_equals(left, right)

    raise EvaluationError(f"Invalid operation: {left!r} {op} {right!r}")


def negate(value: EvalValue) -> Number:
    if not is_number(value):
        raise EvaluationError(f"Cannot negate non-number: {value!r}")
    return -value
