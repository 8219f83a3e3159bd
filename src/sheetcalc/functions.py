from typing import Callable, Optional

from rapidfuzz import fuzz, process

from sheetcalc.errors import EvaluationError
from sheetcalc.types import EvalValue, Scalar, aggregate_numbers, flatten_values

SheetFunction = Callable[..., Scalar]

SHEET_FUNCTIONS: dict[str, SheetFunction] = {}

# Evaluated by the interpreter itself because only one branch may run
SPECIAL_FORMS = frozenset({"IF"})


def sheet_fn(*names: str) -> Callable[[SheetFunction], SheetFunction]:
    """Decorator to register a function under one or more sheet names."""

    def decorator(fn: SheetFunction) -> SheetFunction:
        for name in names or (fn.__name__.upper(),):
            SHEET_FUNCTIONS[name] = fn
        return fn

    return decorator


def is_supported(name: str) -> bool:
    return name.upper() in SHEET_FUNCTIONS or name.upper() in SPECIAL_FORMS


def suggest_function(name: str, similarity: float = 0.6) -> Optional[str]:
    """Closest known function name, if any is similar enough."""
    match = process.extractOne(
        name.upper(),
        [*SHEET_FUNCTIONS, *SPECIAL_FORMS],
        scorer=fuzz.ratio,
        score_cutoff=similarity * 100,
    )
    return match[0] if match else None


def get_function(name: str) -> SheetFunction:
    """Look up a function by name, failing with EVAL for unknown names."""
    fn = SHEET_FUNCTIONS.get(name.upper())
    if fn is None:
        message = f"Unknown function: {name}"
        if suggestion := suggest_function(name):
            message += f" (did you mean {suggestion}?)"
        raise EvaluationError(message)
    return fn


@sheet_fn("SUM")
def sum_(*args: EvalValue) -> Scalar:
    """Sum of the numeric operands, ranges included."""
    return sum(aggregate_numbers(args))


@sheet_fn("AVG", "AVERAGE")
def average(*args: EvalValue) -> Scalar:
    """Mean of the numeric operands, 0 when there are none."""
    nums = aggregate_numbers(args)
    return (sum(nums) / len(nums)) if nums else 0


# MIN and MAX report 0 rather than an error when nothing is numeric
@sheet_fn("MIN")
def min_(*args: EvalValue) -> Scalar:
    nums = aggregate_numbers(args)
    return min(nums) if nums else 0


@sheet_fn("MAX")
def max_(*args: EvalValue) -> Scalar:
    nums = aggregate_numbers(args)
    return max(nums) if nums else 0


@sheet_fn("COUNT")
def count(*args: EvalValue) -> Scalar:
    """Number of non-empty operands, whatever their kind."""
    return sum(1 for value in flatten_values(args) if value is not None)


def check_arity(name: str, args: tuple, expected: int) -> None:
    if len(args) != expected:
        raise EvaluationError(
            f"{name} requires exactly {expected} arguments, got {len(args)}"
        )
