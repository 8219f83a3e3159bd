from dataclasses import dataclass
from typing import Iterable, NamedTuple, Union

from openpyxl.utils import get_column_letter
from typing_extensions import Self

from sheetcalc.errors import ErrorCode, InvalidAddress

# openpyxl column letters go from A to ZZZ
MAX_COLUMNS = 18278

Scalar = None | int | float | str | bool
# Ranges only exist while a formula is being evaluated
EvalValue = Union[Scalar, list[Scalar]]


@dataclass(frozen=True)
class CellAddress:
    """A single cell location, 0-based on both axes."""

    column: int
    row: int

    def __post_init__(self) -> None:
        if not 0 <= self.column < MAX_COLUMNS:
            raise InvalidAddress(f"Column index out of range: {self.column}")
        if self.row < 0:
            raise InvalidAddress(f"Row index out of range: {self.row}")

    @classmethod
    def parse(cls, text: str) -> Self:
        # Avoid circular imports
        from sheetcalc.utils import parse_address

        ref = parse_address(text)
        return cls(ref.column, ref.row)

    def __str__(self) -> str:
        return f"{get_column_letter(self.column + 1)}{self.row + 1}"

    def __repr__(self) -> str:
        return f"CellAddress({self})"


class CellError(NamedTuple):
    code: ErrorCode
    message: str


class EvalResult(NamedTuple):
    value: Scalar = None
    error: CellError | None = None

    @property
    def display(self) -> Scalar:
        """The value as the API layer shows it: the scalar or `#CODE!`."""
        if self.error is not None:
            return self.error.code.token()
        return self.value


def is_number(value: object) -> bool:
    """True for ints and floats. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Scalar) -> bool:
    """Condition truthiness: anything but empty, FALSE, 0 and ""."""
    if value is None or value is False:
        return False
    if is_number(value) and value == 0:
        return False
    return value != ""


def coerce_to_text(value: Scalar) -> str:
    """Textual form of a scalar, used for string concatenation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_number(val: str) -> int | float:
    is_float = ("." in val) or ("e" in val) or ("E" in val)
    return float(val) if is_float else int(val)


def flatten_values(values: Iterable[EvalValue]) -> list[Scalar]:
    """Flatten function arguments, expanding range values in place."""
    result: list[Scalar] = []
    for value in values:
        if isinstance(value, list):
            result.extend(value)
        else:
            result.append(value)
    return result


def aggregate_numbers(values: Iterable[EvalValue]) -> list[int | float]:
    """Numeric operands only; text, booleans and empty cells are skipped."""
    return [v for v in flatten_values(values) if is_number(v)]
