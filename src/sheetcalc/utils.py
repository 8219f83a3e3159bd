import re
from typing import Iterator

from openpyxl.utils import column_index_from_string, get_column_letter

from sheetcalc.ast import CellReference
from sheetcalc.errors import InvalidAddress
from sheetcalc.types import MAX_COLUMNS, CellAddress

# Constants
CELL_REF_REGEX = re.compile(r"^(\$?)([A-Z]+)(\$?)(\d+)$")
# String literals are matched first so that references inside them are skipped.
# A reference is not part of a longer identifier such as LOG10(
FORMULA_REF_REGEX = re.compile(
    r'"[^"]*(?:"|$)'
    r"|(?<![A-Za-z0-9_$])(\$?)([A-Z]+)(\$?)(\d+)(?![A-Za-z0-9_($])",
    re.IGNORECASE,
)

AddressLike = CellAddress | CellReference | str

# (column, row) insertion/deletion point, either side may be None
AxisPoint = tuple[int | None, int | None]


def column_as_int(letters: str) -> int:
    """A -> 0, Z -> 25, AA -> 26."""
    try:
        return column_index_from_string(letters.upper()) - 1
    except ValueError:
        raise InvalidAddress(f"Invalid column: {letters}")


def column_as_str(column: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    try:
        return get_column_letter(column + 1)
    except ValueError:
        raise InvalidAddress(f"Invalid column index: {column}")


def parse_address(text: str) -> CellReference:
    """Parse `A1`, `$A1`, `A$1` or `$A$1` into a 0-based cell reference."""
    match = CELL_REF_REGEX.match(text.strip().upper())
    if not match:
        raise InvalidAddress(f"Invalid cell address: {text}")
    dollar_col, letters, dollar_row, digits = match.groups()
    row = int(digits) - 1
    if row < 0:
        raise InvalidAddress(f"Invalid cell address: {text}")
    return CellReference(
        column=column_as_int(letters),
        row=row,
        absolute_col=dollar_col == "$",
        absolute_row=dollar_row == "$",
    )


def format_address(
    column: int, row: int, fixed_col: bool = False, fixed_row: bool = False
) -> str:
    if row < 0:
        raise InvalidAddress(f"Invalid row index: {row}")
    col_prefix = "$" if fixed_col else ""
    row_prefix = "$" if fixed_row else ""
    return f"{col_prefix}{column_as_str(column)}{row_prefix}{row + 1}"


def as_address(value: AddressLike) -> CellAddress:
    if isinstance(value, CellAddress):
        return value
    if isinstance(value, CellReference):
        return value.address
    return CellAddress.parse(value)


def parse_range(text: str) -> tuple[CellReference, CellReference]:
    """Parse `A1:B3` into its two corner references."""
    parts = text.split(":")
    if len(parts) != 2:
        raise InvalidAddress(f"Invalid range: {text}")
    return parse_address(parts[0]), parse_address(parts[1])


def _corners(start: AddressLike, end: AddressLike) -> tuple[int, int, int, int]:
    first = as_address(start)
    last = as_address(end)
    min_col, max_col = sorted((first.column, last.column))
    min_row, max_row = sorted((first.row, last.row))
    return min_col, max_col, min_row, max_row


def iter_range(start: AddressLike, end: AddressLike) -> Iterator[CellAddress]:
    """Lazily yield the addresses of the rectangle spanned by two corners,
    row by row. The corners may be given in any order."""
    min_col, max_col, min_row, max_row = _corners(start, end)
    for row in range(min_row, max_row + 1):
        for col in range(min_col, max_col + 1):
            yield CellAddress(col, row)


def expand_range(start: AddressLike, end: AddressLike) -> list[CellAddress]:
    """All addresses of the rectangle spanned by two corners, row by row."""
    return list(iter_range(start, end))


def clip_range(
    start: AddressLike, end: AddressLike, cols: int, rows: int
) -> tuple[CellAddress, CellAddress] | None:
    """Corners of the part of a range lying in the first `cols` columns and
    `rows` rows, or None when nothing is left."""
    min_col, max_col, min_row, max_row = _corners(start, end)
    if min_col >= cols or min_row >= rows:
        return None
    return (
        CellAddress(min_col, min_row),
        CellAddress(min(max_col, cols - 1), min(max_row, rows - 1)),
    )


def is_valid_address(text: str, max_rows: int, max_cols: int) -> bool:
    """Check that a cell address parses and lies within the sheet extent."""
    try:
        ref = parse_address(text)
    except InvalidAddress:
        return False
    return ref.column < max_cols and ref.row < max_rows


def adjust_reference(
    address: str,
    inserted_at: AxisPoint | None = None,
    deleted_at: AxisPoint | None = None,
    fixed: tuple[bool, bool] | None = None,
) -> str:
    """Shift a reference for a row/column insertion or deletion.

    An insertion at or before an index pushes it one step further, a deletion
    strictly before it pulls it back one step. `fixed` is a (column, row) pair
    and defaults to the `$` markers of the address itself. Fixed axes never
    move.
    """
    ref = parse_address(address)
    fixed_col, fixed_row = fixed if fixed is not None else (
        ref.absolute_col,
        ref.absolute_row,
    )
    col, row = ref.column, ref.row

    if inserted_at is not None:
        insert_col, insert_row = inserted_at
        if insert_col is not None and not fixed_col and col >= insert_col:
            col += 1
        if insert_row is not None and not fixed_row and row >= insert_row:
            row += 1

    if deleted_at is not None:
        delete_col, delete_row = deleted_at
        if delete_col is not None and not fixed_col and col > delete_col:
            col -= 1
        if delete_row is not None and not fixed_row and row > delete_row:
            row -= 1

    return format_address(col, row, fixed_col, fixed_row)


def translate_formula(
    formula: str, from_address: AddressLike, to_address: AddressLike
) -> str:
    """Rewrite a formula copied from one cell to another.

    Relative axes move by the copy offset, `$` axes stay put. A reference
    pushed off the sheet becomes `#REF!`.
    """
    source = as_address(from_address)
    target = as_address(to_address)
    col_offset = target.column - source.column
    row_offset = target.row - source.row

    def _replace(m: re.Match) -> str:
        if m.group(2) is None:
            # String literal
            return m.group(0)
        dollar_col, letters, dollar_row, digits = m.groups()
        if dollar_col and dollar_row:
            return m.group(0)

        col = column_as_int(letters)
        row = int(digits) - 1
        if not dollar_col:
            col += col_offset
        if not dollar_row:
            row += row_offset

        if col < 0 or row < 0 or col >= MAX_COLUMNS:
            return "#REF!"
        return format_address(col, row, bool(dollar_col), bool(dollar_row))

    return FORMULA_REF_REGEX.sub(_replace, formula)
