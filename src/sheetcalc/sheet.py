import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Literal, Mapping, NamedTuple

from sheetcalc.ast import ASTNode
from sheetcalc.errors import ErrorCode, ParseError
from sheetcalc.parser import parse_formula
from sheetcalc.types import CellAddress, EvalResult, Scalar
from sheetcalc.utils import AddressLike, as_address


class LiteralCell(NamedTuple):
    value: int | float | str | bool


class FormulaCell(NamedTuple):
    source: str
    ast: ASTNode


class ErrorCell(NamedTuple):
    code: ErrorCode
    message: str


Cell = LiteralCell | FormulaCell | ErrorCell


class CellEdit(NamedTuple):
    """One edit of a batch: set a literal, set a formula, or clear."""

    address: CellAddress
    kind: Literal["literal", "formula", "clear"]
    value: Scalar = None
    formula: str | None = None


@dataclass(frozen=True)
class Sheet:
    id: str
    name: str
    rows: int
    cols: int
    # Sparse: a missing address is an empty cell
    cells: dict[CellAddress, Cell] = field(default_factory=dict)

    @classmethod
    def from_contents(
        cls,
        id: str,
        name: str,
        rows: int,
        cols: int,
        contents: Mapping[str, Scalar],
    ) -> "Sheet":
        """Build a sheet from raw cell contents, as a user would type them."""
        cells: dict[CellAddress, Cell] = {}
        for address, content in contents.items():
            cell = make_cell(content)
            if cell is not None:
                cells[as_address(address)] = cell
        return cls(id=id, name=name, rows=rows, cols=cols, cells=cells)

    def cell(self, address: AddressLike) -> Cell | None:
        return self.cells.get(as_address(address))

    def in_bounds(self, address: CellAddress) -> bool:
        return address.column < self.cols and address.row < self.rows

    def used_extent(self) -> tuple[int, int]:
        """(cols, rows) covering the sheet extent and every stored cell."""
        cols, rows = self.cols, self.rows
        for address in self.cells:
            cols = max(cols, address.column + 1)
            rows = max(rows, address.row + 1)
        return cols, rows

    def formula_cells(self) -> list[CellAddress]:
        return [
            address
            for address, cell in self.cells.items()
            if isinstance(cell, FormulaCell)
        ]


def formula_cell(source: str) -> FormulaCell | ErrorCell:
    """Parse formula text into a formula cell, or a PARSE error cell."""
    try:
        return FormulaCell(source=source, ast=parse_formula(source))
    except ParseError as e:
        logging.warning(f"Storing PARSE error for formula {source!r}: {e}")
        return ErrorCell(ErrorCode.PARSE, f"Invalid formula: {source}")


def make_cell(content: Scalar) -> Cell | None:
    """Turn raw content into a cell. Empty content means no cell."""
    if content is None or content == "":
        return None
    if isinstance(content, str) and content.lstrip().startswith("="):
        return formula_cell(content.strip())
    return LiteralCell(content)


def apply_edits(sheet: Sheet, edits: Iterable[CellEdit]) -> Sheet:
    """Apply an edit batch, returning a new sheet. The input is untouched."""
    cells = dict(sheet.cells)
    for edit in edits:
        match edit.kind:
            case "clear":
                cells.pop(edit.address, None)
            case "literal":
                if edit.value is None:
                    raise ValueError(f"Literal edit of {edit.address} has no value")
                # Empty text clears the cell, as in make_cell
                if edit.value == "":
                    cells.pop(edit.address, None)
                else:
                    cells[edit.address] = LiteralCell(edit.value)
            case "formula":
                if edit.formula is None:
                    raise ValueError(f"Formula edit of {edit.address} has no formula")
                cells[edit.address] = formula_cell(edit.formula)
            case _:
                raise ValueError(f"Unknown edit kind: {edit.kind}")
    return replace(sheet, cells=cells)


def display_value(result: EvalResult) -> Scalar:
    return result.display


def computed_values(
    sheet: Sheet, results: Mapping[CellAddress, EvalResult]
) -> dict[str, Scalar]:
    """Display value of every stored cell, keyed by its text address."""
    values: dict[str, Scalar] = {}
    for address, cell in sheet.cells.items():
        match cell:
            case LiteralCell(value=value):
                values[str(address)] = value
            case FormulaCell():
                if address in results:
                    values[str(address)] = display_value(results[address])
            case ErrorCell(code=code):
                values[str(address)] = code.token()
    return values
