import logging

from openpyxl.worksheet.formula import ArrayFormula
from openpyxl.worksheet.worksheet import Worksheet

from sheetcalc.sheet import Cell, Sheet, make_cell
from sheetcalc.types import CellAddress


def read_worksheet(ws: Worksheet, sheet_id: str | None = None) -> Sheet:
    """Build a sheet from an openpyxl worksheet.

    Formula strings become formula cells, numbers, text and booleans become
    literals. The sheet extent is the worksheet's used area.
    """
    cells: dict[CellAddress, Cell] = {}
    for row in ws.iter_rows():
        for ws_cell in row:
            value = ws_cell.value
            if isinstance(value, ArrayFormula):
                value = value.text
            if value is not None and not isinstance(value, (int, float, str, bool)):
                logging.warning(
                    f"Skipping {ws_cell.coordinate}: unsupported value {value!r}"
                )
                continue

            cell = make_cell(value)
            if cell is not None:
                cells[CellAddress(ws_cell.column - 1, ws_cell.row - 1)] = cell

    return Sheet(
        id=sheet_id or ws.title,
        name=ws.title,
        rows=ws.max_row,
        cols=ws.max_column,
        cells=cells,
    )
