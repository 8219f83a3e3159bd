from sheetcalc.errors import ErrorCode, SheetError
from sheetcalc.interpreter import ExplainTrace, SheetInterpreter
from sheetcalc.parser import parse_formula
from sheetcalc.sheet import (
    CellEdit,
    ErrorCell,
    FormulaCell,
    LiteralCell,
    Sheet,
    apply_edits,
    computed_values,
    make_cell,
)
from sheetcalc.types import CellAddress, CellError, EvalResult
from sheetcalc.utils import translate_formula

__all__ = [
    "CellAddress",
    "CellEdit",
    "CellError",
    "ErrorCell",
    "ErrorCode",
    "EvalResult",
    "ExplainTrace",
    "FormulaCell",
    "LiteralCell",
    "Sheet",
    "SheetError",
    "SheetInterpreter",
    "apply_edits",
    "computed_values",
    "make_cell",
    "parse_formula",
    "translate_formula",
]
