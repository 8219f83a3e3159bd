from typing import NamedTuple

from sheetcalc.types import CellAddress


class FunctionCall(NamedTuple):
    name: str
    arguments: "tuple[ASTNode, ...]"


class BinaryOperation(NamedTuple):
    left: "ASTNode"
    operator: str
    right: "ASTNode"


class UnaryOperation(NamedTuple):
    operator: str
    operand: "ASTNode"


class CellReference(NamedTuple):
    column: int
    row: int
    absolute_col: bool = False
    absolute_row: bool = False

    @property
    def address(self) -> CellAddress:
        return CellAddress(self.column, self.row)

    def coords(self) -> str:
        # Avoid circular imports
        from sheetcalc.utils import format_address

        return format_address(
            self.column, self.row, self.absolute_col, self.absolute_row
        )


class CellRange(NamedTuple):
    start: CellReference
    end: CellReference


class Constant(NamedTuple):
    value: int | float | str | bool


# Type alias for all possible AST nodes
ASTNode = (
    FunctionCall
    | BinaryOperation
    | UnaryOperation
    | CellReference
    | CellRange
    | Constant
)
