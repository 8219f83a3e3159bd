from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sheetcalc.tokenizer import Token


class ErrorCode(str, Enum):
    """Error vocabulary shown to users as `#<CODE>!`."""

    CYCLE = "CYCLE"
    REF = "REF"
    PARSE = "PARSE"
    DIV0 = "DIV0"
    EVAL = "EVAL"

    def token(self) -> str:
        return f"#{self.value}!"


class SheetError(Exception):
    """Base for all formula errors. `code` is what ends up in the cell."""

    code: ErrorCode = ErrorCode.EVAL

    def __init__(self, message: str = "", code: ErrorCode | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ParseError(SheetError):
    code = ErrorCode.PARSE

    def __init__(self, message: str, token: "Token | None" = None):
        super().__init__(message)
        self.token = token


class InvalidAddress(SheetError):
    code = ErrorCode.REF


class CycleError(SheetError):
    code = ErrorCode.CYCLE


class DivisionByZero(SheetError):
    code = ErrorCode.DIV0


class EvaluationError(SheetError):
    code = ErrorCode.EVAL
