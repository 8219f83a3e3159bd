from sheetcalc.ast import (
    ASTNode,
    BinaryOperation,
    CellRange,
    CellReference,
    Constant,
    FunctionCall,
    UnaryOperation,
)
from sheetcalc.errors import InvalidAddress, ParseError
from sheetcalc.tokenizer import FormulaTokenizer, Token, TokenType
from sheetcalc.types import parse_number
from sheetcalc.utils import parse_address

# Operator precedence table, higher binds tighter
PRECEDENCE: dict[str, int] = {
    "=": 1,
    "<>": 1,
    "<": 2,
    "<=": 2,
    ">": 2,
    ">=": 2,
    "+": 3,
    "-": 3,
    "*": 4,
    "/": 4,
    "^": 5,
}


def parse_formula(formula: str) -> ASTNode:
    """Helper function to parse a formula string into an AST."""
    return FormulaParser(formula).parse()


class FormulaParser:
    def __init__(self, formula: str):
        self.tokenizer = FormulaTokenizer(formula)
        self.current = self.tokenizer.next_token()

    def parse(self) -> ASTNode:
        """Parse the whole formula. Anything left after the expression is an
        error."""
        node = self.parse_expression(0)
        if self.current.type != TokenType.EOF:
            raise ParseError(f"Unexpected token: {self.current.value}", self.current)
        if self.current.value:
            raise ParseError(
                f"Unexpected character: {self.current.value} "
                f"at position {self.current.position}",
                self.current,
            )
        return node

    def read(self) -> Token:
        """Consume and return the current token."""
        token = self.current
        self.current = self.tokenizer.next_token()
        return token

    def expect(self, token_type: TokenType) -> Token:
        """Read the current token if it has the expected type, otherwise
        error."""
        if self.current.type != token_type:
            raise ParseError(
                f"Expected {token_type.name}, got {self._describe(self.current)}",
                self.current,
            )
        return self.read()

    def parse_expression(self, min_precedence: int = 0) -> ASTNode:
        """Parse a binary expression whose operators bind at least as tightly
        as `min_precedence`."""
        left = self.parse_primary()

        while self.current.type == TokenType.OPERATOR:
            operator = self.current.value
            precedence = PRECEDENCE.get(operator, 0)
            if precedence < min_precedence:
                break

            self.read()  # consume operator
            right = self.parse_expression(precedence + 1)
            left = BinaryOperation(left=left, operator=operator, right=right)

        return left

    def parse_primary(self) -> ASTNode:
        """Parse a literal, reference, function call, parenthesised
        expression or negation."""
        token = self.current

        match token.type:
            case TokenType.NUMBER:
                self.read()
                try:
                    return Constant(parse_number(token.value))
                except ValueError:
                    raise ParseError(f"Invalid number: {token.value}", token)

            case TokenType.STRING:
                self.read()
                return Constant(token.value)

            case TokenType.BOOLEAN:
                self.read()
                return Constant(token.value == "TRUE")

            case TokenType.CELL_REF:
                return self.parse_cell_reference()

            case TokenType.FUNCTION:
                return self.parse_function_call()

            case TokenType.LPAREN:
                self.read()  # consume '('
                expr = self.parse_expression(0)
                self.expect(TokenType.RPAREN)
                return expr

            case TokenType.OPERATOR if token.value == "-":
                self.read()
                return UnaryOperation(operator="-", operand=self.parse_primary())

        raise ParseError(f"Unexpected token: {self._describe(token)}", token)

    def parse_cell_reference(self) -> CellReference | CellRange:
        """Parse a cell reference, or a range when followed by ':'."""
        start = self._cell_reference(self.read())
        if self.current.type != TokenType.COLON:
            return start

        self.read()  # consume ':'
        if self.current.type != TokenType.CELL_REF:
            raise ParseError(
                f"Expected cell reference after ':', "
                f"got {self._describe(self.current)}",
                self.current,
            )
        end = self._cell_reference(self.read())
        return CellRange(start=start, end=end)

    def parse_function_call(self) -> FunctionCall:
        """Parse a function call with its arguments."""
        name = self.read().value
        self.expect(TokenType.LPAREN)

        args: list[ASTNode] = []
        if self.current.type != TokenType.RPAREN:
            args.append(self.parse_expression(0))
            while self.current.type == TokenType.COMMA:
                self.read()  # consume ','
                args.append(self.parse_expression(0))

        self.expect(TokenType.RPAREN)
        return FunctionCall(name=name.upper(), arguments=tuple(args))

    def _cell_reference(self, token: Token) -> CellReference:
        try:
            return parse_address(token.value)
        except InvalidAddress:
            raise ParseError(f"Invalid cell reference: {token.value}", token)

    @staticmethod
    def _describe(token: Token) -> str:
        if token.type == TokenType.EOF and not token.value:
            return "end of formula"
        return f"{token.type.name} '{token.value}'"
