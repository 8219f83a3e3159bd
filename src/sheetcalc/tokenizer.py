from enum import Enum, auto
from string import ascii_letters, digits
from typing import List, NamedTuple


class TokenType(Enum):
    NUMBER = auto()
    STRING = auto()
    CELL_REF = auto()
    FUNCTION = auto()
    BOOLEAN = auto()
    OPERATOR = auto()
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    COLON = auto()
    EOF = auto()  # Also emitted for unknown characters, carrying the character


class Token(NamedTuple):
    type: TokenType
    value: str
    position: int


class FormulaTokenizer:
    OPERATORS = "+-*/^<>="
    TWO_CHAR_OPERATORS = {"<": {"=", ">"}, ">": {"="}}
    PUNCTUATION = {
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
    }

    def __init__(self, formula: str):
        # The leading "=" only marks the text as a formula
        self.formula = formula[1:] if formula.startswith("=") else formula
        self.pos = 0
        self.length = len(self.formula)

    def tokenize(self) -> List[Token]:
        """Tokenize the whole formula, including the final EOF token."""
        tokens = []
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type == TokenType.EOF:
                return tokens

    def peek(self) -> Token:
        """Return the next token without consuming it."""
        saved_pos = self.pos
        token = self.next_token()
        self.pos = saved_pos
        return token

    def next_token(self) -> Token:
        """Scan and return the next token."""
        while self.pos < self.length and self.formula[self.pos].isspace():
            self.pos += 1

        if self.pos >= self.length:
            return Token(TokenType.EOF, "", self.pos)

        char = self.formula[self.pos]

        if char in self.OPERATORS:
            return self._tokenize_operator()
        elif char in self.PUNCTUATION:
            self.pos += 1
            return Token(self.PUNCTUATION[char], char, self.pos - 1)
        elif char == '"':
            return self._tokenize_string()
        elif char in digits or (char == "." and self._peek_char(1).isdigit()):
            return self._tokenize_number()
        elif char in ascii_letters or char == "$":
            return self._tokenize_identifier()

        # Unknown character, left for the parser to report
        self.pos += 1
        return Token(TokenType.EOF, char, self.pos - 1)

    def _peek_char(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.formula[index] if index < self.length else ""

    def _consume_while(self, allowed: str) -> str:
        start = self.pos
        while self.pos < self.length and self.formula[self.pos] in allowed:
            self.pos += 1
        return self.formula[start : self.pos]

    def _tokenize_operator(self) -> Token:
        """Tokenize an operator (+, -, *, /, ^, =, <, >, <=, >=, <>)."""
        start = self.pos
        current_char = self.formula[self.pos]
        self.pos += 1
        next_char = self._peek_char()
        if next_char in self.TWO_CHAR_OPERATORS.get(current_char, ()):
            self.pos += 1
            return Token(TokenType.OPERATOR, current_char + next_char, start)
        return Token(TokenType.OPERATOR, current_char, start)

    def _tokenize_string(self) -> Token:
        """Tokenize a double-quoted string. There is no escape syntax, and an
        unterminated string runs to the end of the formula."""
        start = self.pos
        self.pos += 1  # Skip opening quote
        value = self._consume_until('"')
        if self.pos < self.length:
            self.pos += 1  # Skip closing quote
        return Token(TokenType.STRING, value, start)

    def _consume_until(self, stop: str) -> str:
        start = self.pos
        while self.pos < self.length and self.formula[self.pos] != stop:
            self.pos += 1
        return self.formula[start : self.pos]

    def _tokenize_number(self) -> Token:
        """Tokenize a run of digits and dots. Validation happens in the
        parser."""
        start = self.pos
        return Token(TokenType.NUMBER, self._consume_while(digits + "."), start)

    def _tokenize_identifier(self) -> Token:
        """Tokenize a cell reference, function name or boolean."""
        start = self.pos
        self._consume_while("$")
        letters = self._consume_while(ascii_letters).upper()
        self._consume_while("$")
        row = self._consume_while(digits)
        value = self.formula[start : self.pos].upper()

        if letters and row:
            return Token(TokenType.CELL_REF, value, start)

        if value == letters:
            if self._peek_char() == "(":
                return Token(TokenType.FUNCTION, letters, start)
            if letters in ("TRUE", "FALSE"):
                return Token(TokenType.BOOLEAN, letters, start)

        # Incomplete reference, the parser rejects it
        return Token(TokenType.CELL_REF, value, start)
