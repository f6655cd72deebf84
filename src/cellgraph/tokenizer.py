from enum import Enum, auto
from typing import List, NamedTuple

from cellgraph.errors import TokenizerError


class TokenType(Enum):
    IDENTIFIER = auto()
    NUMBER = auto()
    OPERATOR = auto()
    LPAREN = auto()
    RPAREN = auto()


class Token(NamedTuple):
    type: TokenType
    value: str
    position: int


DIGITS = "0123456789"


class FormulaTokenizer:
    OPERATORS = "+-*/"

    def __init__(self, formula: str):
        self.formula = formula.strip()
        self.pos = 0
        self.length = len(self.formula)

    def tokenize(self) -> List[Token]:
        """Tokenize the formula and return list of tokens."""
        tokens = []
        while self.pos < self.length:
            char = self.formula[self.pos]

            if char.isspace():
                self.pos += 1
                continue
            elif char in DIGITS or char == ".":
                tokens.append(self._tokenize_number())
            elif char.isalpha():
                tokens.append(self._tokenize_identifier())
            elif char in self.OPERATORS:
                tokens.append(Token(TokenType.OPERATOR, char, self.pos))
                self.pos += 1
            elif char == "(":
                tokens.append(Token(TokenType.LPAREN, char, self.pos))
                self.pos += 1
            elif char == ")":
                tokens.append(Token(TokenType.RPAREN, char, self.pos))
                self.pos += 1
            else:
                raise TokenizerError(
                    f"Unexpected character: {char} at position {self.pos}"
                )

        return tokens

    def _tokenize_identifier(self) -> Token:
        """Tokenize a cell id. Validation of its shape is left to the parser."""
        start = self.pos
        while self.pos < self.length and self.formula[self.pos].isalnum():
            self.pos += 1

        return Token(TokenType.IDENTIFIER, self.formula[start : self.pos], start)

    def _tokenize_number(self) -> Token:
        """Tokenize a number (integer or decimal)."""
        start = self.pos
        seen_decimal = False
        has_digits = False
        seen_exponent = False

        while self.pos < self.length:
            char = self.formula[self.pos]

            if char in DIGITS:
                has_digits = True
                self.pos += 1
            elif char == "." and not seen_decimal and not seen_exponent:
                seen_decimal = True
                self.pos += 1
            elif char == ".":
                raise TokenizerError(
                    f"Invalid number format at position {start}: misplaced decimal point"
                )
            elif (char == "e" or char == "E") and not seen_exponent and has_digits:
                seen_exponent = True
                self.pos += 1
                # Optional sign after e/E
                if self.pos < self.length and (self.formula[self.pos] in "+-"):
                    self.pos += 1
                if self.pos >= self.length or self.formula[self.pos] not in DIGITS:
                    raise TokenizerError(
                        f"Invalid scientific notation at position {start}: missing exponent"
                    )
            else:
                break

        value = self.formula[start : self.pos]

        if not has_digits:
            raise TokenizerError(
                f"Invalid number format at position {start}: no digits"
            )
        elif value.endswith("."):
            raise TokenizerError(
                f"Invalid number format at position {start}: trailing decimal point"
            )

        return Token(TokenType.NUMBER, value, start)
