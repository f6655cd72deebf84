from typing import Callable, List, Optional

from cellgraph.errors import ParseError
from cellgraph.utils import is_valid_id, parse_number
from .tokenizer import Token, TokenType, FormulaTokenizer
from .ast import (
    ASTNode,
    BinaryOperation,
    CellReference,
    Constant,
    UnaryOperation,
)


def parse_formula(formula: str) -> ASTNode:
    """Parse formula text (without its leading '=') into an AST."""
    tokens = FormulaTokenizer(formula).tokenize()
    return FormulaParser(tokens).parse()


def references(node: ASTNode) -> frozenset[str]:
    """Collect the ids of every cell referenced by the tree."""
    ids: set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, CellReference):
            ids.add(current.id)
        elif isinstance(current, BinaryOperation):
            stack.append(current.left)
            stack.append(current.right)
        elif isinstance(current, UnaryOperation):
            stack.append(current.operand)
    return frozenset(ids)


class FormulaParser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.current = 0

    def parse(self) -> ASTNode:
        """Parse tokens into an AST, requiring every token to be consumed."""
        self.current = 0
        node = self.parse_expression()
        if (extra := self.peek()) is not None:
            raise ParseError(
                f"Unexpected token: {extra.value!r} at position {extra.position}"
            )
        return node

    def peek(self) -> Optional[Token]:
        """Look at the current token without consuming it."""
        if self.current >= len(self.tokens):
            return None
        return self.tokens[self.current]

    def read(self) -> Token:
        """Consume and return the current token."""
        if self.current >= len(self.tokens):
            raise ParseError("Unexpected end of formula")
        tok = self.tokens[self.current]
        self.current += 1
        return tok

    def read_if_match(self, *types: TokenType) -> Optional[Token]:
        """Consume and return current token if it matches any of the given types."""
        token = self.peek()
        if token is not None and token.type in types:
            self.current += 1
            return token
        return None

    def _parse_binary_operation(
        self, parse_operand: Callable[[], ASTNode], valid_operators: set[str]
    ) -> ASTNode:
        """Parse a left-associative chain of the given operators."""
        left = parse_operand()

        while True:
            next_tok = self.peek()
            if (
                not next_tok
                or next_tok.type != TokenType.OPERATOR
                or next_tok.value not in valid_operators
            ):
                break

            self.read()  # consume operator
            right = parse_operand()
            left = BinaryOperation(left=left, operator=next_tok.value, right=right)

        return left

    def parse_expression(self) -> ASTNode:
        """Parse addition/subtraction (lowest precedence)."""
        return self._parse_binary_operation(self.parse_term, {"+", "-"})

    def parse_term(self) -> ASTNode:
        """Parse multiplication/division (*, /)."""
        return self._parse_binary_operation(self.parse_factor, {"*", "/"})

    def parse_factor(self) -> ASTNode:
        """Parse a factor: negation, number, cell reference or parentheses."""
        token = self.peek()
        if token is None:
            raise ParseError("Unexpected end of formula")

        if token.type == TokenType.NUMBER:
            self.read()
            try:
                return Constant(parse_number(token.value))
            except ValueError as e:
                raise ParseError(
                    f"Invalid number {token.value!r} at position {token.position}"
                ) from e

        elif token.type == TokenType.IDENTIFIER:
            self.read()
            if not is_valid_id(token.value):
                raise ParseError(f"Invalid cell reference: {token.value}")
            return CellReference(token.value)

        elif token.type == TokenType.OPERATOR and token.value == "-":
            operator = self.read().value
            operand = self.parse_factor()
            return UnaryOperation(operator=operator, operand=operand)

        elif token.type == TokenType.LPAREN:
            self.read()  # consume '('
            expr = self.parse_expression()
            if not self.read_if_match(TokenType.RPAREN):
                raise ParseError("Expected closing parenthesis ')'")
            return expr

        raise ParseError(
            f"Unexpected token: {token.value!r} at position {token.position}"
        )
