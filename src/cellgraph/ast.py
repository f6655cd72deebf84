from typing import NamedTuple


class BinaryOperation(NamedTuple):
    left: "ASTNode"
    operator: str
    right: "ASTNode"


class UnaryOperation(NamedTuple):
    operator: str
    operand: "ASTNode"


class CellReference(NamedTuple):
    id: str


class Constant(NamedTuple):
    value: float


# Type alias for all possible AST nodes
ASTNode = BinaryOperation | UnaryOperation | CellReference | Constant
