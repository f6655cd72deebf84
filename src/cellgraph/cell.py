"""
Spreadsheet cells.

A cell is built once from the text typed into it and is replaced, never
edited, when that text changes. Three kinds exist:

- numbers, whose contents parse as a floating point literal
- formulas, whose contents start with `=` and hold a parsed expression tree
- strings, anything else

Only formulas carry state that changes after construction: their value is
recomputed by `update_value()` whenever a cell they read from changes.
"""

import logging
import math
from enum import Enum
from typing import Mapping, Optional

from cellgraph.ast import (
    ASTNode,
    BinaryOperation,
    CellReference,
    Constant,
    UnaryOperation,
)
from cellgraph.errors import EvaluationError
from cellgraph.parser import parse_formula, references
from cellgraph.utils import format_number, parse_number

ERROR_DISPLAY = "ERROR"


class CellKind(str, Enum):
    NUMBER = "number"
    STRING = "string"
    FORMULA = "formula"


class Cell:
    kind: CellKind

    def __init__(self, contents: str):
        self._contents = contents

    @staticmethod
    def make(contents: Optional[str]) -> Optional["Cell"]:
        """
        Build the cell matching `contents`, or None for blank contents.

        Formula cells start out in the error state: their formula can only be
        evaluated once the other cells of the sheet are known, through
        `update_value()`. Raises a FormulaSyntaxError for malformed formulas.
        """
        if contents is None:
            return None
        contents = contents.strip()
        if not contents:
            return None

        try:
            return NumberCell(contents, parse_number(contents))
        except ValueError:
            pass
        if contents.startswith("="):
            return FormulaCell(contents, parse_formula(contents[1:]))
        return StringCell(contents)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._contents!r})"

    @property
    def contents(self) -> str:
        """The trimmed text the cell was created from."""
        return self._contents

    @property
    def display_string(self) -> str:
        return self._contents

    @property
    def number_value(self) -> Optional[float]:
        return None

    @property
    def is_error(self) -> bool:
        return False

    def upstream_ids(self) -> frozenset[str]:
        """Ids of the cells this cell reads from."""
        return frozenset()

    def update_value(self, cells: Mapping[str, "Cell"]) -> None:
        """Recompute the value of the cell. Only formulas have anything to do."""


class NumberCell(Cell):
    kind = CellKind.NUMBER

    def __init__(self, contents: str, value: float):
        super().__init__(contents)
        self._value = value

    @property
    def number_value(self) -> Optional[float]:
        return self._value


class StringCell(Cell):
    kind = CellKind.STRING


class FormulaCell(Cell):
    kind = CellKind.FORMULA

    def __init__(self, contents: str, tree: ASTNode):
        super().__init__(contents)
        self.tree = tree
        self._upstream_ids = references(tree)
        self._value: Optional[float] = None
        self._display = ERROR_DISPLAY

    @property
    def display_string(self) -> str:
        return self._display

    @property
    def number_value(self) -> Optional[float]:
        return self._value

    @property
    def is_error(self) -> bool:
        return self._value is None

    def upstream_ids(self) -> frozenset[str]:
        return self._upstream_ids

    def update_value(self, cells: Mapping[str, Cell]) -> None:
        """
        Re-evaluate the formula against `cells`.

        Never raises: a formula that cannot be computed puts the cell in the
        error state instead.
        """
        try:
            value = evaluate_tree(self.tree, cells)
        except EvaluationError as e:
            logging.debug(f"{self.contents!r} evaluates to {ERROR_DISPLAY}: {e}")
            self._value = None
            self._display = ERROR_DISPLAY
            return
        self._value = value
        self._display = format_number(value)


def evaluate_tree(
    node: ASTNode,
    cells: Mapping[str, Cell],
    memo: Optional[dict[str, float]] = None,
) -> float:
    """
    Evaluate a formula tree, reading referenced cells from `cells`.

    Referenced formula cells are evaluated from their own trees rather than
    their cached values. Each of them is computed once per call, upstream
    first, and the results are kept in `memo`.

    Raises EvaluationError if a referenced cell is blank, holds text, or is a
    formula in the error state.
    """
    if memo is None:
        memo = {}
    for id in _referenced_formulas(node, cells, memo):
        formula = cells[id]
        assert isinstance(formula, FormulaCell)
        memo[id] = _evaluate_node(formula.tree, cells, memo)
    return _evaluate_node(node, cells, memo)


def _referenced_formulas(
    node: ASTNode, cells: Mapping[str, Cell], memo: dict[str, float]
) -> list[str]:
    """
    Healthy formula cells reachable from `node` and missing from `memo`,
    ordered so each one follows the formulas it reads from.
    """
    order: list[str] = []
    visiting: set[str] = set()
    done: set[str] = set(memo)

    def healthy_formulas(ids: frozenset[str]) -> list[str]:
        return sorted(
            id
            for id in ids
            if isinstance(cell := cells.get(id), FormulaCell) and not cell.is_error
        )

    stack = [iter(healthy_formulas(references(node)))]
    path: list[str] = []
    while stack:
        id = next(stack[-1], None)
        if id is None:
            stack.pop()
            if path:
                finished = path.pop()
                visiting.discard(finished)
                done.add(finished)
                order.append(finished)
            continue
        if id in done:
            continue
        if id in visiting:
            raise EvaluationError(f"Circular reference through {id}")
        visiting.add(id)
        path.append(id)
        stack.append(iter(healthy_formulas(cells[id].upstream_ids())))

    return order


def _evaluate_node(
    node: ASTNode, cells: Mapping[str, Cell], memo: dict[str, float]
) -> float:
    if isinstance(node, Constant):
        return node.value

    elif isinstance(node, BinaryOperation):
        left = _evaluate_node(node.left, cells, memo)
        right = _evaluate_node(node.right, cells, memo)
        match node.operator:
            case "+":
                return left + right
            case "-":
                return left - right
            case "*":
                return left * right
            case "/":
                return divide(left, right)
            case _:
                raise ValueError(f"Unknown operator: {node.operator}")

    elif isinstance(node, UnaryOperation):
        value = _evaluate_node(node.operand, cells, memo)
        match node.operator:
            case "-":
                return -value
            case _:
                raise ValueError(f"Unknown unary operator: {node.operator}")

    elif isinstance(node, CellReference):
        return _evaluate_cell_ref(node.id, cells, memo)

    raise ValueError(f"Unknown node type: {type(node)}")


def _evaluate_cell_ref(
    id: str, cells: Mapping[str, Cell], memo: dict[str, float]
) -> float:
    cell = cells.get(id)
    if cell is None:
        raise EvaluationError(f"Cell {id} is blank")
    if cell.kind == CellKind.STRING:
        raise EvaluationError(f"Cell {id} holds text")
    if cell.is_error:
        raise EvaluationError(f"Cell {id} is in error")
    if id in memo:
        return memo[id]
    value = cell.number_value
    assert value is not None
    return value


def divide(left: float, right: float) -> float:
    """IEEE 754 division: x/0 gives a signed infinity and 0/0 gives NaN."""
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right
