"""cellgraph - spreadsheet cells with formulas kept consistent through a dependency graph."""

from cellgraph.cell import Cell, CellKind, FormulaCell, NumberCell, StringCell
from cellgraph.errors import (
    CycleError,
    EvaluationError,
    FormulaSyntaxError,
    IdentifierFormatError,
    ParseError,
    SheetError,
    TokenizerError,
)
from cellgraph.graph import DependencyGraph
from cellgraph.parser import parse_formula
from cellgraph.sheet import Spreadsheet

__all__ = [
    "Cell",
    "CellKind",
    "CycleError",
    "DependencyGraph",
    "EvaluationError",
    "FormulaCell",
    "FormulaSyntaxError",
    "IdentifierFormatError",
    "NumberCell",
    "ParseError",
    "SheetError",
    "Spreadsheet",
    "StringCell",
    "TokenizerError",
    "parse_formula",
]
