import math
import re

from cellgraph import ast

# Constants
ID_REGEX = re.compile(r"[A-Z]+[1-9][0-9]*")
ID_PARTS_REGEX = re.compile(r"([A-Z]+)([1-9][0-9]*)")

# Same literals Java's Double.parseDouble accepts for decimal input
NUMBER_REGEX = re.compile(
    r"[+-]?(NaN|Infinity|((\d+\.?\d*|\.\d+)([eE][+-]?\d+)?)[fFdD]?)",
    re.ASCII,
)


def is_valid_id(id: str) -> bool:
    return isinstance(id, str) and ID_REGEX.fullmatch(id) is not None


def column_as_int(col: str) -> int:
    """Convert column letters to their 1-based index: A -> 1, Z -> 26, AA -> 27."""
    index = 0
    for char in col:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index


def split_id(id: str) -> tuple[str, int]:
    """Split a well formed id into its column letters and row number."""
    match = ID_PARTS_REGEX.fullmatch(id)
    if not match:
        raise ValueError(f"Invalid cell id: {id}")
    col, row = match.groups()
    return col, int(row)


def id_sort_key(id: str) -> tuple[int, int, str]:
    """Order ids column first, then by row number, so A2 sorts before A10."""
    match = ID_PARTS_REGEX.fullmatch(id)
    if not match:
        # Malformed ids never reach a sheet, but keep sorting total anyway
        return (0, 0, id)
    col, row = match.groups()
    return (column_as_int(col), int(row), id)


def parse_number(val: str) -> float:
    """Parse a number literal, raising ValueError for anything else.

    Python's float() is more permissive than a cell should be (it accepts
    "inf", "nan" and underscores), so the text is checked first.
    """
    if not NUMBER_REGEX.fullmatch(val):
        raise ValueError(f"Not a number: {val!r}")
    return float(val.rstrip("fFdD"))


def format_number(value: float) -> str:
    """Render a number with exactly one digit after the decimal point.

    Non-finite values render as Infinity, -Infinity and NaN, the same
    spellings a number cell accepts.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return f"{value:.1f}"


def format_ast(node: ast.ASTNode) -> str:
    """Render an AST back to fully parenthesised formula text."""
    if isinstance(node, ast.BinaryOperation):
        return f"({format_ast(node.left)} {node.operator} {format_ast(node.right)})"
    elif isinstance(node, ast.UnaryOperation):
        return f"{node.operator}{format_ast(node.operand)}"
    elif isinstance(node, ast.CellReference):
        return node.id
    elif isinstance(node, ast.Constant):
        return repr(node.value)
    raise ValueError(f"Unknown node type: {type(node)}")
