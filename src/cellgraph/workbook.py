from pathlib import Path
from typing import IO

import openpyxl
import pandas as pd
from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from cellgraph.cell import CellKind
from cellgraph.sheet import Spreadsheet
from cellgraph.utils import column_as_int, split_id

# Widest column openpyxl can address (XFD)
MAX_COLUMN = 16384


def to_workbook(sheet: Spreadsheet, sheet_name: str = "Sheet1") -> Workbook:
    """
    Copy the contents of the spreadsheet into a new openpyxl workbook.

    Numbers are written as numbers, formulas and strings as their text.
    """
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = sheet_name

    for id in sheet.ids():
        cell = sheet.get_cell(id)
        assert cell is not None
        col, row = split_id(id)
        col_idx = column_as_int(col)
        if col_idx > MAX_COLUMN:
            raise ValueError(f"Cell {id} is out of the range of an Excel worksheet")
        if cell.kind == CellKind.NUMBER:
            ws.cell(row=row, column=col_idx, value=cell.number_value)
        else:
            ws.cell(row=row, column=col_idx, value=cell.contents)
    return wb


def save_workbook(
    sheet: Spreadsheet, path: str | Path | IO[bytes], sheet_name: str = "Sheet1"
) -> None:
    to_workbook(sheet, sheet_name=sheet_name).save(path)


def _cell_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def from_worksheet(ws: Worksheet) -> Spreadsheet:
    """Build a spreadsheet from the values and formulas of an openpyxl worksheet."""
    sheet = Spreadsheet()
    for row in ws.iter_rows():
        for cell in row:
            text = _cell_text(cell.value)
            if text is None or not text.strip():
                continue
            sheet.set_cell(f"{get_column_letter(cell.column)}{cell.row}", text)
    return sheet


def load_workbook(
    path: str | Path | IO[bytes], sheet_name: str | None = None
) -> Spreadsheet:
    """Load a spreadsheet from an .xlsx file, using the active sheet by default."""
    wb = openpyxl.load_workbook(path)
    ws = wb[sheet_name] if sheet_name is not None else wb.active
    assert ws is not None
    return from_worksheet(ws)


def to_frame(sheet: Spreadsheet) -> pd.DataFrame:
    """One row per non-blank cell, in the same order as the text rendering."""
    rows = []
    for id in sheet.ids():
        cell = sheet.get_cell(id)
        assert cell is not None
        rows.append(
            {
                "id": id,
                "value": cell.display_string,
                "contents": cell.contents,
                "kind": cell.kind.value,
                "error": cell.is_error,
            }
        )
    return pd.DataFrame(rows, columns=["id", "value", "contents", "kind", "error"])
