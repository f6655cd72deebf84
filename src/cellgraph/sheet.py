import logging
from typing import Iterator, Optional

from cellgraph.cell import Cell
from cellgraph.errors import CycleError, IdentifierFormatError
from cellgraph.graph import DependencyGraph
from cellgraph.utils import id_sort_key, is_valid_id


def _escape(contents: str) -> str:
    return contents.replace("\\", "\\\\").replace("\n", "\\n")


def _unescape(text: str) -> str:
    chars = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            chars.append("\n" if nxt == "n" else nxt)
            i += 2
            continue
        chars.append(char)
        i += 1
    return "".join(chars)


class Spreadsheet:
    """
    Maps cell ids to cells and keeps formula values up to date.

    Every edit goes through the dependency graph first, so an edit that would
    create a cycle is refused before the cells are touched.
    """

    def __init__(self):
        self.cells: dict[str, Cell] = {}
        self.graph = DependencyGraph()

    def __contains__(self, id: str) -> bool:
        return id in self.cells

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())

    def ids(self) -> list[str]:
        """Ids of the non-blank cells, column by column then row by row."""
        return sorted(self.cells, key=id_sort_key)

    def __str__(self) -> str:
        lines = [
            f"{'ID':>6} |{'Value':>7} | Contents",
            "-------+--------+---------------",
        ]
        for id in self.ids():
            lines.append(
                f"{id:>6} |{self.get_cell_display_string(id):>7} | '{self.get_cell_contents(id)}'"
            )
        lines.append("")
        lines.append("Cell Dependencies")
        return "\n".join(lines) + "\n" + str(self.graph)

    @staticmethod
    def verify_id_format(id: str) -> None:
        if not is_valid_id(id):
            raise IdentifierFormatError(f"Cell id '{id}' is badly formatted")

    def get_cell(self, id: str) -> Optional[Cell]:
        return self.cells.get(id)

    def get_cell_display_string(self, id: str) -> str:
        """Value shown for the cell, "" when blank."""
        cell = self.cells.get(id)
        if cell is None:
            return ""
        return cell.display_string

    def get_cell_contents(self, id: str) -> str:
        """Text the cell was set to, "" when blank."""
        cell = self.cells.get(id)
        if cell is None:
            return ""
        return cell.contents

    def set_cell(self, id: str, contents: Optional[str]) -> None:
        """
        Set the contents of a cell and update every cell that depends on it.

        Blank contents delete the cell. Raises IdentifierFormatError for a
        malformed id, FormulaSyntaxError for a malformed formula and
        CycleError when the formula would make the cell depend on itself;
        in all three cases the sheet is left unchanged.
        """
        if contents is None or not contents.strip():
            self.delete_cell(id)
            return

        self.verify_id_format(id)
        cell = Cell.make(contents)
        assert cell is not None

        try:
            self.graph.insert(id, cell.upstream_ids())
        except CycleError as e:
            logging.warning(f"Refusing {contents!r} for {id}: {e}")
            raise CycleError(
                f"Cell {id} with formula '{contents}' creates cycle: {e}",
                path=e.path,
            ) from e

        self.cells[id] = cell
        cell.update_value(self.cells)
        logging.debug(f"{id} set to {cell.contents!r}, shows {cell.display_string!r}")
        self.notify_downstream_of_change(id)

    def delete_cell(self, id: str) -> None:
        """Blank a cell. Formulas reading from it fall into the error state."""
        if id not in self.cells:
            return
        dependents = self.graph.dependents_in_order(id)
        del self.cells[id]
        self.graph.remove(id)
        self._recompute(dependents)

    def notify_downstream_of_change(self, id: str) -> None:
        """Re-evaluate every cell that reads, directly or not, from `id`."""
        self._recompute(self.graph.dependents_in_order(id))

    def _recompute(self, ids: list[str]) -> None:
        if ids:
            logging.debug(f"Recomputing {', '.join(ids)}")
        for id in ids:
            cell = self.cells.get(id)
            if cell is not None:
                cell.update_value(self.cells)

    def to_save_string(self) -> str:
        """One `ID contents` line per cell; `from_save_string` reverses it."""
        return "".join(
            f"{id} {_escape(self.get_cell_contents(id))}\n" for id in self.ids()
        )

    @classmethod
    def from_save_string(cls, text: str) -> "Spreadsheet":
        sheet = cls()
        # Only "\n" separates lines: other line breaks may appear in contents
        for line in text.split("\n"):
            if not line.strip():
                continue
            id, _, contents = line.strip().partition(" ")
            sheet.set_cell(id, _unescape(contents))
        return sheet
