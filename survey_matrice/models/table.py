from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

"""Cell / Table models for spreadsheet snapshots.

A fetched sheet (Google Visualization response or local workbook) is resolved
once into these types at the reader boundary, so that matching code never has
to branch on the raw JSON shape (string | number | {v, f} object).
"""

__all__ = [
    "CellKind",
    "Cell",
    "EMPTY",
    "Table",
]


class CellKind(Enum):
    EMPTY = "empty"
    NUMBER = "number"
    TEXT = "text"


def _format_number(value: float) -> str:
    # 5.0 -> "5", 4.25 -> "4.25" (same rendering as the sheet JSON)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


@dataclass(frozen=True)
class Cell:
    """Tagged cell value: Empty, Number(n) or Text(s).

    ``display`` is the sheet's own formatted rendering ("4,25", "85 %") when
    the source provides one; ``value`` stays the raw value used for date and
    serial comparisons.
    """
    kind: CellKind
    value: float | str | None = None
    display: str | None = None

    @staticmethod
    def empty() -> Cell:
        return EMPTY

    @staticmethod
    def number(value: float, display: str | None = None) -> Cell:
        return Cell(CellKind.NUMBER, value, display or None)

    @staticmethod
    def string(value: str, display: str | None = None) -> Cell:
        if value.strip() == "":
            return EMPTY
        return Cell(CellKind.TEXT, value, display or None)

    @property
    def is_empty(self) -> bool:
        if self.kind is CellKind.EMPTY:
            return True
        if self.kind is CellKind.TEXT:
            return str(self.value).strip() == ""
        return False

    @property
    def text(self) -> str:
        """Display string: the sheet's formatted value when known, else the raw value."""
        if self.display is not None and self.kind is not CellKind.EMPTY:
            return self.display
        return self.raw_text

    @property
    def raw_text(self) -> str:
        """Raw value rendered as text, ignoring the sheet formatting."""
        if self.kind is CellKind.EMPTY or self.value is None:
            return ""
        if self.kind is CellKind.NUMBER:
            return _format_number(self.value)  # type: ignore[arg-type]
        return str(self.value)


EMPTY = Cell(CellKind.EMPTY, None)


@dataclass
class Table:
    """Ordered column labels plus ragged rows of cells.

    Rows may be shorter than ``columns``; missing positions read as Empty.
    """
    columns: list[str]
    rows: list[list[Cell]] = field(default_factory=list)

    @staticmethod
    def from_values(columns: Sequence[str], rows: Sequence[Sequence[object]]) -> Table:
        """Build a table from plain python values (None/"" -> Empty)."""
        built: list[list[Cell]] = []
        for raw in rows:
            cells: list[Cell] = []
            for v in raw:
                if v is None:
                    cells.append(EMPTY)
                elif isinstance(v, Cell):
                    cells.append(v)
                elif isinstance(v, bool):
                    cells.append(Cell.string("true" if v else "false"))
                elif isinstance(v, (int, float)):
                    cells.append(EMPTY if isinstance(v, float) and math.isnan(v) else Cell.number(v))
                else:
                    cells.append(Cell.string(str(v)))
            built.append(cells)
        return Table(columns=[str(c) if c is not None else "" for c in columns], rows=built)

    @property
    def width(self) -> int:
        widest = max((len(r) for r in self.rows), default=0)
        return max(len(self.columns), widest)

    def label(self, index: int) -> str:
        if 0 <= index < len(self.columns):
            return self.columns[index] or ""
        return ""

    def cell(self, row_index: int, col_index: int) -> Cell:
        if row_index < 0 or row_index >= len(self.rows) or col_index < 0:
            return EMPTY
        row = self.rows[row_index]
        if col_index >= len(row):
            return EMPTY
        return row[col_index]

    def row(self, row_index: int) -> list[Cell]:
        if 0 <= row_index < len(self.rows):
            return self.rows[row_index]
        return []

    def is_blank_row(self, row_index: int) -> bool:
        return all(c.is_empty for c in self.row(row_index))

    def non_blank_row_indexes(self) -> list[int]:
        return [i for i in range(len(self.rows)) if not self.is_blank_row(i)]
