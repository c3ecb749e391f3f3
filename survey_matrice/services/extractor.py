from __future__ import annotations

from ..models.config_models import MatchSettings
from ..models.match_result import CategoryRecord, MatchLayer, MatchResult
from ..models.table import Table
from .layout import (
    NAME_LABELS,
    column_letter,
    feedback_index,
    feedback_row,
    overall_index,
    overall_row,
)
from .normalizer import normalize_text

"""Category extractor: pure readout of a resolved matrice slot.

Values are copied verbatim as display strings. Numeric validation (comma as
decimal separator, "—" placeholders, stray spaces) is left to the display side.
"""

__all__ = [
    "synthetic_label",
    "extract_row",
    "extract_column",
]


def synthetic_label(index: int) -> str:
    """Display name for a blank header (1-based)."""
    return f"Col {index + 1}"


def _value_or_none(text: str) -> str | None:
    return text if text != "" else None


def extract_row(
    table: Table,
    row_index: int,
    settings: MatchSettings,
    *,
    layer: MatchLayer = MatchLayer.ROW_SCAN,
    ambiguous: bool = False,
) -> MatchResult:
    """Read one respondent row of a row-per-respondent matrice."""
    cells = table.row(row_index)
    overall_pos = overall_index(cells, settings)

    # positions beyond the row still count when their header is visible
    last_label = max((i for i, c in enumerate(table.columns) if (c or "").strip()), default=-1)
    span = max(len(cells), last_label + 1)

    categories: list[CategoryRecord] = []
    for i in range(1, span):
        if i == overall_pos:
            continue
        label = table.label(i).strip()
        cell = table.cell(row_index, i)
        if not label and cell.is_empty:
            continue
        categories.append(CategoryRecord(name=table.label(i) if label else synthetic_label(i), value=cell.text))

    overall = None
    if overall_pos is not None:
        overall = _value_or_none(table.cell(row_index, overall_pos).text)

    feedback = None
    exact = feedback_index(table.columns, settings)
    if exact is not None and not table.cell(row_index, exact).is_empty:
        feedback = table.cell(row_index, exact).text
    elif not table.cell(row_index, settings.feedback_fallback_column).is_empty:
        feedback = table.cell(row_index, settings.feedback_fallback_column).text

    return MatchResult(
        categories=categories,
        overall=overall,
        column=None,
        feedback=feedback,
        layer=layer,
        ambiguous=ambiguous,
    )


def extract_column(
    table: Table,
    column_index: int,
    settings: MatchSettings,
    *,
    layer: MatchLayer = MatchLayer.COLUMN_SCAN,
) -> MatchResult:
    """Read one respondent column of a column-per-respondent matrice.

    Rows play the role of headers: the first cell of each row is the category
    label. The overall row (a "moyenne" row or the last filled row) and a
    "Nom" row are not categories.
    """
    overall_pos = overall_row(table, column_index)

    categories: list[CategoryRecord] = []
    for i, row in enumerate(table.rows):
        if i == overall_pos:
            continue
        label_cell = row[0] if row else None
        label = label_cell.text.strip() if label_cell is not None else ""
        if normalize_text(label) in NAME_LABELS:
            continue
        cell = table.cell(i, column_index)
        if not label and cell.is_empty:
            continue
        categories.append(CategoryRecord(name=label_cell.text if label else synthetic_label(i), value=cell.text))  # type: ignore[union-attr]

    overall = None
    if overall_pos is not None:
        overall = _value_or_none(table.cell(overall_pos, column_index).text)

    feedback = None
    exact = feedback_row(table, settings)
    if exact is not None and not table.cell(exact, column_index).is_empty:
        feedback = table.cell(exact, column_index).text
    elif not table.cell(settings.feedback_fallback_column, column_index).is_empty:
        feedback = table.cell(settings.feedback_fallback_column, column_index).text

    return MatchResult(
        categories=categories,
        overall=overall,
        column=column_letter(column_index),
        feedback=feedback,
        layer=layer,
    )
