from __future__ import annotations

import logging

from ..models.config_models import MatchSettings
from ..models.identifier import Identifier
from ..models.match_result import MatchLayer, MatchResult, MatchSlot, MatriceLayout
from ..models.table import Table
from .extractor import extract_column, extract_row
from .layout import (
    NormalizedQuery,
    find_anonymous_row,
    find_candidate_rows,
    find_respondent_column,
    row_has_date,
)

"""Respondent matcher: locate one respondent in a matrice sheet.

Layers are tried in order and the first one that yields a slot wins:

1. explicit row override (1-based, in range) - no identifier search at all
2. row-per-respondent scan of every matrice cell (email / name), with
   date-assisted disambiguation and the "Anonyme" row convention
3. column-per-respondent scan of the matrice column labels
4. cross-sheet positional fallback: the respondent's row index in the
   respondent sheet is reused in the matrice (row-synchronized sheets are a
   convention of the hotels, not something that can be verified)
5. not found - a normal outcome, returned as an all-None MatchResult

Known limitation: when several rows match and no date disambiguates them, the
first row wins. Two respondents sharing a name on the same day may therefore
be mis-attributed. The tie is logged and flagged, not resolved further.
"""

__all__ = [
    "match_respondent",
    "locate_slot",
    "find_respondent_row",
    "pick_candidate",
]

logger = logging.getLogger(__name__)


def pick_candidate(table: Table, candidates: list[int], query: NormalizedQuery) -> tuple[int, bool]:
    """Choose among candidate rows; returns (row_index, ambiguous).

    A single candidate wins outright, and so does the only candidate carrying
    the query date. Otherwise the first (dated) candidate by row order wins
    and the choice is flagged ambiguous.
    """
    if len(candidates) == 1:
        return candidates[0], False
    dated = [idx for idx in candidates if row_has_date(table.row(idx), query.date)]
    if len(dated) == 1:
        return dated[0], False
    if dated:
        return dated[0], True
    return candidates[0], True


def _search_rows(table: Table, query: NormalizedQuery) -> tuple[int, MatchLayer, bool] | None:
    candidates = find_candidate_rows(table, query)
    if candidates:
        idx, ambiguous = pick_candidate(table, candidates, query)
        if ambiguous:
            logger.warning(
                f"ambiguous match: rows={[c + 1 for c in candidates]} share the identifier, "
                f"keeping first row {idx + 1}"
            )
        return idx, MatchLayer.ROW_SCAN, ambiguous
    if not query.name:
        anon = find_anonymous_row(table)
        if anon is not None:
            return anon, MatchLayer.ANONYMOUS, False
    return None


def find_respondent_row(identifier: Identifier, table: Table) -> int | None:
    """Row index of the respondent in the respondent sheet (sheet 1).

    Same identifier rules as the matrice row scan. A date-only query resolves
    to the first row carrying that date.
    """
    query = NormalizedQuery.from_identifier(identifier)
    found = _search_rows(table, query)
    if found is not None:
        return found[0]
    if query.date:
        for i in table.non_blank_row_indexes():
            if row_has_date(table.row(i), query.date):
                return i
    return None


def locate_slot(
    identifier: Identifier,
    respondent_table: Table | None,
    matrice_table: Table,
) -> MatchSlot | None:
    """Resolve the matrice slot (row or column) for ``identifier``, or None."""
    row_count = len(matrice_table.rows)

    if identifier.explicit_row is not None and 0 < identifier.explicit_row <= row_count:
        logger.debug(f"explicit row override: row={identifier.explicit_row}")
        return MatchSlot(MatriceLayout.ROW_PER_RESPONDENT, identifier.explicit_row - 1, MatchLayer.EXPLICIT_ROW)

    query = NormalizedQuery.from_identifier(identifier)

    found = _search_rows(matrice_table, query)
    if found is not None:
        idx, layer, ambiguous = found
        logger.debug(f"{layer.value}: matrice row {idx + 1}")
        return MatchSlot(MatriceLayout.ROW_PER_RESPONDENT, idx, layer, ambiguous)

    col = find_respondent_column(matrice_table, query)
    if col is not None:
        logger.debug(f"column_scan: matrice column index {col}")
        return MatchSlot(MatriceLayout.COLUMN_PER_RESPONDENT, col, MatchLayer.COLUMN_SCAN)

    if respondent_table is not None:
        sheet_row = find_respondent_row(identifier, respondent_table)
        if sheet_row is not None and sheet_row < row_count:
            logger.warning(
                f"positional fallback: respondent sheet row {sheet_row + 1} reused as matrice row "
                f"({identifier.describe()})"
            )
            return MatchSlot(MatriceLayout.ROW_PER_RESPONDENT, sheet_row, MatchLayer.POSITIONAL)

    logger.debug(f"not found: {identifier.describe()}")
    return None


def match_respondent(
    identifier: Identifier,
    respondent_table: Table | None,
    matrice_table: Table,
    settings: MatchSettings | None = None,
) -> MatchResult:
    """Find and read out one respondent's categories, overall score and feedback.

    Args:
        identifier: email / name / date / explicit row of the respondent
        respondent_table: raw survey sheet ("Feuille 1"), used by the positional fallback
        matrice_table: per-category averages sheet, in either orientation
        settings: fixed matrice positions (defaults: overall L, feedback BT)

    Returns:
        MatchResult; ``MatchResult.not_found()`` when no slot exists. Never raises
        for a miss.
    """
    settings = settings or MatchSettings()
    slot = locate_slot(identifier, respondent_table, matrice_table)
    if slot is None:
        return MatchResult.not_found()
    if slot.layout is MatriceLayout.COLUMN_PER_RESPONDENT:
        return extract_column(matrice_table, slot.index, settings, layer=slot.layer)
    return extract_row(matrice_table, slot.index, settings, layer=slot.layer, ambiguous=slot.ambiguous)
