from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from ..models.config_models import MatchSettings
from ..models.identifier import Identifier
from ..models.match_result import MatriceLayout
from ..models.table import Cell, Table
from .normalizer import normalize_date, normalize_text

"""Matrice layout detector.

Hotel staff maintain the matrice sheets by hand, so the orientation differs
per hotel: one respondent per row, or one respondent per column. Nothing is
cached; both orientations are probed for every request.

Header text is preferred over fixed offsets wherever a header is visible.
Fixed offsets (column L for the overall score, column BT for the feedback)
are only used as a last resort.
"""

__all__ = [
    "NormalizedQuery",
    "ANONYMOUS_LABELS",
    "cell_matches",
    "row_matches",
    "row_has_date",
    "find_candidate_rows",
    "find_anonymous_row",
    "find_respondent_column",
    "detect_layout",
    "overall_index",
    "overall_row",
    "feedback_index",
    "feedback_row",
    "column_letter",
]

ANONYMOUS_LABELS = frozenset({"anonyme", "anonym"})
NAME_LABELS = frozenset({"nom", "name"})

_MIN_REVERSE_LEN = 3
_HAS_LETTER_RE = re.compile(r"[a-z]")
_LABEL_STRIP_RE = re.compile(r"[^a-z0-9@]+")


@dataclass(frozen=True)
class NormalizedQuery:
    """Identifier in canonical form ("" when absent)."""
    email: str = ""
    name: str = ""
    date: str = ""  # DD/MM/YYYY

    @staticmethod
    def from_identifier(identifier: Identifier) -> NormalizedQuery:
        return NormalizedQuery(
            email=normalize_text(identifier.email),
            name=normalize_text(identifier.name),
            date=normalize_date(identifier.date) or "",
        )

    @property
    def has_identity(self) -> bool:
        return bool(self.email or self.name)


def _contains_words(haystack: str, needle: str) -> bool:
    pattern = r"(?<![a-z0-9])" + re.escape(needle) + r"(?![a-z0-9])"
    return re.search(pattern, haystack) is not None


def cell_matches(text: str, query: NormalizedQuery) -> bool:
    """True when normalized ``text`` designates the queried respondent.

    Email: exact or cell-contains-email. Name: exact, cell-contains-name, or
    name-contains-cell on word boundaries (partial titles, extra words).
    """
    if not text:
        return False
    if query.email and (text == query.email or query.email in text):
        return True
    if query.name:
        if text == query.name or query.name in text:
            return True
        if (
            len(text) >= _MIN_REVERSE_LEN
            and _HAS_LETTER_RE.search(text)
            and _contains_words(query.name, text)
        ):
            return True
    return False


def row_matches(cells: Sequence[Cell], query: NormalizedQuery) -> bool:
    return any(cell_matches(normalize_text(c), query) for c in cells if not c.is_empty)


def row_has_date(cells: Sequence[Cell], target: str) -> bool:
    if not target:
        return False
    return any(normalize_date(c) == target for c in cells if not c.is_empty)


def find_candidate_rows(table: Table, query: NormalizedQuery) -> list[int]:
    """Row-per-respondent scan: every non-blank row with a matching cell, in row order."""
    if not query.has_identity:
        return []
    return [
        i for i in table.non_blank_row_indexes()
        if row_matches(table.row(i), query)
    ]


def find_anonymous_row(table: Table) -> int | None:
    for i, row in enumerate(table.rows):
        if row and normalize_text(row[0]) in ANONYMOUS_LABELS:
            return i
    return None


def find_respondent_column(table: Table, query: NormalizedQuery) -> int | None:
    """Column-per-respondent scan of the column labels.

    Passes: exact label, then substring either direction, then every name
    token found in the label (handles "DUPONT Jean" vs "jean dupont").
    """
    if not query.has_identity:
        return None
    labels = [normalize_text(c) for c in table.columns]

    for i, lbl in enumerate(labels):
        if lbl and (lbl == query.email or lbl == query.name):
            return i

    for i, lbl in enumerate(labels):
        if cell_matches(lbl, query):
            return i

    tokens = [t for t in (_LABEL_STRIP_RE.sub("", tok) for tok in query.name.split()) if len(t) >= 2]
    if len(tokens) >= 2:
        for i, lbl in enumerate(labels):
            if not lbl:
                continue
            words = set(_LABEL_STRIP_RE.sub(" ", lbl).split())
            if all(t in words for t in tokens):
                return i
    return None


def detect_layout(
    identifier: Identifier,
    table: Table,
) -> MatriceLayout | None:
    """Orientation of ``table`` for this identifier, or None when neither probe matches.

    The row probe runs first; a matching column label is only considered when
    no row matches.
    """
    query = NormalizedQuery.from_identifier(identifier)
    if find_candidate_rows(table, query):
        return MatriceLayout.ROW_PER_RESPONDENT
    if not query.name and find_anonymous_row(table) is not None:
        return MatriceLayout.ROW_PER_RESPONDENT
    if find_respondent_column(table, query) is not None:
        return MatriceLayout.COLUMN_PER_RESPONDENT
    return None


def overall_index(cells: Sequence[Cell], settings: MatchSettings) -> int | None:
    """Column L when filled, else the last non-empty position of the row."""
    pos = settings.overall_column
    if pos < len(cells) and not cells[pos].is_empty:
        return pos
    for i in range(len(cells) - 1, 0, -1):
        if not cells[i].is_empty:
            return i
    return None


def overall_row(table: Table, column: int) -> int | None:
    """Column-layout overall position: a "moyenne ..." row, else the last filled row."""
    for i, row in enumerate(table.rows):
        if row and normalize_text(row[0]).startswith("moyenne") and not table.cell(i, column).is_empty:
            return i
    for i in range(len(table.rows) - 1, -1, -1):
        if not table.cell(i, column).is_empty:
            return i
    return None


def feedback_index(labels: Sequence[str], settings: MatchSettings) -> int | None:
    target = normalize_text(settings.feedback_title)
    for i, lbl in enumerate(labels):
        if normalize_text(lbl) == target:
            return i
    return None


def feedback_row(table: Table, settings: MatchSettings) -> int | None:
    return feedback_index([r[0].text if r else "" for r in table.rows], settings)


def column_letter(index: int) -> str:
    """0 -> "A", 11 -> "L", 71 -> "BT"."""
    letters = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(65 + rem) + letters
    return letters
