from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from ..models.identifier import Identifier
from ..models.table import Table
from .normalizer import normalize_date, normalize_text

"""Respondent sheet ("Feuille 1") helpers: listing, counting, summary figures.

Column positions are found from header text first. When a header is missing
the survey-form defaults apply (horodateur C, email D, nom E), which is how the
form export lays the sheet out for every hotel.
"""

__all__ = [
    "RespondentColumns",
    "RespondentItem",
    "RespondentPage",
    "respondent_columns",
    "list_respondents",
    "iter_respondents",
    "count_respondents",
    "recommendation_rate",
    "agency_names",
]

DEFAULT_DATE_COLUMN = 2
DEFAULT_EMAIL_COLUMN = 3
DEFAULT_NAME_COLUMN = 4

_EMAIL_KEYS = ("email", "e-mail", "courriel", "mail")
_NAME_KEYS = ("nom", "name")
_DATE_KEYS = ("date", "horodateur", "timestamp")
_AGENCY_KEYS = ("agence", "agency")
_RECOMMEND_KEYS = ("recommand", "recommend")
_YES_ANSWERS = frozenset({"oui", "o", "yes"})

_WORD_RE = re.compile(r"[a-z0-9@\-]+")


@dataclass(frozen=True)
class RespondentColumns:
    email: int | None
    name: int | None
    date: int | None
    agency: int | None = None


@dataclass(frozen=True)
class RespondentItem:
    id: int  # 1-based row of the respondent sheet
    label: str
    email: str | None = None
    name: str | None = None
    date: str | None = None  # DD/MM/YYYY when recognizable, raw text otherwise

    def identifier(self) -> Identifier:
        """Identifier used to look this respondent up in the matrice."""
        return Identifier.create(email=self.email, name=self.name, date=self.date)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "label": self.label, "email": self.email, "name": self.name, "date": self.date}


@dataclass(frozen=True)
class RespondentPage:
    items: list[RespondentItem] = field(default_factory=list)
    page: int = 1
    page_size: int = 50
    total: int = 0

    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)

    def to_dict(self) -> dict[str, object]:
        return {
            "respondents": [i.to_dict() for i in self.items],
            "page": self.page,
            "pageSize": self.page_size,
            "total": self.total,
        }


def _find_column(labels: list[str], keys: tuple[str, ...]) -> int | None:
    for i, lbl in enumerate(labels):
        words = _WORD_RE.findall(lbl)
        if any(k in words for k in keys):
            return i
    for i, lbl in enumerate(labels):
        if any(k in lbl for k in keys):
            return i
    return None


def _fallback(table: Table, index: int) -> int | None:
    return index if index < table.width else None


def respondent_columns(table: Table) -> RespondentColumns:
    labels = [normalize_text(c) for c in table.columns]
    email = _find_column(labels, _EMAIL_KEYS)
    date = _find_column(labels, _DATE_KEYS)
    # "prenom" contains "nom"; the word pass runs first so "Nom" wins over "Prénom"
    name = _find_column(labels, _NAME_KEYS)
    agency = _find_column(labels, _AGENCY_KEYS)
    return RespondentColumns(
        email=email if email is not None else _fallback(table, DEFAULT_EMAIL_COLUMN),
        name=name if name is not None else _fallback(table, DEFAULT_NAME_COLUMN),
        date=date if date is not None else _fallback(table, DEFAULT_DATE_COLUMN),
        agency=agency,
    )


def _text_at(table: Table, row: int, col: int | None) -> str | None:
    if col is None:
        return None
    text = table.cell(row, col).text.strip()
    return text or None


def _listed_rows(table: Table) -> list[int]:
    return [i for i in table.non_blank_row_indexes() if not table.cell(i, 0).is_empty]


def list_respondents(table: Table, page: int = 1, page_size: int = 50) -> RespondentPage:
    """One page of respondents; rows without a first cell are not listed.

    Raises:
        ValueError: page or page_size below 1
    """
    if page < 1 or page_size < 1:
        raise ValueError(f"invalid pagination page={page} page_size={page_size}")
    cols = respondent_columns(table)
    rows = _listed_rows(table)
    start = (page - 1) * page_size
    items = []
    for i in rows[start:start + page_size]:
        raw_date = _text_at(table, i, cols.date)
        date = normalize_date(table.cell(i, cols.date)) if cols.date is not None else None
        items.append(RespondentItem(
            id=i + 1,
            label=table.cell(i, 0).text.strip(),
            email=_text_at(table, i, cols.email),
            name=_text_at(table, i, cols.name),
            date=date or raw_date,
        ))
    return RespondentPage(items=items, page=page, page_size=page_size, total=len(rows))


def iter_respondents(table: Table) -> list[RespondentItem]:
    """Every listed respondent, in sheet order."""
    total = len(_listed_rows(table))
    if total == 0:
        return []
    return list_respondents(table, page=1, page_size=total).items


def count_respondents(table: Table) -> int:
    return len(table.non_blank_row_indexes())


def recommendation_rate(table: Table) -> float | None:
    """Share of yes answers in the first "recommend" column, None without such column or answers."""
    col = None
    for i, lbl in enumerate(table.columns):
        folded = normalize_text(lbl)
        if any(k in folded for k in _RECOMMEND_KEYS):
            col = i
            break
    if col is None:
        return None
    yes = 0
    valid = 0
    for r in range(len(table.rows)):
        answer = normalize_text(table.cell(r, col))
        if not answer:
            continue
        valid += 1
        if answer in _YES_ANSWERS:
            yes += 1
    if valid == 0:
        return None
    return yes / valid


def agency_names(table: Table) -> list[str]:
    """Raw agency cells (blank cells skipped); empty when the sheet has no agency column."""
    col = respondent_columns(table).agency
    if col is None:
        return []
    return [t for t in (_text_at(table, r, col) for r in range(len(table.rows))) if t]
