from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import Any

from dateutil import parser as dtparse

from ..models.table import Cell, CellKind

"""Identifier normalizer: canonical text and dates for comparison.

Nothing in here raises on malformed input. Text degrades to a best-effort
canonical form; unrecognized dates become ``None`` which callers treat as
"no date constraint".

Date formats, tried in order:
1. Spreadsheet literal ``Date(YYYY,MONTH_INDEX,DAY[,H,M,S])`` (month is 0-based)
2. ``DD/MM/YYYY``, ``DD.MM.YYYY``, ``DD-MM-YYYY`` (2-digit year -> 20YY)
3. ISO ``YYYY-MM-DD`` (time part ignored)
4. French month names (``9 juillet 2025``, ``1er sept. 2025``)
5. Generic parse (dateutil, day first) when a 4-digit year is present
6. Spreadsheet serial number (days since 1899-12-30)

Numbers and purely numeric strings go straight to 6; "2025" is a serial,
never a year handed to dateutil.
"""

__all__ = [
    "normalize_text",
    "strip_diacritics",
    "normalize_date",
    "parse_date",
    "format_date",
]

_WS_RE = re.compile(r"\s+")
_SHEETS_DATE_RE = re.compile(r"^Date\(\s*(\d{4})\s*,\s*(\d{1,2})\s*,\s*(\d{1,2})")
_DMY_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2,4})(?!\d)")
_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)")
_FR_DATE_RE = re.compile(r"(?<!\d)(\d{1,2})(?:er)?\s+([a-z]+)\.?,?\s+(\d{4}|\d{2})(?!\d)")
_NUMERIC_RE = re.compile(r"^-?\d+(?:[.,]\d+)?$")
_YEAR_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")

SERIAL_EPOCH = date(1899, 12, 30)
_GENERIC_DEFAULT = datetime(2000, 1, 1)

FRENCH_MONTHS: tuple[tuple[str, int], ...] = (
    ("janvier", 1),
    ("fevrier", 2),
    ("mars", 3),
    ("avril", 4),
    ("mai", 5),
    ("juin", 6),
    ("juillet", 7),
    ("aout", 8),
    ("septembre", 9),
    ("octobre", 10),
    ("novembre", 11),
    ("decembre", 12),
)


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(value: Any) -> str:
    """Case-folded, diacritic-free, whitespace-collapsed form of ``value``.

    Idempotent: normalize_text(normalize_text(s)) == normalize_text(s).
    """
    if value is None:
        return ""
    if isinstance(value, Cell):
        value = value.text
    # lower() may reintroduce combining marks (e.g. "İ"), hence the second pass
    text = strip_diacritics(strip_diacritics(str(value)).lower())
    return _WS_RE.sub(" ", text).strip()


def format_date(value: date) -> str:
    return f"{value.day:02d}/{value.month:02d}/{value.year:04d}"


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(raw: str) -> int:
    if len(raw) == 2:
        return int("20" + raw)
    return int(raw)


def _from_serial(number: float) -> date | None:
    if not math.isfinite(number) or number <= 0:
        return None
    days = math.floor(number + 0.5)  # half-up, like the sheet
    try:
        return SERIAL_EPOCH + timedelta(days=days)
    except OverflowError:
        return None


def _french_month(token: str) -> int | None:
    if len(token) < 3:
        return None
    found = {month for name, month in FRENCH_MONTHS if name.startswith(token)}
    if len(found) == 1:
        return found.pop()
    return None


def _parse_french(text: str) -> date | None:
    folded = normalize_text(text)
    for m in _FR_DATE_RE.finditer(folded):
        month = _french_month(m.group(2))
        if month is None:
            continue
        return _safe_date(_expand_year(m.group(3)), month, int(m.group(1)))
    return None


def _parse_generic(text: str) -> date | None:
    if not _YEAR_RE.search(text):
        return None
    try:
        # fixed default: a missing day or month reads as 1, never as today's
        return dtparse.parse(text, dayfirst=True, default=_GENERIC_DEFAULT).date()
    except (ValueError, OverflowError):
        return None


def parse_date(raw: Any) -> date | None:
    """Parse ``raw`` (str, number or Cell) into a calendar date, or None."""
    if raw is None:
        return None
    if isinstance(raw, Cell):
        if raw.kind is CellKind.NUMBER:
            return _from_serial(float(raw.value))  # type: ignore[arg-type]
        raw = raw.raw_text
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return _from_serial(float(raw))

    text = _WS_RE.sub(" ", str(raw)).strip()
    if not text:
        return None

    m = _SHEETS_DATE_RE.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)) + 1, int(m.group(3)))

    m = _DMY_RE.match(text)
    if m:
        return _safe_date(_expand_year(m.group(3)), int(m.group(2)), int(m.group(1)))

    m = _ISO_RE.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    if _NUMERIC_RE.match(text):
        return _from_serial(float(text.replace(",", ".")))

    parsed = _parse_french(text)
    if parsed is not None:
        return parsed

    return _parse_generic(text)


def normalize_date(raw: Any) -> str | None:
    """Canonical ``DD/MM/YYYY`` for any supported date representation, else None."""
    parsed = parse_date(raw)
    if parsed is None:
        return None
    return format_date(parsed)
