from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Identifier model: the fuzzy key a caller uses to designate one respondent.

There is no shared primary key between the respondent sheet and the matrice
sheet; a respondent is designated by any combination of email / name / date,
plus an optional 1-based row override used for forced (debug) lookups.
"""

__all__ = [
    "Identifier",
]


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Identifier:
    email: str | None = None
    name: str | None = None
    date: str | None = None
    explicit_row: int | None = None  # 1-based matrice row, bypasses matching

    @staticmethod
    def create(
        email: Any = None,
        name: Any = None,
        date: Any = None,
        explicit_row: Any = None,
    ) -> Identifier:
        """Build an Identifier from raw request values (blank -> None)."""
        row: int | None = None
        raw_row = _clean(explicit_row)
        if raw_row is not None:
            try:
                row = int(raw_row)
            except ValueError:
                row = None
        return Identifier(email=_clean(email), name=_clean(name), date=_clean(date), explicit_row=row)

    @property
    def has_identity(self) -> bool:
        return bool(self.email or self.name)

    def describe(self) -> str:
        parts = [f"{k}={v}" for k, v in (("email", self.email), ("name", self.name), ("date", self.date)) if v]
        if self.explicit_row is not None:
            parts.append(f"row={self.explicit_row}")
        return " ".join(parts) or "<anonymous>"
