from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Match result models for the reconciliation engine.

MatchResult is the only payload that crosses into the HTTP/UI layer. Its wire
shape is fixed: categories / overall / column / feedback, where ``None``
means "not determined" (distinct from an empty string).
"""

__all__ = [
    "MatriceLayout",
    "MatchLayer",
    "CategoryRecord",
    "MatchSlot",
    "MatchResult",
]


class MatriceLayout(Enum):
    """Orientation of a matrice sheet, decided per request (never cached)."""
    ROW_PER_RESPONDENT = "row"
    COLUMN_PER_RESPONDENT = "column"


class MatchLayer(Enum):
    """Search layer that produced a slot."""
    EXPLICIT_ROW = "explicit_row"
    ROW_SCAN = "row_scan"
    ANONYMOUS = "anonymous"
    COLUMN_SCAN = "column_scan"
    POSITIONAL = "positional"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CategoryRecord:
    name: str
    value: str  # display string, never parsed here

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class MatchSlot:
    """Resolved row (row layout) or column (column layout) of the matrice."""
    layout: MatriceLayout
    index: int  # 0-based
    layer: MatchLayer
    ambiguous: bool = False  # several candidates, first-occurrence tie-break applied


@dataclass(frozen=True)
class MatchResult:
    categories: list[CategoryRecord] | None = None
    overall: str | None = None
    column: str | None = None  # spreadsheet column letter, e.g. "L"
    feedback: str | None = None
    layer: MatchLayer = MatchLayer.NOT_FOUND
    ambiguous: bool = False

    @staticmethod
    def not_found() -> MatchResult:
        return MatchResult()

    @property
    def found(self) -> bool:
        return self.layer is not MatchLayer.NOT_FOUND

    @property
    def positional(self) -> bool:
        """Low-confidence match derived from row order of the respondent sheet."""
        return self.layer is MatchLayer.POSITIONAL

    def to_dict(self) -> dict[str, Any]:
        """Wire-level JSON shape (exactly four keys)."""
        return {
            "categories": [c.to_dict() for c in self.categories] if self.categories is not None else None,
            "overall": self.overall,
            "column": self.column,
            "feedback": self.feedback,
        }
