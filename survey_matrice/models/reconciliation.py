from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .match_result import MatchLayer, MatchResult

"""Bulk reconciliation result models.

A reconciliation run resolves every respondent of the respondent sheet against
the matrice and aggregates per-layer counts for the SUMMARY line.
"""

__all__ = [
    "RespondentOutcome",
    "ReconciliationReport",
]


@dataclass(frozen=True)
class RespondentOutcome:
    """Per-respondent match outcome (internal helper for ReconciliationReport)."""
    respondent_id: int  # 1-based row of the respondent sheet
    label: str
    result: MatchResult

    @property
    def layer(self) -> MatchLayer:
        return self.result.layer

    def to_dict(self) -> dict[str, Any]:
        payload = self.result.to_dict()
        payload["id"] = self.respondent_id
        payload["label"] = self.label
        payload["layer"] = self.result.layer.value
        return payload


@dataclass(frozen=True)
class ReconciliationReport:
    """Aggregated bulk outcome for one resort."""
    resort: str
    respondents: int  # listed respondents processed
    matched: int
    not_found: int
    positional: int  # low-confidence matches (subset of matched)
    ambiguous: int  # first-occurrence tie-breaks (subset of matched)
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    outcomes: list[RespondentOutcome] = field(default_factory=list)

    @property
    def all_matched(self) -> bool:
        return self.not_found == 0
