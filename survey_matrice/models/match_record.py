from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""MatchRecord model for the JSON Lines match log.

Bulk reconciliation records every respondent whose match is not a clean hit:
misses (NOT_FOUND), first-occurrence tie-breaks (AMBIGUOUS_MATCH) and
row-order fallbacks (POSITIONAL_MATCH). The record keys are fixed; the
schema lives in survey_matrice/logging/match_log_schema.json.
"""

__all__ = [
    "MatchRecord",
]


@dataclass(frozen=True)
class MatchRecord:
    """Structured match outcome for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        resort: Resort identifier from the registry
        respondent: Human readable identifier (email/name/date)
        layer: Search layer that resolved the slot, "not_found" on a miss
        outcome: Classification in UPPER_SNAKE_CASE format
        detail: Free text (candidate rows, column letter, ...)
    """
    timestamp: str  # ISO8601 UTC
    resort: str
    respondent: str
    layer: str
    outcome: str  # UPPER_SNAKE
    detail: str

    @staticmethod
    def create(resort: str, respondent: str, layer: str, outcome: str, detail: str = "") -> MatchRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return MatchRecord(
            timestamp=ts,
            resort=resort,
            respondent=respondent,
            layer=layer,
            outcome=outcome,
            detail=detail,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
