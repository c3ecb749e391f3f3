from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.match_record import MatchRecord

"""Match log buffering (JSON Lines).

- Fixed record keys (see match_log_schema.json, no extra keys)
- One ``logs/matches-YYYYMMDD-HHMMSS.log`` (UTC) per run, created on first flush
- Records are buffered and appended in one go on flush()
"""

__all__ = [
    "MatchRecord",
    "MatchLogBuffer",
    "LOGS_DIR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

OUTCOME_NOT_FOUND = "NOT_FOUND"
OUTCOME_AMBIGUOUS = "AMBIGUOUS_MATCH"
OUTCOME_POSITIONAL = "POSITIONAL_MATCH"
OUTCOME_FETCH_FAILED = "FETCH_FAILED"


class MatchLogBuffer:
    """In-memory buffer of match records; flush() appends JSON Lines.

    Serial use only (bulk reconciliation runs respondents one at a time).
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[MatchRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"matches-{stamp}.log"
        return self._file_path

    def append(self, record: MatchRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the log path, or None when nothing was ever written."""
        if not self._records:
            return self._file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
