from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the reconciliation engine.

The resort registry is injected into every call as configuration
(resort id -> sheet id + matrice view id); nothing in the matching code
looks a resort up from a module-level table.
"""

DEFAULT_BASE_URL = "https://docs.google.com/spreadsheets/d"
DEFAULT_FEEDBACK_TITLE = "Votre avis compte pour nous ! :)"


@dataclass(frozen=True)
class SheetsConfig:
    """Spreadsheet transport settings (env SHEETS_BASE_URL / SHEETS_TIMEOUT take precedence)."""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0
    retry_attempts: int = 3  # used by bulk callers only
    retry_backoff_seconds: float = 0.5  # linear: backoff * attempt
    throttle_seconds: float = 0.7  # pause between respondents in bulk runs


@dataclass(frozen=True)
class MatchSettings:
    """Fixed positions and phrases of the matrice convention."""
    feedback_title: str = DEFAULT_FEEDBACK_TITLE
    overall_column: int = 11  # column L
    feedback_fallback_column: int = 71  # column BT
    agency_similarity: float = 0.75


@dataclass(frozen=True)
class ResortConfig:
    resort_id: str
    name: str
    sheet_id: str
    matrice_gid: str | None = None  # None -> first sheet (gid 0)


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object (config/resorts.yml)."""
    resorts: dict[str, ResortConfig]
    sheets: SheetsConfig = field(default_factory=SheetsConfig)
    matching: MatchSettings = field(default_factory=MatchSettings)

    def resort(self, resort_id: str) -> ResortConfig | None:
        return self.resorts.get(resort_id)
