"""Domain models for the respondent / matrice reconciliation engine."""

from .config_models import AppConfig, MatchSettings, ResortConfig, SheetsConfig
from .identifier import Identifier
from .match_record import MatchRecord
from .match_result import CategoryRecord, MatchLayer, MatchResult, MatchSlot, MatriceLayout
from .reconciliation import ReconciliationReport, RespondentOutcome
from .table import EMPTY, Cell, CellKind, Table

__all__ = [
    # Configuration models
    "AppConfig",
    "MatchSettings",
    "ResortConfig",
    "SheetsConfig",
    # Sheet snapshot models
    "Cell",
    "CellKind",
    "EMPTY",
    "Table",
    # Matching models
    "Identifier",
    "CategoryRecord",
    "MatchLayer",
    "MatchResult",
    "MatchSlot",
    "MatriceLayout",
    "MatchRecord",
    # Bulk reconciliation models
    "ReconciliationReport",
    "RespondentOutcome",
]
