"""Respondent / matrice reconciliation engine for hotel satisfaction surveys."""

from .models import Identifier, MatchResult, Table
from .services.agency import cluster_agency_names
from .services.matcher import match_respondent
from .services.normalizer import normalize_date, normalize_text

__all__ = [
    "Identifier",
    "MatchResult",
    "Table",
    "match_respondent",
    "cluster_agency_names",
    "normalize_date",
    "normalize_text",
]

__version__ = "0.1.0"
