from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from rapidfuzz.distance import Levenshtein

from .normalizer import strip_diacritics

"""Agency name clustering for the filter dropdown.

Travel agencies are typed by hand into the survey, so "Top of Travel",
"TOP OF TRAVEL" and "Top Of  Travel" must collapse into one option. Distinct
raw names are assigned greedily (first fit, in order of first appearance) to
the first cluster whose representative is similar enough. Quadratic in the
number of distinct names, which stays small per hotel.
"""

__all__ = [
    "DEFAULT_THRESHOLD",
    "AgencyCluster",
    "normalize_agency",
    "agency_similarity",
    "cluster_agency_names",
]

DEFAULT_THRESHOLD = 0.75

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def normalize_agency(raw: str) -> str:
    """Diacritic-free lowercase form with non-alphanumerics collapsed to one space."""
    folded = strip_diacritics(str(raw)).lower()
    return _NON_ALNUM_RE.sub(" ", folded).strip()


def _similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def agency_similarity(a: str, b: str) -> float:
    """1 - levenshtein / max length, computed on normalized forms (0.0 - 1.0)."""
    return _similarity(normalize_agency(a), normalize_agency(b))


@dataclass
class AgencyCluster:
    """One dropdown option grouping near-duplicate raw agency names."""
    members: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    threshold: float = DEFAULT_THRESHOLD

    @property
    def display(self) -> str:
        # most frequent raw variant; members keep first-appearance order for ties
        return max(self.members, key=lambda m: self.counts.get(m, 0)) if self.members else ""

    @property
    def query_value(self) -> str:
        return normalize_agency(self.display)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def add(self, raw: str, count: int) -> None:
        if raw not in self.counts:
            self.members.append(raw)
            self.counts[raw] = 0
        self.counts[raw] += count

    def matches(self, raw: str) -> bool:
        """True when ``raw`` belongs to this option (filtering respondents)."""
        norm = normalize_agency(raw)
        if not norm:
            return False
        if any(normalize_agency(m) == norm for m in self.members):
            return True
        return _similarity(norm, self.query_value) >= self.threshold

    def to_dict(self) -> dict[str, str]:
        return {"display": self.display, "queryValue": self.query_value}


def cluster_agency_names(
    raw_names: Iterable[str | None],
    threshold: float = DEFAULT_THRESHOLD,
) -> list[AgencyCluster]:
    """Group ``raw_names`` into clusters sorted by display label.

    Blank names are ignored. The similarity test compares each distinct raw
    name with the current representative of every existing cluster.
    """
    counts: Counter[str] = Counter()
    for raw in raw_names:
        if raw is None:
            continue
        text = str(raw).strip()
        if not text or not normalize_agency(text):
            continue
        counts[text] += 1

    clusters: list[AgencyCluster] = []
    for raw, count in counts.items():  # insertion order == first appearance
        norm = normalize_agency(raw)
        target = None
        for cluster in clusters:
            if _similarity(norm, cluster.query_value) >= threshold:
                target = cluster
                break
        if target is None:
            target = AgencyCluster(threshold=threshold)
            clusters.append(target)
        target.add(raw, count)

    clusters.sort(key=lambda c: c.display.lower())
    return clusters
