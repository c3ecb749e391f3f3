from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from ..logging.match_log import (
    OUTCOME_AMBIGUOUS,
    OUTCOME_FETCH_FAILED,
    OUTCOME_NOT_FOUND,
    OUTCOME_POSITIONAL,
    MatchLogBuffer,
)
from ..models.config_models import AppConfig, MatchSettings, ResortConfig
from ..models.identifier import Identifier
from ..models.match_record import MatchRecord
from ..models.match_result import MatchLayer, MatchResult
from ..models.reconciliation import ReconciliationReport, RespondentOutcome
from ..models.table import Table
from ..sheets.reader import SheetRef, UpstreamFetchError
from .matcher import match_respondent
from .progress import ProgressTracker
from .respondents import RespondentItem, iter_respondents

"""Resort-level orchestration around the matcher.

- single respondent lookup with HTTP-equivalent outcomes (200/404/502/500)
- bulk reconciliation of every respondent of a resort (throttled, retried,
  progress on TTY, misses and low-confidence matches to the match log)

The resort registry always comes in through AppConfig / ResortConfig.
"""

__all__ = [
    "ProcessingError",
    "SheetFetchError",
    "TableFetcher",
    "ResortTables",
    "ResolveOutcome",
    "resort_refs",
    "fetch_with_retry",
    "fetch_resort_tables",
    "resolve_respondent",
    "reconcile_resort",
]

logger = logging.getLogger(__name__)

ROLE_RESPONDENTS = "respondents"
ROLE_MATRICE = "matrice"

ERROR_UNKNOWN_RESORT = "Unknown resort"
ERROR_NOT_FOUND = "Respondent not found in matrice"
ERROR_INTERNAL = "Unable to load respondent details"
FETCH_ERRORS = {
    ROLE_RESPONDENTS: "Unable to fetch sheet1 (respondents)",
    ROLE_MATRICE: "Unable to fetch matrice",
}


class ProcessingError(Exception):
    """Fatal error of a resort-level run."""


class SheetFetchError(UpstreamFetchError):
    """UpstreamFetchError tagged with the sheet that failed (respondents / matrice)."""

    def __init__(self, message: str, role: str) -> None:
        super().__init__(message)
        self.role = role


class TableFetcher(Protocol):
    def fetch_table(self, ref: SheetRef) -> Table: ...


@dataclass(frozen=True)
class ResortTables:
    respondents: Table  # "Feuille 1"
    matrice: Table


@dataclass(frozen=True)
class ResolveOutcome:
    """HTTP-equivalent outcome of a single respondent lookup."""
    status: int
    payload: dict[str, Any]
    result: MatchResult | None = None

    @property
    def found(self) -> bool:
        return self.status == 200


def resort_refs(resort: ResortConfig) -> tuple[SheetRef, SheetRef]:
    """(respondent sheet, matrice sheet); the respondent sheet is always the first tab."""
    return SheetRef(resort.sheet_id), SheetRef(resort.sheet_id, resort.matrice_gid)


def fetch_with_retry(
    fetch: Callable[[SheetRef], Table],
    ref: SheetRef,
    attempts: int = 3,
    backoff_seconds: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> Table:
    """Call ``fetch(ref)`` up to ``attempts`` times with linear backoff.

    Raises:
        UpstreamFetchError: the last failure once every attempt failed
    """
    attempts = max(1, attempts)
    attempt = 1
    while True:
        try:
            return fetch(ref)
        except UpstreamFetchError as e:
            if attempt >= attempts:
                raise
            logger.debug(f"fetch attempt {attempt}/{attempts} failed for {ref.describe()}: {e}")
        sleep(backoff_seconds * attempt)
        attempt += 1


def _fetch_role(fetch: Callable[[SheetRef], Table], ref: SheetRef, role: str, attempts: int, backoff: float) -> Table:
    try:
        return fetch_with_retry(fetch, ref, attempts, backoff)
    except UpstreamFetchError as e:
        raise SheetFetchError(str(e), role) from e


def fetch_resort_tables(
    client: TableFetcher,
    resort: ResortConfig,
    *,
    attempts: int = 1,
    backoff_seconds: float = 0.0,
) -> ResortTables:
    """Fetch both sheets of a resort concurrently.

    Raises:
        SheetFetchError: either sheet failed (``role`` tells which)
    """
    sheet1_ref, matrice_ref = resort_refs(resort)
    with ThreadPoolExecutor(max_workers=2) as pool:
        sheet1 = pool.submit(_fetch_role, client.fetch_table, sheet1_ref, ROLE_RESPONDENTS, attempts, backoff_seconds)
        matrice = pool.submit(_fetch_role, client.fetch_table, matrice_ref, ROLE_MATRICE, attempts, backoff_seconds)
        # respondents first so its failure wins when both fail
        respondents_table = sheet1.result()
        matrice_table = matrice.result()
    return ResortTables(respondents=respondents_table, matrice=matrice_table)


def resolve_respondent(
    resort_id: str,
    identifier: Identifier,
    config: AppConfig,
    client: TableFetcher | None = None,
    *,
    tables: ResortTables | None = None,
) -> ResolveOutcome:
    """Look one respondent up; never raises.

    Either ``client`` (live fetch) or pre-loaded ``tables`` must be given.
    """
    resort = config.resort(resort_id)
    if resort is None:
        return ResolveOutcome(404, {"error": ERROR_UNKNOWN_RESORT})
    try:
        if tables is None:
            if client is None:
                raise ProcessingError("no table source given")
            tables = fetch_resort_tables(client, resort)
        result = match_respondent(identifier, tables.respondents, tables.matrice, config.matching)
    except SheetFetchError as e:
        logger.error(f"fetch {e.role} failed for resort={resort_id}: {e}")
        return ResolveOutcome(502, {"error": FETCH_ERRORS.get(e.role, FETCH_ERRORS[ROLE_MATRICE])})
    except UpstreamFetchError as e:
        logger.error(f"fetch failed for resort={resort_id}: {e}")
        return ResolveOutcome(502, {"error": FETCH_ERRORS[ROLE_MATRICE]})
    except Exception as e:
        logger.exception(f"unexpected failure for resort={resort_id} ({identifier.describe()}): {e}")
        return ResolveOutcome(500, {"error": ERROR_INTERNAL})

    if not result.found:
        return ResolveOutcome(404, {"error": ERROR_NOT_FOUND}, result)
    return ResolveOutcome(200, result.to_dict(), result)


@dataclass
class _Tally:
    matched: int = 0
    not_found: int = 0
    positional: int = 0
    ambiguous: int = 0
    outcomes: list[RespondentOutcome] = field(default_factory=list)

    def add(self, item: RespondentItem, result: MatchResult) -> None:
        self.outcomes.append(RespondentOutcome(item.id, item.label, result))
        if not result.found:
            self.not_found += 1
            return
        self.matched += 1
        if result.positional:
            self.positional += 1
        if result.ambiguous:
            self.ambiguous += 1


def _record(log: MatchLogBuffer | None, resort: str, item: RespondentItem, result: MatchResult) -> None:
    if log is None:
        return
    who = item.identifier().describe()
    if not result.found:
        log.append(MatchRecord.create(resort, who, MatchLayer.NOT_FOUND.value, OUTCOME_NOT_FOUND, f"sheet row {item.id}"))
    elif result.positional:
        log.append(MatchRecord.create(resort, who, result.layer.value, OUTCOME_POSITIONAL, f"sheet row {item.id} reused"))
    elif result.ambiguous:
        log.append(MatchRecord.create(resort, who, result.layer.value, OUTCOME_AMBIGUOUS, "first candidate row kept"))


def reconcile_resort(
    resort: ResortConfig,
    source: TableFetcher | ResortTables,
    settings: MatchSettings | None = None,
    *,
    throttle_seconds: float = 0.0,
    attempts: int = 3,
    backoff_seconds: float = 0.5,
    match_log: MatchLogBuffer | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ReconciliationReport:
    """Resolve every listed respondent of ``resort``.

    With pre-loaded ``ResortTables`` all respondents are matched against the
    same snapshot. With a fetcher, each respondent is resolved against freshly
    fetched sheets (retried, throttled by ``throttle_seconds`` between items),
    exactly like independent single lookups.

    Raises:
        ProcessingError: the respondent sheet cannot be listed
    """
    settings = settings or MatchSettings()
    start_time = datetime.now(UTC)

    if isinstance(source, ResortTables):
        listing = source.respondents
    else:
        try:
            listing = fetch_with_retry(source.fetch_table, resort_refs(resort)[0], attempts, backoff_seconds, sleep)
        except UpstreamFetchError as e:
            raise ProcessingError(f"cannot list respondents of {resort.resort_id}: {e}") from e

    items = iter_respondents(listing)
    logger.info(f"resort={resort.resort_id} respondents={len(items)}")
    tally = _Tally()

    with ProgressTracker(len(items)) as progress:
        for n, item in enumerate(items):
            progress.start_item(item.label)
            if isinstance(source, ResortTables):
                tables = source
            else:
                if n > 0 and throttle_seconds > 0:
                    sleep(throttle_seconds)
                try:
                    tables = fetch_resort_tables(source, resort, attempts=attempts, backoff_seconds=backoff_seconds)
                except SheetFetchError as e:
                    logger.error(f"respondent {item.id}: fetch {e.role} failed after {attempts} attempts: {e}")
                    tally.add(item, MatchResult.not_found())
                    if match_log is not None:
                        match_log.append(MatchRecord.create(
                            resort.resort_id, item.identifier().describe(),
                            MatchLayer.NOT_FOUND.value, OUTCOME_FETCH_FAILED, str(e),
                        ))
                    progress.finish_item()
                    continue

            result = match_respondent(item.identifier(), tables.respondents, tables.matrice, settings)
            if not result.found:
                logger.warning(f"respondent {item.id} ({item.label}) not found in matrice")
            tally.add(item, result)
            _record(match_log, resort.resort_id, item, result)
            progress.finish_item()
            progress.set_postfix(matched=tally.matched, missing=tally.not_found)

    if match_log is not None and len(match_log):
        path = match_log.flush()
        logger.info(f"match log written: {path}")

    end_time = datetime.now(UTC)
    return ReconciliationReport(
        resort=resort.resort_id,
        respondents=len(items),
        matched=tally.matched,
        not_found=tally.not_found,
        positional=tally.positional,
        ambiguous=tally.ambiguous,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        outcomes=tally.outcomes,
    )
