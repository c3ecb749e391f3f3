from __future__ import annotations

import json
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from survey_matrice.logging.match_log import MatchLogBuffer
from survey_matrice.models import (
    AppConfig,
    Identifier,
    MatchLayer,
    ResortConfig,
    SheetsConfig,
    Table,
)
from survey_matrice.services.orchestrator import (
    ProcessingError,
    ResortTables,
    SheetFetchError,
    fetch_resort_tables,
    fetch_with_retry,
    reconcile_resort,
    resolve_respondent,
    resort_refs,
)
from survey_matrice.sheets.reader import SheetRef, UpstreamFetchError
from tests.conftest import SHEET1_COLUMNS, SHEET1_ROWS

RESORT = ResortConfig(resort_id="riviera-malte", name="Hôtel Riviera - Malte", sheet_id="sheet-riviera", matrice_gid="77")


class FakeFetcher:
    """Serves the respondent sheet for gid None and the matrice for any gid."""

    def __init__(self, sheet1: Table, matrice: Table, fail: dict[str | None, int] | None = None):
        self.sheet1 = sheet1
        self.matrice = matrice
        self.fail = dict(fail or {})
        self.calls: list[SheetRef] = []
        self._lock = threading.Lock()

    def fetch_table(self, ref: SheetRef) -> Table:
        with self._lock:
            self.calls.append(ref)
            if self.fail.get(ref.gid, 0) > 0:
                self.fail[ref.gid] -= 1
                raise UpstreamFetchError(f"HTTP 503 for {ref.describe()}")
        return self.sheet1 if ref.gid is None else self.matrice


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig(resorts={RESORT.resort_id: RESORT}, sheets=SheetsConfig())


def test_resort_refs():
    sheet1, matrice = resort_refs(RESORT)
    assert sheet1 == SheetRef("sheet-riviera")
    assert matrice == SheetRef("sheet-riviera", "77")


def test_fetch_with_retry_linear_backoff():
    fetch = MagicMock(side_effect=[UpstreamFetchError("a"), UpstreamFetchError("b"), "table"])
    sleeps: list[float] = []
    assert fetch_with_retry(fetch, SheetRef("x"), attempts=3, backoff_seconds=0.5, sleep=sleeps.append) == "table"
    assert sleeps == [0.5, 1.0]


def test_fetch_with_retry_reraises_last_error():
    fetch = MagicMock(side_effect=[UpstreamFetchError("first"), UpstreamFetchError("last")])
    with pytest.raises(UpstreamFetchError, match="last"):
        fetch_with_retry(fetch, SheetRef("x"), attempts=2, backoff_seconds=0, sleep=lambda s: None)


def test_fetch_with_retry_single_attempt_raises_without_sleeping():
    fetch = MagicMock(side_effect=UpstreamFetchError("down"))
    sleeps: list[float] = []
    with pytest.raises(UpstreamFetchError, match="down"):
        fetch_with_retry(fetch, SheetRef("x"), attempts=1, sleep=sleeps.append)
    assert sleeps == []
    assert fetch.call_count == 1


def test_fetch_resort_tables_fetches_both(sheet1, row_matrice):
    fetcher = FakeFetcher(sheet1, row_matrice)
    tables = fetch_resort_tables(fetcher, RESORT)
    assert tables.respondents is sheet1
    assert tables.matrice is row_matrice
    assert sorted(c.gid or "" for c in fetcher.calls) == ["", "77"]


def test_fetch_resort_tables_tags_failing_sheet(sheet1, row_matrice):
    fetcher = FakeFetcher(sheet1, row_matrice, fail={"77": 5})
    with pytest.raises(SheetFetchError) as exc:
        fetch_resort_tables(fetcher, RESORT, attempts=2)
    assert exc.value.role == "matrice"


def test_resolve_respondent_success(config, sheet1, row_matrice):
    outcome = resolve_respondent("riviera-malte", Identifier.create(email="paul@example.com"), config,
                                 FakeFetcher(sheet1, row_matrice))
    assert outcome.status == 200
    assert outcome.found
    assert set(outcome.payload) == {"categories", "overall", "column", "feedback"}
    assert outcome.payload["overall"] == "2.5"
    assert outcome.payload["feedback"] == "Trop bruyant"


def test_resolve_respondent_unknown_resort(config):
    outcome = resolve_respondent("atlantis", Identifier.create(email="a@b.c"), config, MagicMock())
    assert (outcome.status, outcome.payload) == (404, {"error": "Unknown resort"})


def test_resolve_respondent_not_found(config, sheet1, row_matrice):
    outcome = resolve_respondent("riviera-malte", Identifier.create(email="ghost@example.com"), config,
                                 tables=ResortTables(sheet1, row_matrice))
    assert (outcome.status, outcome.payload) == (404, {"error": "Respondent not found in matrice"})


@pytest.mark.parametrize(
    "fail,message",
    [
        ({None: 1}, "Unable to fetch sheet1 (respondents)"),
        ({"77": 1}, "Unable to fetch matrice"),
    ],
)
def test_resolve_respondent_upstream_failure(config, sheet1, row_matrice, fail, message):
    outcome = resolve_respondent("riviera-malte", Identifier.create(email="paul@example.com"), config,
                                 FakeFetcher(sheet1, row_matrice, fail=fail))
    assert (outcome.status, outcome.payload) == (502, {"error": message})


def test_resolve_respondent_internal_error(config, sheet1, row_matrice):
    with patch("survey_matrice.services.orchestrator.match_respondent", side_effect=RuntimeError("bug")):
        outcome = resolve_respondent("riviera-malte", Identifier.create(email="a@b.c"), config,
                                     tables=ResortTables(sheet1, row_matrice))
    assert (outcome.status, outcome.payload) == (500, {"error": "Unable to load respondent details"})


def test_reconcile_resort_from_snapshot(tmp_path: Path):
    sheet1 = Table.from_values(SHEET1_COLUMNS, [
        *SHEET1_ROWS,
        ["12/07/2025 09:00:00", "Azur", "12/07/2025", "zoe@example.com", "Zoé Lambert", "Oui"],
    ])
    # Marie twice on the same day; Paul only reachable by row order; Zoé beyond the matrice
    matrice = Table.from_values(["Nom", "Date", "Accueil"], [
        ["Jean Dupont", "09/07/2025", 4],
        ["Marie Curie", "10/07/2025", 5],
        ["Marie Curie", "10/07/2025", 3],
    ])
    log = MatchLogBuffer(logs_dir=tmp_path / "logs")
    report = reconcile_resort(RESORT, ResortTables(sheet1, matrice), match_log=log)

    assert (report.respondents, report.matched, report.not_found) == (4, 3, 1)
    assert report.ambiguous == 1
    assert report.positional == 1
    assert not report.all_matched
    assert [o.layer for o in report.outcomes] == [
        MatchLayer.ROW_SCAN, MatchLayer.ROW_SCAN, MatchLayer.POSITIONAL, MatchLayer.NOT_FOUND,
    ]
    assert report.outcomes[1].result.overall == "5"

    (log_file,) = (tmp_path / "logs").glob("matches-*.log")
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [r["outcome"] for r in records] == ["AMBIGUOUS_MATCH", "POSITIONAL_MATCH", "NOT_FOUND"]


def test_reconcile_resort_live_throttles_and_retries(sheet1, row_matrice):
    fetcher = FakeFetcher(sheet1, row_matrice, fail={"77": 1})
    sleeps: list[float] = []
    report = reconcile_resort(RESORT, fetcher, throttle_seconds=0.7, attempts=3, backoff_seconds=0,
                              sleep=sleeps.append)
    assert report.matched == 3
    # one pause between each pair of respondents
    assert sleeps.count(0.7) == 2


def test_reconcile_resort_counts_fetch_failures_as_misses(sheet1, row_matrice, tmp_path: Path):
    fetcher = FakeFetcher(sheet1, row_matrice, fail={"77": 100})
    log = MatchLogBuffer(logs_dir=tmp_path / "logs")
    report = reconcile_resort(RESORT, fetcher, attempts=1, backoff_seconds=0, match_log=log, sleep=lambda s: None)
    assert report.not_found == 3
    (log_file,) = (tmp_path / "logs").glob("matches-*.log")
    assert "FETCH_FAILED" in log_file.read_text(encoding="utf-8")


def test_reconcile_resort_listing_failure_is_fatal(sheet1, row_matrice):
    fetcher = FakeFetcher(sheet1, row_matrice, fail={None: 10})
    with pytest.raises(ProcessingError):
        reconcile_resort(RESORT, fetcher, attempts=2, backoff_seconds=0, sleep=lambda s: None)
