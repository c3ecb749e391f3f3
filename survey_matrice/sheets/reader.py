from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd
import requests

from ..models.config_models import SheetsConfig
from ..models.table import EMPTY, Cell, Table

"""Spreadsheet readers: Google Visualization responses and local workbooks.

Both sources end in the same ``Table`` model; raw cell shapes (string, number,
``{"v": ..., "f": ...}`` objects, pandas NaN / Timestamp) are resolved here and
nowhere else.

Google Visualization body looks like::

    /*O_o*/
    google.visualization.Query.setResponse({"version":"0.6","status":"ok","table":{...}});
"""

__all__ = [
    "UpstreamFetchError",
    "SheetRef",
    "parse_gviz_response",
    "table_from_dataframe",
    "read_workbook",
    "SheetsClient",
]

logger = logging.getLogger(__name__)


class UpstreamFetchError(Exception):
    """Raised when a sheet cannot be fetched or its body cannot be parsed."""


@dataclass(frozen=True)
class SheetRef:
    sheet_id: str
    gid: str | None = None  # sub-sheet view id, None -> first sheet

    def describe(self) -> str:
        return f"{self.sheet_id}#gid={self.gid}" if self.gid else self.sheet_id


def _gviz_cell(raw: Any) -> Cell:
    if not isinstance(raw, dict):
        return EMPTY
    v = raw.get("v")
    if v is None:
        return EMPTY
    # "f" is the sheet's formatted rendering (locale decimals, units, dates)
    f = raw.get("f")
    display = str(f) if f is not None and str(f).strip() else None
    if isinstance(v, bool):
        return Cell.string("true" if v else "false", display)
    if isinstance(v, (int, float)):
        return Cell.number(v, display)
    return Cell.string(str(v), display)


def parse_gviz_response(text: str) -> Table:
    """Parse a ``setResponse(...)`` body into a Table.

    Raises:
        UpstreamFetchError: no JSON payload, undecodable JSON, or an error status
    """
    start = text.find("(")
    end = text.rfind(")")
    if start == -1 or end <= start:
        raise UpstreamFetchError("response does not contain a table payload")
    try:
        payload = json.loads(text[start + 1:end])
    except json.JSONDecodeError as e:
        raise UpstreamFetchError(f"undecodable table payload: {e}") from e
    if not isinstance(payload, dict):
        raise UpstreamFetchError("table payload is not an object")
    if payload.get("status") == "error":
        reasons = "; ".join(str(err.get("detailed_message") or err.get("message") or err) for err in payload.get("errors") or [])
        raise UpstreamFetchError(f"table query failed: {reasons or 'unknown error'}")

    table = payload.get("table") or {}
    columns = [str((c or {}).get("label") or "") for c in table.get("cols") or []]
    rows: list[list[Cell]] = []
    for r in table.get("rows") or []:
        cells = (r or {}).get("c") or []
        rows.append([_gviz_cell(c) for c in cells])
    return Table(columns=columns, rows=rows)


def _frame_cell(value: Any) -> Cell:
    if value is None:
        return EMPTY
    if isinstance(value, float) and math.isnan(value):
        return EMPTY
    if value is pd.NaT:
        return EMPTY
    if isinstance(value, (pd.Timestamp, datetime)):
        return Cell.string(value.date().isoformat())
    if isinstance(value, date):
        return Cell.string(value.isoformat())
    if isinstance(value, bool):
        return Cell.string("true" if value else "false")
    if isinstance(value, (int, float)):
        return Cell.number(value)
    if hasattr(value, "item"):  # numpy scalar
        return _frame_cell(value.item())
    return Cell.string(str(value))


def table_from_dataframe(df: pd.DataFrame) -> Table:
    """Build a Table from a header-less DataFrame (first row = labels)."""
    if df.empty:
        return Table(columns=[], rows=[])
    records = df.astype(object).values.tolist()
    header = records[0]
    columns = [_frame_cell(v).text for v in header]
    rows = []
    for rec in records[1:]:
        cells = [_frame_cell(v) for v in rec]
        # trailing empties come from the DataFrame width, not the sheet
        while cells and cells[-1].is_empty:
            cells.pop()
        rows.append(cells)
    return Table(columns=columns, rows=rows)


def read_workbook(path: Path, sheet_names: Iterable[str] | None = None) -> dict[str, Table]:
    """Read a local ``.xlsx`` snapshot, keyed by sheet name.

    Raises:
        UpstreamFetchError: file missing/unreadable or a requested sheet absent
    """
    wanted = list(sheet_names) if sheet_names is not None else None
    try:
        xls = pd.ExcelFile(path)
    except (OSError, ValueError) as e:
        raise UpstreamFetchError(f"cannot open workbook {path}: {e}") from e
    available = [str(n) for n in xls.sheet_names]
    if wanted is not None:
        missing = [n for n in wanted if n not in available]
        if missing:
            raise UpstreamFetchError(f"workbook {path} has no sheet(s) {', '.join(missing)}")
    tables: dict[str, Table] = {}
    for name in available:
        if wanted is not None and name not in wanted:
            continue
        df = xls.parse(name, header=None)
        tables[name] = table_from_dataframe(df)
    return tables


class SheetsClient:
    """HTTP transport for the table-query endpoint.

    One fetch per call, no retries and no caching; callers own both.
    """

    def __init__(self, config: SheetsConfig | None = None, session: requests.Session | None = None):
        self.config = config or SheetsConfig()
        self.session = session or requests.Session()

    def url_for(self, ref: SheetRef) -> str:
        base = self.config.base_url.rstrip("/")
        url = f"{base}/{ref.sheet_id}/gviz/tq"
        if ref.gid:
            url += f"?gid={ref.gid}"
        return url

    def fetch_table(self, ref: SheetRef) -> Table:
        url = self.url_for(ref)
        logger.debug(f"fetch {ref.describe()}")
        try:
            resp = self.session.get(url, timeout=self.config.timeout_seconds)
        except requests.RequestException as e:
            raise UpstreamFetchError(f"fetch failed for {ref.describe()}: {e}") from e
        if not resp.ok:
            raise UpstreamFetchError(f"fetch failed for {ref.describe()}: HTTP {resp.status_code}")
        return parse_gviz_response(resp.text)

    def close(self) -> None:
        self.session.close()
