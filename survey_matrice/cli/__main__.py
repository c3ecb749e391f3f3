from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..logging.init import get_logger, log_summary, setup_logging
from ..logging.match_log import MatchLogBuffer
from ..models.config_models import AppConfig, ResortConfig
from ..models.identifier import Identifier
from ..sheets.reader import SheetsClient, UpstreamFetchError, read_workbook
from ..services.agency import cluster_agency_names
from ..services.orchestrator import (
    ProcessingError,
    ResortTables,
    fetch_resort_tables,
    reconcile_resort,
    resolve_respondent,
)
from ..services.respondents import agency_names, count_respondents, list_respondents, recommendation_rate
from ..services.summary import render_summary_line

"""CLI entrypoint: ``python -m survey_matrice.cli <command>``.

Commands:
- match     resolve one respondent, print the wire JSON
- bulk      reconcile every respondent of a resort, print the SUMMARY line
- respondents  print one page of the respondent list (JSON)
- agencies  print clustered agency options (display / queryValue)
- inspect   print labels and first rows of both sheets

Exit codes: 0 success, 2 respondent(s) not found, 1 fatal (config / upstream).
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_NOT_FOUND = 2

DEFAULT_CONFIG = Path("config/resorts.yml")
DEFAULT_RESPONDENT_SHEET = "Feuille 1"
DEFAULT_MATRICE_SHEET = "Matrice"
INSPECT_ROWS = 3


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env (SHEETS_BASE_URL / SHEETS_TIMEOUT) with python-dotenv."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--resort", required=True, help="Resort id from the registry")
    p.add_argument("--workbook", type=Path, help="Local .xlsx snapshot instead of the live sheets")
    p.add_argument("--respondent-sheet", default=DEFAULT_RESPONDENT_SHEET, help="Workbook sheet with the raw answers")
    p.add_argument("--matrice-sheet", default=DEFAULT_MATRICE_SHEET, help="Workbook sheet with the matrice")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="survey_matrice", description="Respondent / matrice reconciliation")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Resort registry YAML")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    m = sub.add_parser("match", help="Resolve one respondent")
    _add_source_args(m)
    m.add_argument("--email")
    m.add_argument("--name")
    m.add_argument("--date")
    m.add_argument("--row", help="1-based matrice row override")

    b = sub.add_parser("bulk", help="Reconcile every respondent of a resort")
    _add_source_args(b)
    b.add_argument("--no-match-log", action="store_true", help="Do not write logs/matches-*.log")

    r = sub.add_parser("respondents", help="List respondents, one page at a time")
    _add_source_args(r)
    r.add_argument("--page", type=int, default=1)
    r.add_argument("--page-size", type=int, default=50)

    a = sub.add_parser("agencies", help="Print clustered agency names")
    _add_source_args(a)

    i = sub.add_parser("inspect", help="Print sheet labels and first rows")
    _add_source_args(i)
    return p.parse_args(argv)


def _workbook_tables(args: argparse.Namespace) -> ResortTables:
    sheets = read_workbook(args.workbook, [args.respondent_sheet, args.matrice_sheet])
    return ResortTables(respondents=sheets[args.respondent_sheet], matrice=sheets[args.matrice_sheet])


def _load_tables(args: argparse.Namespace, cfg: AppConfig, resort: ResortConfig) -> ResortTables:
    if args.workbook is not None:
        return _workbook_tables(args)
    client = SheetsClient(cfg.sheets)
    try:
        return fetch_resort_tables(
            client, resort,
            attempts=cfg.sheets.retry_attempts,
            backoff_seconds=cfg.sheets.retry_backoff_seconds,
        )
    finally:
        client.close()


def _cmd_match(args: argparse.Namespace, cfg: AppConfig, resort: ResortConfig) -> int:
    identifier = Identifier.create(email=args.email, name=args.name, date=args.date, explicit_row=args.row)
    if args.workbook is not None:
        outcome = resolve_respondent(resort.resort_id, identifier, cfg, tables=_workbook_tables(args))
    else:
        client = SheetsClient(cfg.sheets)
        try:
            outcome = resolve_respondent(resort.resort_id, identifier, cfg, client)
        finally:
            client.close()
    print(json.dumps(outcome.payload, ensure_ascii=False, indent=2))
    if outcome.status == 200:
        return EXIT_SUCCESS
    if outcome.status == 404:
        return EXIT_NOT_FOUND
    return EXIT_FATAL


def _cmd_bulk(args: argparse.Namespace, cfg: AppConfig, resort: ResortConfig) -> int:
    logger = setup_logging()
    match_log = None if args.no_match_log else MatchLogBuffer()
    if args.workbook is not None:
        report = reconcile_resort(resort, _workbook_tables(args), cfg.matching, match_log=match_log)
    else:
        client = SheetsClient(cfg.sheets)
        try:
            report = reconcile_resort(
                resort, client, cfg.matching,
                throttle_seconds=cfg.sheets.throttle_seconds,
                attempts=cfg.sheets.retry_attempts,
                backoff_seconds=cfg.sheets.retry_backoff_seconds,
                match_log=match_log,
            )
        finally:
            client.close()
    logger.info(f"resort={resort.resort_id} name={resort.name}")
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(report)[len("SUMMARY "):])
    return EXIT_SUCCESS if report.all_matched else EXIT_NOT_FOUND


def _cmd_respondents(args: argparse.Namespace, cfg: AppConfig, resort: ResortConfig) -> int:
    tables = _load_tables(args, cfg, resort)
    try:
        page = list_respondents(tables.respondents, page=args.page, page_size=args.page_size)
    except ValueError as e:
        get_logger().error(f"respondents: {e}")
        return EXIT_FATAL
    print(json.dumps(page.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_SUCCESS


def _cmd_agencies(args: argparse.Namespace, cfg: AppConfig, resort: ResortConfig) -> int:
    tables = _load_tables(args, cfg, resort)
    clusters = cluster_agency_names(agency_names(tables.respondents), threshold=cfg.matching.agency_similarity)
    print(json.dumps([c.to_dict() for c in clusters], ensure_ascii=False, indent=2))
    return EXIT_SUCCESS


def _cmd_inspect(args: argparse.Namespace, cfg: AppConfig, resort: ResortConfig) -> int:
    tables = _load_tables(args, cfg, resort)
    rate = recommendation_rate(tables.respondents)
    print(f"RESORT: {resort.resort_id} ({resort.name})")
    print(f"  respondents={count_respondents(tables.respondents)} "
          f"recommendation_rate={'-' if rate is None else f'{rate:.2f}'}")
    for title, table in (("SHEET1", tables.respondents), ("MATRICE", tables.matrice)):
        print(f"  {title}: cols={table.columns}")
        for r in range(min(INSPECT_ROWS, len(table.rows))):
            print(f"    row {r + 1}: {[c.text for c in table.row(r)]}")
    return EXIT_SUCCESS


COMMANDS = {
    "match": _cmd_match,
    "bulk": _cmd_bulk,
    "respondents": _cmd_respondents,
    "agencies": _cmd_agencies,
    "inspect": _cmd_inspect,
}


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] must not pick up the test runner's argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    resort = cfg.resort(args.resort)
    if resort is None:
        logger.error(f"unknown resort: {args.resort}")
        return EXIT_FATAL
    logger.debug(f"command={args.command} resort={resort.resort_id}")

    try:
        return COMMANDS[args.command](args, cfg, resort)
    except UpstreamFetchError as e:
        logger.error(f"upstream: {e}")
        return EXIT_FATAL
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
