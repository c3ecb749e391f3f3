from __future__ import annotations

from ..models.reconciliation import ReconciliationReport

"""SUMMARY line rendering for bulk reconciliation runs.

Format:
SUMMARY resort=<id> respondents=<n> matched=<m> not_found=<k> positional=<p> ambiguous=<a> elapsed_sec=<s>
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Integral values without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(report: ReconciliationReport) -> str:
    """Render the SUMMARY line of a reconciliation report.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2025, 7, 9, tzinfo=timezone.utc)
        >>> r = ReconciliationReport(
        ...     resort="riviera-malte", respondents=3, matched=2, not_found=1,
        ...     positional=1, ambiguous=0, start_time=t, end_time=t, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(r)
        'SUMMARY resort=riviera-malte respondents=3 matched=2 not_found=1 positional=1 ambiguous=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY resort={report.resort} "
        f"respondents={report.respondents} "
        f"matched={report.matched} "
        f"not_found={report.not_found} "
        f"positional={report.positional} "
        f"ambiguous={report.ambiguous} "
        f"elapsed_sec={format_seconds(report.elapsed_seconds)}"
    )
