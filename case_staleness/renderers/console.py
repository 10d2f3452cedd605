"""Terminal summary of the bundle; best-effort, never aborts the run."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, TextIO

import pandas as pd

from ..models import CaseRecord, ReportBundle

logger = logging.getLogger(__name__)

TOP_STALE_LIMIT = 5
BANNER_WIDTH = 60


def top_stale(bundle: ReportBundle, limit: int = TOP_STALE_LIMIT) -> List[CaseRecord]:
    """Stale records with the most hours since update first."""
    ranked = sorted(
        bundle.stale_records,
        key=lambda r: r.hours_since_update or 0.0,
        reverse=True,
    )
    return ranked[:limit]


def format_console(bundle: ReportBundle) -> str:
    summary = bundle.summary()
    lines = [
        "=" * BANNER_WIDTH,
        "SUPPORT CASE STALENESS REPORT",
        "=" * BANNER_WIDTH,
        f"Total cases:  {summary['total']}",
        f"Stale cases:  {summary['stale']} (no update in {bundle.stale_threshold_hours}+ hours)",
        f"Recent cases: {summary['recent']}",
        "",
    ]

    if not summary["stale"]:
        lines.append(
            f"All cases have been updated within the last "
            f"{bundle.stale_threshold_hours} hours."
        )
        return "\n".join(lines)

    top = top_stale(bundle)
    table = pd.DataFrame(
        [
            {
                "Case": record.case_number,
                "Title": record.title[:50],
                "Status": record.status.value,
                "Hours": record.hours_since_update,
            }
            for record in top
        ]
    )
    lines.append("Top stale cases:")
    lines.append(table.to_markdown(index=False))

    remainder = summary["stale"] - len(top)
    if remainder > 0:
        lines.append(f"...and {remainder} more stale case(s)")
    return "\n".join(lines)


def render_console(bundle: ReportBundle, out: Optional[TextIO] = None) -> None:
    stream = out if out is not None else sys.stdout
    try:
        print(format_console(bundle), file=stream)
    except Exception:
        logger.exception("Console summary could not be written")
