"""CSV export: one row per annotated record, fixed column order."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..errors import RenderError
from ..models import CaseRecord, ReportBundle

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "CaseNumber",
    "Owner",
    "Title",
    "Description",
    "Status",
    "Severity",
    "CreatedDate",
    "LastUpdated",
    "HoursSinceUpdate",
    "IsStale",
    "StatusFlag",
    "Service",
    "Feature",
]

# BOM so spreadsheet tools pick UTF-8 and keep the emoji flags.
CSV_ENCODING = "utf-8-sig"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: Optional[datetime]) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ""


def record_to_row(record: CaseRecord) -> Dict[str, Any]:
    return {
        "CaseNumber": record.case_number,
        "Owner": record.owner,
        "Title": record.title,
        "Description": record.description,
        "Status": record.status.value,
        "Severity": record.severity,
        "CreatedDate": format_timestamp(record.created_at),
        "LastUpdated": format_timestamp(record.last_updated_at),
        "HoursSinceUpdate": record.hours_since_update,
        "IsStale": record.is_stale,
        "StatusFlag": record.status_flag,
        "Service": record.service,
        "Feature": record.feature,
    }


def bundle_to_frame(bundle: ReportBundle) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = [record_to_row(record) for record in bundle.records]
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def write_csv(bundle: ReportBundle, path: Path) -> Path:
    """Writes the bundle as CSV in the order given and returns the path."""
    path = Path(path)
    df = bundle_to_frame(bundle)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False, encoding=CSV_ENCODING)
    except OSError as exc:
        raise RenderError(f"Could not write CSV report to {path}: {exc}") from exc

    logger.info("CSV report saved to %s (%d row(s))", path, len(df))
    return path
