"""Fetches open service-health issues and incidents and normalises them into CaseRecords."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional

import pandas as pd

from .errors import FetchError
from .models import CaseRecord, normalise_status, status_key

logger = logging.getLogger(__name__)

ANNOUNCEMENT_PATH = "admin/serviceAnnouncement/issues"

ISSUE_KIND = "issue"
INCIDENT_KIND = "incident"

SOURCES = {
    ISSUE_KIND: {"$filter": "classification eq 'advisory'"},
    INCIDENT_KIND: {"$filter": "classification eq 'incident'"},
}

# Provider statuses considered open for each source.
OPEN_STATUSES: Dict[str, FrozenSet[str]] = {
    ISSUE_KIND: frozenset(
        status_key(s)
        for s in (
            "serviceOperational",
            "investigating",
            "restoringService",
            "extended recovery",
        )
    ),
    INCIDENT_KIND: frozenset(
        status_key(s)
        for s in ("investigating", "serviceRestoration", "postIncidentReviewPublished")
    ),
}

SUPPORT_OWNER = "Microsoft Support"
SYSTEM_OWNER = "System Generated"
INCIDENT_OWNER = "Microsoft Incident Response"

TAG_RE = re.compile(r"<[^>]+>")


def strip_html(value: Optional[str]) -> str:
    """Removes markup tags with a plain regex; not a sanitiser, renderers still escape."""
    if not value:
        return ""
    text = TAG_RE.sub(" ", str(value))
    return re.sub(r"\s+", " ", text).strip()


def derive_owner(raw: Dict[str, Any], kind: str) -> str:
    """Placeholder owner for a record.

    The service-health API exposes no real ownership, so issues with an impact
    description are attributed to vendor support and the rest to automation,
    while incidents always go to incident response.
    """
    if kind == INCIDENT_KIND:
        return INCIDENT_OWNER
    if str(raw.get("impactDescription") or "").strip():
        return SUPPORT_OWNER
    return SYSTEM_OWNER


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parses an ISO timestamp into an aware UTC datetime; unparseable values give None."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = pd.to_datetime(value, errors="coerce", utc=True)
    except (TypeError, ValueError):
        return None
    if pd.isna(parsed):
        return None
    # Graph sends 7 fractional digits; datetime keeps microseconds
    return parsed.to_pydatetime(warn=False)


def to_case_record(raw: Dict[str, Any], kind: str) -> CaseRecord:
    return CaseRecord(
        case_number=str(raw.get("id") or ""),
        owner=derive_owner(raw, kind),
        title=str(raw.get("title") or ""),
        description=strip_html(raw.get("impactDescription")),
        status=normalise_status(raw.get("status")),
        severity=str(raw.get("classification") or ""),
        created_at=parse_timestamp(raw.get("startDateTime")),
        last_updated_at=parse_timestamp(raw.get("lastModifiedDateTime")),
        service=str(raw.get("service") or ""),
        feature=str(raw.get("feature") or ""),
    )


def filter_open(raw_items: List[Dict[str, Any]], kind: str) -> List[Dict[str, Any]]:
    allowed = OPEN_STATUSES[kind]
    return [
        item
        for item in raw_items
        if isinstance(item, dict) and status_key(item.get("status")) in allowed
    ]


def fetch_source(
    get_collection: Callable[..., List[Dict[str, Any]]], kind: str
) -> List[CaseRecord]:
    """Fetches and maps one source; FetchError propagates to the caller."""
    raw_items = get_collection(ANNOUNCEMENT_PATH, params=SOURCES[kind])
    open_items = filter_open(raw_items, kind)
    logger.info(
        "Fetched %d %s(s), %d in an open status", len(raw_items), kind, len(open_items)
    )
    records: List[CaseRecord] = []
    for item in open_items:
        try:
            records.append(to_case_record(item, kind))
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Skipping malformed %s %r: %s", kind, item.get("id"), exc)
    return records


def fetch_cases(session) -> List[CaseRecord]:
    """Returns open issues followed by open incidents, in provider order.

    Never raises: a failing source is logged and contributes no records.
    """
    records: List[CaseRecord] = []
    for kind in (ISSUE_KIND, INCIDENT_KIND):
        try:
            records.extend(fetch_source(session.get_collection, kind))
        except FetchError as exc:
            logger.warning("Could not fetch %ss: %s", kind, exc)
        except Exception:
            logger.exception("Unexpected error reading %ss; skipping source", kind)
    logger.info("Retrieved %d open case(s)", len(records))
    return records
