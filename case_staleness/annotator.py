"""Staleness annotation: elapsed hours and stale flags relative to one ``now``."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, List

from .errors import AnnotationError
from .models import RECENT_LABEL, STALE_LABEL, CaseRecord, ReportBundle

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_threshold(stale_threshold_hours: int) -> None:
    if stale_threshold_hours <= 0:
        raise ValueError(
            f"stale_threshold_hours must be positive, got {stale_threshold_hours}"
        )


def annotate_record(
    record: CaseRecord, now: datetime, stale_threshold_hours: int
) -> CaseRecord:
    """Returns a copy of ``record`` with hours_since_update, is_stale and status_label set.

    A record updated exactly ``stale_threshold_hours`` ago is not stale.
    Timestamps in the future give negative hours; they are not clamped.
    """
    if not isinstance(record.last_updated_at, datetime):
        raise AnnotationError(
            record.case_number,
            f"last_updated_at is missing or unparseable ({record.last_updated_at!r})",
        )

    now_utc = _as_utc(now)
    updated = _as_utc(record.last_updated_at)
    elapsed = now_utc - updated
    hours = round(elapsed.total_seconds() / 3600, 1)
    is_stale = updated < now_utc - timedelta(hours=stale_threshold_hours)

    return replace(
        record,
        hours_since_update=hours,
        is_stale=is_stale,
        status_label=STALE_LABEL if is_stale else RECENT_LABEL,
    )


def annotate(
    records: Iterable[CaseRecord], now: datetime, stale_threshold_hours: int
) -> ReportBundle:
    """Annotates every record; the first unannotatable record raises AnnotationError."""
    _check_threshold(stale_threshold_hours)
    annotated = tuple(
        annotate_record(record, now, stale_threshold_hours) for record in records
    )
    return ReportBundle(
        records=annotated,
        generated_at=now,
        stale_threshold_hours=stale_threshold_hours,
    )


def annotate_valid(
    records: Iterable[CaseRecord], now: datetime, stale_threshold_hours: int
) -> ReportBundle:
    """Like :func:`annotate`, but logs and excludes records that fail annotation."""
    _check_threshold(stale_threshold_hours)
    annotated: List[CaseRecord] = []
    excluded: List[str] = []
    for record in records:
        try:
            annotated.append(annotate_record(record, now, stale_threshold_hours))
        except AnnotationError as exc:
            logger.error("Skipping case that could not be annotated: %s", exc)
            excluded.append(exc.case_number)

    return ReportBundle(
        records=tuple(annotated),
        generated_at=now,
        stale_threshold_hours=stale_threshold_hours,
        excluded=tuple(excluded),
    )
