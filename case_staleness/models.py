"""Typed case records and the bundle shared by all renderers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


class CaseStatus(str, Enum):
    INVESTIGATING = "investigating"
    RESTORING = "restoring"
    RESOLVED = "resolved"
    OTHER = "other"


PROVIDER_STATUS_MAP: Dict[str, CaseStatus] = {
    "investigating": CaseStatus.INVESTIGATING,
    "restoringservice": CaseStatus.RESTORING,
    "servicerestoration": CaseStatus.RESTORING,
    "extendedrecovery": CaseStatus.RESTORING,
    "serviceoperational": CaseStatus.RESOLVED,
    "postincidentreviewpublished": CaseStatus.RESOLVED,
    "servicerestored": CaseStatus.RESOLVED,
    "falsepositive": CaseStatus.RESOLVED,
    "resolved": CaseStatus.RESOLVED,
}

STALE_LABEL = "STALE"
RECENT_LABEL = "Recent"


def status_key(value: Optional[str]) -> str:
    """Lower-cases a provider status and drops whitespace ("extended recovery" == "extendedRecovery")."""
    return "".join(str(value or "").split()).lower()


def normalise_status(value: Optional[str]) -> CaseStatus:
    return PROVIDER_STATUS_MAP.get(status_key(value), CaseStatus.OTHER)


@dataclass(frozen=True)
class CaseRecord:
    """A support case or incident.

    The three derived fields stay ``None`` until the annotator returns an
    enriched copy; records are never mutated.
    """

    case_number: str
    owner: str
    title: str
    description: str
    status: CaseStatus
    severity: str
    created_at: Optional[datetime]
    last_updated_at: Optional[datetime]
    service: str = ""
    feature: str = ""
    hours_since_update: Optional[float] = None
    is_stale: Optional[bool] = None
    status_label: Optional[str] = None

    @property
    def is_annotated(self) -> bool:
        return self.is_stale is not None

    @property
    def status_flag(self) -> str:
        if self.is_stale is None:
            return ""
        return f"🔴 {STALE_LABEL}" if self.is_stale else f"🟢 {RECENT_LABEL}"


@dataclass(frozen=True)
class ReportBundle:
    """Annotated records in fetch order plus the context they were computed in."""

    records: Tuple[CaseRecord, ...]
    generated_at: datetime
    stale_threshold_hours: int
    excluded: Tuple[str, ...] = field(default=())

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def stale_records(self) -> Tuple[CaseRecord, ...]:
        return tuple(record for record in self.records if record.is_stale)

    @property
    def stale_count(self) -> int:
        return len(self.stale_records)

    @property
    def recent_count(self) -> int:
        return self.total - self.stale_count

    def summary(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "stale": self.stale_count,
            "recent": self.recent_count,
        }
