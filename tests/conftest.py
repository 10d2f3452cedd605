"""Shared fixtures for case staleness tests."""

from datetime import datetime, timedelta, timezone

import pytest

from case_staleness.annotator import annotate
from case_staleness.models import CaseRecord, CaseStatus

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_record():
    """Factory for CaseRecords last updated ``hours_ago`` before NOW."""

    def _make(case_number="MO100", hours_ago=1.0, **overrides):
        values = dict(
            case_number=case_number,
            owner="Microsoft Support",
            title=f"Case {case_number}",
            description="Users cannot sign in",
            status=CaseStatus.INVESTIGATING,
            severity="incident",
            created_at=NOW - timedelta(hours=hours_ago + 1),
            last_updated_at=NOW - timedelta(hours=hours_ago),
            service="Exchange Online",
            feature="Mail flow",
        )
        values.update(overrides)
        return CaseRecord(**values)

    return _make


@pytest.fixture
def make_bundle(make_record):
    """Builds an annotated bundle from a list of hours-ago values (48h threshold)."""

    def _make(hours, threshold=48):
        records = [
            make_record(case_number=f"MO{i:03d}", hours_ago=h)
            for i, h in enumerate(hours)
        ]
        return annotate(records, NOW, threshold)

    return _make
