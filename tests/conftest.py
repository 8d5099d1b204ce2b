from datetime import datetime, timedelta, timezone

import pytest

from delivery_reports.app.context import DateRange, FilterState
from delivery_reports.app.models import DELIVERED, ConsignmentRecord

T0 = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def threshold():
    """On-time cutoff used across the aggregation tests."""
    return timedelta(hours=24)


@pytest.fixture
def make_record():
    counter = {"n": 0}

    def _make(
        scheduled=T0,
        delay_hours=None,
        status=DELIVERED,
        source="A",
        destination="B",
        record_id=None,
    ):
        counter["n"] += 1
        delivered = scheduled + timedelta(hours=delay_hours) if delay_hours is not None else None
        return ConsignmentRecord(
            id=record_id or f"c-{counter['n']}",
            source_office=source,
            destination_office=destination,
            scheduled_at=scheduled,
            delivered_at=delivered,
            status=status,
        )

    return _make


@pytest.fixture
def year_filters():
    return FilterState(
        date_range=DateRange(
            start=datetime(2023, 1, 1, tzinfo=timezone.utc),
            end=datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        )
    )
