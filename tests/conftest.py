from datetime import datetime, timedelta, timezone

import pytest

from jobrow import JobRecord, JobState


@pytest.fixture
def now() -> datetime:
    """A fixed, millisecond-precise point in time."""
    return datetime(2024, 5, 17, 12, 30, 0, 250000, tzinfo=timezone.utc)


@pytest.fixture
def make_job(now):
    """Build a job record with sensible defaults for any field."""

    def factory(**overrides) -> JobRecord:
        values = dict(
            id=1,
            kind="send_email",
            args={"to": "user@example.com"},
            queue="default",
            priority=3,
            max_attempts=5,
            attempt=0,
            state=JobState.AVAILABLE,
            created_at=now - timedelta(seconds=10),
            scheduled_at=now - timedelta(seconds=10),
        )
        values.update(overrides)
        return JobRecord.create(**values)

    return factory
