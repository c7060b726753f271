from datetime import datetime, timedelta, timezone
from typing import Any

from jobrow.errors import ValidationError


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)  # pragma: no cover


def now_ms() -> int:
    return to_ms(utc_now())  # pragma: no cover


def to_ms(value: datetime) -> int:
    """Convert an aware datetime to Unix epoch milliseconds."""
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_ms(value: int) -> datetime:
    """Convert Unix epoch milliseconds to a UTC datetime."""
    return EPOCH + timedelta(milliseconds=value)


def validate_timestamp(field: str, value: Any, optional: bool = False) -> datetime | None:
    if value is None and optional:
        return None
    if not isinstance(value, datetime):
        raise ValidationError(field, "Must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(field, "Must be timezone-aware")
    return value


def parse_timestamp(field: str, value: datetime | int) -> datetime:
    """Accept a datetime or epoch milliseconds, the way insert parameters do."""
    if isinstance(value, int) and not isinstance(value, bool):
        return from_ms(value)
    return validate_timestamp(field, value)
