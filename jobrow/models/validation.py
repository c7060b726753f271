from collections.abc import Iterable, Mapping
from typing import Any

from jobrow.errors import ValidationError


PRIORITY_HIGHEST = 1
PRIORITY_LOWEST = 4


def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_queue_name(queue: Any) -> None:
    if not queue or not isinstance(queue, str):
        raise ValidationError("queue", "Queue name must be a non-empty string")


def validate_priority(priority: Any) -> None:
    if not is_int(priority) or not (
        PRIORITY_HIGHEST <= priority <= PRIORITY_LOWEST
    ):
        raise ValidationError(
            "priority",
            f"Priority must be an integer between {PRIORITY_HIGHEST} "
            f"and {PRIORITY_LOWEST}",
        )


def validate_max_attempts(max_attempts: Any) -> None:
    if not is_int(max_attempts) or max_attempts < 1:
        raise ValidationError(
            "max_attempts", "max_attempts must be a positive integer"
        )


def normalize_strings(name: str, value: Iterable[str] | None) -> list[str] | None:
    """Collect distinct non-empty strings, keeping the first-seen order.

    Any iterable is accepted, generators included, except a bare string,
    bytes or a mapping.
    """
    if value is None:
        return None
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(
        value, Iterable
    ):
        raise ValidationError(name, "Must be a collection of strings")
    items = []
    for item in value:
        if not item or not isinstance(item, str):
            raise ValidationError(name, f"Invalid entry {item!r}")
        if item not in items:
            items.append(item)
    return items
