import logging
from datetime import datetime, timedelta
from typing import Iterable, Mapping

from jobrow.errors import ValidationError
from jobrow.models.job_args import JobArgs, JobArgsLike, JsonValue, encode_args
from jobrow.models.job_state import JobState
from jobrow.models.params import FetchParams, InsertParams
from jobrow.models.timestamps import parse_timestamp, to_ms, utc_now
from jobrow.models.validation import (
    is_int,
    normalize_strings,
    validate_max_attempts,
    validate_priority,
    validate_queue_name,
)


logger = logging.getLogger(__name__)


DEFAULT_QUEUE = "default"
DEFAULT_PRIORITY = 1
DEFAULT_MAX_ATTEMPTS = 25
DEFAULT_FETCH_LIMIT = 1


def parse_insert_params(
    args: str | JobArgsLike,
    payload: Mapping[str, JsonValue] | None = None,
    queue: str | None = None,
    priority: int | None = None,
    max_attempts: int | None = None,
    scheduled_at: datetime | int | None = None,
    delay: timedelta | int | None = None,
    tags: Iterable[str] | None = None,
    now: datetime | None = None,
) -> InsertParams:
    """Validate insertion input and encode the job args.

    ``args`` is either a kind string, in which case ``payload`` holds the
    args mapping, or an args object exposing ``kind`` and ``to_json()``.
    A job scheduled for the future is inserted ``scheduled``, any other
    job ``available``.
    """
    if isinstance(args, str) or args is None:
        args = JobArgs(args, payload)
    elif payload is not None:
        raise ValidationError(
            "args", "Pass either an args object or a kind with a payload"
        )
    elif not isinstance(args, JobArgsLike):
        raise ValidationError(
            "args", "Args must expose a kind and a to_json() method"
        )
    kind, serialized_args = encode_args(args)

    queue = DEFAULT_QUEUE if queue is None else queue
    validate_queue_name(queue)

    priority = DEFAULT_PRIORITY if priority is None else priority
    validate_priority(priority)

    max_attempts = DEFAULT_MAX_ATTEMPTS if max_attempts is None else max_attempts
    validate_max_attempts(max_attempts)

    tags = normalize_strings("tags", tags)
    if tags is not None:
        tags = frozenset(tags)

    # Determine the scheduled_at time
    now = utc_now() if now is None else parse_timestamp("now", now)
    if scheduled_at is None:
        scheduled_at = now
    else:
        scheduled_at = parse_timestamp("scheduled_at", scheduled_at)

    if delay:
        if isinstance(delay, int):
            delay = timedelta(milliseconds=delay)
        if not isinstance(delay, timedelta):
            raise ValidationError(
                "scheduled_at", "Delay must be a timedelta or milliseconds"
            )
        scheduled_at += delay

    state = JobState.SCHEDULED if scheduled_at > now else JobState.AVAILABLE
    logger.debug(f"Prepared {state} job of kind {kind} in queue {queue}")

    return InsertParams(
        kind=kind,
        serialized_args=serialized_args,
        queue=queue,
        priority=priority,
        max_attempts=max_attempts,
        state=state,
        tags=tags,
        created_at_ms=to_ms(now),
        scheduled_at_ms=to_ms(scheduled_at),
    )


def parse_fetch_params(
    queue: str | None = None,
    now: datetime | int | None = None,
    limit: int = DEFAULT_FETCH_LIMIT,
) -> FetchParams:
    queue = DEFAULT_QUEUE if queue is None else queue
    validate_queue_name(queue)

    if not is_int(limit) or limit < 1:
        raise ValidationError("limit", "limit must be a positive integer")

    now = utc_now() if now is None else parse_timestamp("now", now)

    return FetchParams(queue=queue, now_ms=to_ms(now), limit=limit)
