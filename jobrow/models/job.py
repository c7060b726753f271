import dataclasses
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from jobrow.errors import TransitionError, ValidationError
from .attempt_error import AttemptError
from .job_args import (
    JobArgs,
    JsonValue,
    decode,
    freeze,
    thaw,
    validate_kind,
    validate_payload,
)
from .job_state import JobState, check_transition
from .params import InsertParams
from .raw_job import RawJob
from .timestamps import from_ms, to_ms, utc_now, validate_timestamp
from .validation import (
    is_int,
    normalize_strings,
    validate_max_attempts,
    validate_priority,
    validate_queue_name,
)


logger = logging.getLogger(__name__)


IMMUTABLE_FIELDS = frozenset(
    {"id", "kind", "args", "queue", "priority", "max_attempts", "created_at"}
)

# States only reachable after a fetch has started attempt 1
ATTEMPTED_STATES = frozenset(
    {JobState.RUNNING, JobState.RETRYABLE, JobState.COMPLETED, JobState.DISCARDED}
)


def _normalize_errors(
    value: Sequence[AttemptError] | None, attempt: int
) -> tuple[AttemptError, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValidationError("errors", "Must be an ordered sequence")

    previous = 0
    for error in value:
        if not isinstance(error, AttemptError):
            raise ValidationError("errors", f"Not an AttemptError: {error!r}")
        if error.attempt <= previous:
            raise ValidationError(
                "errors",
                "Errors must be ordered from earliest to latest attempt, "
                "one per attempt",
            )
        if error.attempt > attempt:
            raise ValidationError(
                "errors",
                f"Error recorded for attempt {error.attempt} but the job "
                f"has only reached attempt {attempt}",
            )
        previous = error.attempt
    return tuple(value)


@dataclass
class JobRecord:
    """A unit of work as persisted by the storage engine.

    Every field is read-only once the record is built. The state and the
    attempt bookkeeping only change through the transition methods
    (``make_available()``, ``fetch()``, ``complete()``, ``fail()``,
    ``snooze()``, ``schedule_retry()`` and ``cancel()``), each of which
    either applies all of its side effects or raises and leaves the record
    untouched.

    The record is a working copy. A transition is only committed once the
    storage collaborator writes it back, see ``JobStatements.save_statement()``.
    """

    id: int
    """ID of the job.

    Generated by the storage engine and generally ascending, but there may
    be gaps in it as transactions roll back.
    """
    kind: str
    """Identifies the type of job and selects the handler that works it."""
    args: Mapping[str, Any]
    """The job's args decoded from JSON, as a read-only view.

    Objects are mapping proxies and arrays are tuples. Use ``to_job_args()``
    for a mutable copy.
    """
    queue: str
    """The queue the job is worked from. Queues isolate groups of jobs."""
    priority: int
    """Priority from 1 (highest) to 4 (lowest).

    Higher priority jobs of a queue are always fetched before any lower
    priority ones.
    """
    max_attempts: int
    """How many times the job is attempted before it is discarded."""
    attempt: int
    """The attempt number of the job.

    Jobs are inserted at 0 and the number is incremented every time the job
    is fetched for work.
    """
    state: JobState
    """The lifecycle state, ``available`` or ``scheduled`` on insertion."""
    created_at: datetime
    """When the job record was created."""
    scheduled_at: datetime
    """When the job becomes eligible to be worked.

    Moves forward when the job errors with attempts remaining or when it
    is snoozed.
    """
    attempted_at: datetime | None = field(default=None)
    """When the job was first worked. Unset until the first fetch."""
    attempted_by: tuple[str, ...] = field(default=())
    """Identities of the worker processes that have worked the job.

    A worker identity is unique per process and shared by all executors
    within it. Each identity appears once, in the order first seen.
    """
    errors: tuple[AttemptError, ...] = field(default=())
    """Errors of failed attempts, from earliest to latest."""
    finalized_at: datetime | None = field(default=None)
    """When the job reached a terminal state. Unset otherwise."""
    tags: frozenset[str] | None = field(default=None)
    """Arbitrary keywords to group and categorize jobs. No behavior."""

    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not is_int(self.id) or self.id < 1:
            raise ValidationError("id", "Job ID must be a positive integer")
        validate_kind(self.kind)
        self.args = freeze(validate_payload(thaw(self.args)))
        validate_queue_name(self.queue)
        validate_priority(self.priority)
        validate_max_attempts(self.max_attempts)
        if not is_int(self.attempt) or not (
            0 <= self.attempt <= self.max_attempts
        ):
            raise ValidationError(
                "attempt",
                f"Attempt must be an integer between 0 and {self.max_attempts}",
            )
        self.state = JobState.parse(self.state)
        if self.attempt == 0 and self.state in ATTEMPTED_STATES:
            raise ValidationError(
                "attempt",
                f"A {self.state} job must have been attempted at least once",
            )

        validate_timestamp("created_at", self.created_at)
        validate_timestamp("scheduled_at", self.scheduled_at)
        validate_timestamp("attempted_at", self.attempted_at, optional=True)
        validate_timestamp("finalized_at", self.finalized_at, optional=True)

        if (self.attempted_at is None) != (self.attempt == 0):
            raise ValidationError(
                "attempted_at",
                "attempted_at must be set once the job has been attempted "
                "and unset before",
            )
        if (self.finalized_at is not None) != self.state.is_terminal:
            raise ValidationError(
                "finalized_at",
                f"finalized_at must be set exactly when the job is in a "
                f"terminal state, but the job is {self.state}",
            )

        self.attempted_by = tuple(
            normalize_strings("attempted_by", self.attempted_by) or ()
        )
        self.errors = _normalize_errors(self.errors, self.attempt)
        tags = normalize_strings("tags", self.tags)
        self.tags = frozenset(tags) if tags is not None else None

        self._sealed = True

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_sealed", False):
            if name in IMMUTABLE_FIELDS:
                raise ValidationError(name, "Immutable once the job is created")
            raise ValidationError(
                name, "Can only change through a state transition"
            )
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        raise ValidationError(name, "Job fields cannot be deleted")

    @classmethod
    def create(
        cls,
        id: int,
        args: Mapping[str, JsonValue],
        attempt: int,
        created_at: datetime,
        kind: str,
        max_attempts: int,
        priority: int,
        queue: str,
        scheduled_at: datetime,
        state: JobState | str,
        attempted_at: datetime | None = None,
        attempted_by: Iterable[str] | None = None,
        errors: Sequence[AttemptError] | None = None,
        finalized_at: datetime | None = None,
        tags: Iterable[str] | None = None,
    ) -> "JobRecord":
        """Validate the fields and build a record. Touches no storage."""
        return cls(
            id=id,
            kind=kind,
            args=args,
            queue=queue,
            priority=priority,
            max_attempts=max_attempts,
            attempt=attempt,
            state=state,
            created_at=created_at,
            scheduled_at=scheduled_at,
            attempted_at=attempted_at,
            attempted_by=attempted_by,
            errors=errors,
            finalized_at=finalized_at,
            tags=tags,
        )

    @staticmethod
    def from_insert_params(job_id: int, insert_params: InsertParams) -> "JobRecord":
        return JobRecord(
            id=job_id,
            kind=insert_params.kind,
            args=decode(insert_params.serialized_args),
            queue=insert_params.queue,
            priority=insert_params.priority,
            max_attempts=insert_params.max_attempts,
            attempt=0,
            state=insert_params.state,
            created_at=from_ms(insert_params.created_at_ms),
            scheduled_at=from_ms(insert_params.scheduled_at_ms),
            tags=insert_params.tags,
        )

    @staticmethod
    def from_raw_job(raw_job: RawJob) -> "JobRecord":
        # Convert epoch timestamps in milliseconds to datetime objects
        attempted_at = (
            from_ms(raw_job.attempted_at)
            if raw_job.attempted_at is not None
            else None
        )
        finalized_at = (
            from_ms(raw_job.finalized_at)
            if raw_job.finalized_at is not None
            else None
        )
        errors = [AttemptError.from_dict(e) for e in raw_job.errors or []]

        return JobRecord(
            id=raw_job.id,
            kind=raw_job.kind,
            args=decode(raw_job.args),
            queue=raw_job.queue,
            priority=raw_job.priority,
            max_attempts=raw_job.max_attempts,
            attempt=raw_job.attempt,
            state=raw_job.state,
            created_at=from_ms(raw_job.created_at),
            scheduled_at=from_ms(raw_job.scheduled_at),
            attempted_at=attempted_at,
            attempted_by=raw_job.attempted_by,
            errors=errors,
            finalized_at=finalized_at,
            tags=raw_job.tags,
        )

    def row_values(self) -> dict[str, Any]:
        """Columns a transition may change, in their stored form."""
        attempted_at_ms = None
        if self.attempted_at is not None:
            attempted_at_ms = to_ms(self.attempted_at)
        finalized_at_ms = None
        if self.finalized_at is not None:
            finalized_at_ms = to_ms(self.finalized_at)

        return {
            "attempt": self.attempt,
            "state": self.state.value,
            "scheduled_at": to_ms(self.scheduled_at),
            "attempted_at": attempted_at_ms,
            "attempted_by": list(self.attempted_by),
            "errors": [error.to_dict() for error in self.errors],
            "finalized_at": finalized_at_ms,
        }

    def to_job_args(self) -> JobArgs:
        """Rebuild the insertable args, e.g. to enqueue a copy of the job."""
        return JobArgs(self.kind, thaw(self.args))

    @property
    def is_finalized(self) -> bool:
        """True once the job is completed, cancelled or discarded."""
        return self.state.is_terminal

    def make_available(self, now: datetime | None = None) -> "JobRecord":
        """Make a scheduled job available once ``scheduled_at`` is reached."""
        check_transition(self.state, JobState.AVAILABLE)
        now = self._now(now)
        if self.scheduled_at > now:
            raise TransitionError(
                self.state,
                JobState.AVAILABLE,
                f"job is scheduled for {self.scheduled_at.isoformat()}",
            )
        return self._transition(JobState.AVAILABLE)

    def fetch(self, worker_id: str, now: datetime | None = None) -> "JobRecord":
        """Start an attempt on behalf of the worker process ``worker_id``.

        The storage collaborator must make the fetch mutually exclusive
        across workers, e.g. by saving it with a compare-and-swap on the
        ``available`` state.
        """
        check_transition(self.state, JobState.RUNNING)
        if not worker_id or not isinstance(worker_id, str):
            raise ValidationError(
                "attempted_by", "Worker identity must be a non-empty string"
            )
        if self.attempt >= self.max_attempts:
            raise TransitionError(
                self.state,
                JobState.RUNNING,
                f"all {self.max_attempts} attempts have been used",
            )
        now = self._now(now)

        attempted_by = self.attempted_by
        if worker_id not in attempted_by:
            attempted_by = attempted_by + (worker_id,)

        return self._transition(
            JobState.RUNNING,
            attempt=self.attempt + 1,
            attempted_at=self.attempted_at or now,
            attempted_by=attempted_by,
        )

    def complete(self, now: datetime | None = None) -> "JobRecord":
        check_transition(self.state, JobState.COMPLETED)
        return self._transition(JobState.COMPLETED, finalized_at=self._now(now))

    def fail(
        self,
        error: str | BaseException | AttemptError,
        retry_at: datetime | timedelta | None = None,
        now: datetime | None = None,
        trace: str | None = None,
    ) -> "JobRecord":
        """Record a failed attempt.

        The job becomes ``retryable`` at ``retry_at`` while it has attempts
        left, and is ``discarded`` otherwise. The retry time is computed by
        the caller; a ``timedelta`` is taken relative to ``now``.

        Args:
            error (str | BaseException | AttemptError): The failure cause.
                An exception also contributes its traceback. A prebuilt
                ``AttemptError`` must belong to the current attempt.
            retry_at (datetime | timedelta | None): When to retry. Required
                unless this was the final attempt.
            now (datetime | None): The failure time. Defaults to the
                current UTC time.
            trace (str | None): A trace to store, overriding any captured
                from an exception.
        """
        to_state = (
            JobState.RETRYABLE
            if self.attempt < self.max_attempts
            else JobState.DISCARDED
        )
        check_transition(self.state, to_state)
        now = self._now(now)
        attempt_error = self._attempt_error(error, now, trace)
        errors = self.errors + (attempt_error,)

        if to_state is JobState.DISCARDED:
            return self._transition(
                JobState.DISCARDED, errors=errors, finalized_at=now
            )

        if retry_at is None:
            raise ValidationError(
                "scheduled_at",
                "A retry time is required while the job has attempts left",
            )
        return self._transition(
            JobState.RETRYABLE,
            errors=errors,
            scheduled_at=self._advance(retry_at, now),
        )

    def snooze(
        self, until: datetime | timedelta, now: datetime | None = None
    ) -> "JobRecord":
        """Defer a running job without recording a failure.

        The attempt started by the fetch still counts, so a job on its
        final attempt cannot be snoozed; complete or fail it instead.
        """
        check_transition(self.state, JobState.RETRYABLE)
        if self.attempt >= self.max_attempts:
            raise TransitionError(
                self.state,
                JobState.RETRYABLE,
                "cannot snooze the final attempt",
            )
        now = self._now(now)
        return self._transition(
            JobState.RETRYABLE, scheduled_at=self._advance(until, now)
        )

    def schedule_retry(self) -> "JobRecord":
        """Hand a retryable job over to the scheduler."""
        check_transition(self.state, JobState.SCHEDULED)
        return self._transition(JobState.SCHEDULED)

    def cancel(self, now: datetime | None = None) -> "JobRecord":
        """Cancel the job for good.

        A running job is cancelled without recording an error, so the
        in-flight attempt does not count as a failure. The worker holding
        it is expected to notice on its next checkpoint.
        """
        check_transition(self.state, JobState.CANCELLED)
        return self._transition(JobState.CANCELLED, finalized_at=self._now(now))

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        if now is None:
            return utc_now()
        return validate_timestamp("now", now)

    def _advance(self, value: datetime | timedelta, now: datetime) -> datetime:
        if isinstance(value, timedelta):
            value = now + value
        validate_timestamp("scheduled_at", value)
        if value < self.scheduled_at:
            raise ValidationError(
                "scheduled_at",
                f"Cannot move scheduled_at back from "
                f"{self.scheduled_at.isoformat()} to {value.isoformat()}",
            )
        return value

    def _attempt_error(
        self,
        error: str | BaseException | AttemptError,
        now: datetime,
        trace: str | None,
    ) -> AttemptError:
        if isinstance(error, AttemptError):
            if error.attempt != self.attempt:
                raise ValidationError(
                    "errors",
                    f"Error belongs to attempt {error.attempt} but the job "
                    f"is on attempt {self.attempt}",
                )
            attempt_error = error
        elif isinstance(error, BaseException):
            attempt_error = AttemptError.from_exception(error, self.attempt, now)
        else:
            attempt_error = AttemptError(
                at=now, attempt=self.attempt, error=error
            )

        if trace is not None:
            attempt_error = dataclasses.replace(attempt_error, trace=trace)
        return attempt_error

    def _transition(self, to_state: JobState, **changes: Any) -> "JobRecord":
        from_state = self.state
        changes["state"] = to_state
        for name, value in changes.items():
            object.__setattr__(self, name, value)

        logger.debug(
            f"Job {self.id} ({self.kind}) moved from {from_state} to "
            f"{to_state} on attempt {self.attempt}"
        )
        return self
