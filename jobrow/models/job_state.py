import enum

from jobrow.errors import TransitionError, ValidationError


class JobState(str, enum.Enum):
    AVAILABLE = "available"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    RETRYABLE = "retryable"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISCARDED = "discarded"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @staticmethod
    def parse(value: "JobState | str") -> "JobState":
        if isinstance(value, JobState):
            return value
        try:
            return JobState(value)
        except ValueError:
            raise ValidationError("state", f"Unknown job state {value!r}") from None


TERMINAL_STATES = frozenset(
    {JobState.COMPLETED, JobState.CANCELLED, JobState.DISCARDED}
)

# Snoozing shares the running -> retryable edge with failures.
TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.SCHEDULED: frozenset({JobState.AVAILABLE, JobState.CANCELLED}),
    JobState.AVAILABLE: frozenset({JobState.RUNNING, JobState.CANCELLED}),
    JobState.RUNNING: frozenset(
        {
            JobState.COMPLETED,
            JobState.RETRYABLE,
            JobState.DISCARDED,
            JobState.CANCELLED,
        }
    ),
    JobState.RETRYABLE: frozenset({JobState.SCHEDULED, JobState.CANCELLED}),
    JobState.COMPLETED: frozenset(),
    JobState.CANCELLED: frozenset(),
    JobState.DISCARDED: frozenset(),
}


def can_transition(from_state: JobState | str, to_state: JobState | str) -> bool:
    return JobState.parse(to_state) in TRANSITIONS[JobState.parse(from_state)]


def check_transition(from_state: JobState | str, to_state: JobState | str) -> None:
    """Raise ``TransitionError`` unless ``from_state -> to_state`` is legal."""
    from_state = JobState.parse(from_state)
    to_state = JobState.parse(to_state)
    if to_state not in TRANSITIONS[from_state]:
        reason = "job is finalized" if from_state.is_terminal else None
        raise TransitionError(from_state, to_state, reason)
