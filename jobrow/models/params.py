from dataclasses import dataclass

from jobrow.models.job_state import JobState


@dataclass
class InsertParams:
    kind: str
    serialized_args: str
    queue: str
    priority: int
    max_attempts: int
    state: JobState
    tags: frozenset[str] | None
    created_at_ms: int
    scheduled_at_ms: int


@dataclass
class FetchParams:
    queue: str
    now_ms: int
    limit: int
