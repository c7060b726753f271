from .attempt_error import AttemptError
from .job import JobRecord
from .job_args import JobArgs, JobArgsLike, JsonValue
from .job_state import JobState
from .raw_job import RawJob


__all__ = [
    "AttemptError",
    "JobArgs",
    "JobArgsLike",
    "JobRecord",
    "JobState",
    "JsonValue",
    "RawJob",
]
