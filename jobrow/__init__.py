from .core import JobStatements, parse_fetch_params, parse_insert_params
from .errors import TransitionError, ValidationError
from .models import AttemptError, JobArgs, JobRecord, JobState, RawJob


__all__ = [
    "AttemptError",
    "JobArgs",
    "JobRecord",
    "JobState",
    "JobStatements",
    "RawJob",
    "TransitionError",
    "ValidationError",
    "parse_fetch_params",
    "parse_insert_params",
]
