import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from jobrow.errors import ValidationError
from jobrow.models.timestamps import utc_now, validate_timestamp


@dataclass(frozen=True)
class AttemptError:
    """A failed work attempt of a job."""

    at: datetime
    """The time at which the error occurred."""
    attempt: int
    """The attempt number on which the error occurred.

    Always equal to the job's ``attempt`` at the moment it failed.
    """
    error: str
    """The stringified error raised or returned by the handler."""
    trace: str | None = field(default=None)
    """The traceback captured when the handler raised, if there was one."""

    def __post_init__(self) -> None:
        validate_timestamp("at", self.at)
        if (
            not isinstance(self.attempt, int)
            or isinstance(self.attempt, bool)
            or self.attempt < 1
        ):
            raise ValidationError("attempt", "Attempt must be a positive integer")
        if not self.error or not isinstance(self.error, str):
            raise ValidationError("error", "Error must be a non-empty string")
        if self.trace is not None and not isinstance(self.trace, str):
            raise ValidationError("trace", "Trace must be a string")

    @staticmethod
    def from_exception(
        exception: BaseException,
        attempt: int,
        at: datetime | None = None,
    ) -> "AttemptError":
        """Build an attempt error out of an exception and its traceback."""
        message = str(exception) or type(exception).__name__
        stack_trace = "".join(
            traceback.format_exception(
                type(exception), exception, exception.__traceback__
            )
        )
        return AttemptError(
            at=at or utc_now(),
            attempt=attempt,
            error=message,
            trace=stack_trace,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "at": self.at.isoformat(),
            "attempt": self.attempt,
            "error": self.error,
            "trace": self.trace,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "AttemptError":
        missing = {"at", "attempt", "error"} - set(data)
        if missing:
            raise ValidationError(
                "errors", f"Attempt error is missing {sorted(missing)}"
            )

        try:
            at = datetime.fromisoformat(data["at"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("errors", f"Malformed attempt time: {exc}") from exc

        return AttemptError(
            at=at,
            attempt=data["attempt"],
            error=data["error"],
            trace=data.get("trace"),
        )
