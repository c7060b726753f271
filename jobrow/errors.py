class ValidationError(ValueError):
    """Raised when a job field, argument or payload is malformed or missing.

    The ``field`` attribute names the offending field so that the caller
    can correct the input.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class TransitionError(Exception):
    """Raised when a job is asked to move between two states illegally.

    The job is left exactly as it was before the attempted transition.
    """

    def __init__(self, from_state: str, to_state: str, reason: str | None = None) -> None:
        self.from_state = str(from_state)
        self.to_state = str(to_state)
        message = f"Illegal transition from '{self.from_state}' to '{self.to_state}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
