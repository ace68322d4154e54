"""Custom exceptions for mentorgraph."""


class MentorGraphError(Exception):
    """Base exception for mentorgraph."""
    pass


class PostingValidationError(MentorGraphError):
    """Raised when a fetched or pushed record cannot be turned into a posting."""
    def __init__(self, errors: list[str], key: str | None = None):
        self.errors = errors
        self.key = key
        label = f"Posting '{key}'" if key else "Posting"
        super().__init__(f"{label} is invalid: {'; '.join(errors)}")


class StoreError(MentorGraphError):
    """Raised when the entity store returns an unusable response."""
    pass


class StoreUnavailableError(StoreError):
    """Raised when the entity store cannot be reached after retries."""
    pass


class CircuitOpenError(StoreUnavailableError):
    """Raised when calls are blocked by an open circuit breaker."""
    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker is OPEN. Store unavailable. Retry after {retry_after:.0f}s"
        )
