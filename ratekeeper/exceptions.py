"""Custom exceptions for the rate limiter library."""


class RateLimitError(Exception):
    """Base class for rate limiter exceptions.

    All custom exceptions inherit from this class and carry a
    human-readable message.
    """

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class StoreError(RateLimitError):
    """Raised when the backing store cannot produce a usable answer.

    Limiters catch this family and apply their fail-closed/fail-open policy.
    """


class StoreUnavailableError(StoreError):
    """Raised when a store call fails (connection refused, timeout, ...)."""

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        message = f"Store operation '{operation}' failed"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class MalformedStateError(StoreError):
    """Raised when stored state or a script result has an unexpected type."""

    def __init__(self, key: str, value: object = None):
        self.key = key
        self.value = value
        super().__init__(f"Unexpected value for '{key}': {value!r}")


class RateLimitExceeded(RateLimitError):
    """Raised by ``RateLimiter.enforce`` when a request is denied.

    Maps to HTTP 429 Too Many Requests.
    """

    status_code = 429

    def __init__(
        self,
        identity: str,
        strategy: str,
        retry_after: float | None = None,
    ):
        self.identity = identity
        self.strategy = strategy
        self.retry_after = retry_after
        message = f"Rate limit exceeded for '{identity}' ({strategy})."
        if retry_after is not None:
            message += f" Retry after {retry_after:g}s."
        super().__init__(message)
