"""Error taxonomy for the points quote domain.

Callers at the boundary map these to user-facing responses; promotion lookup
failures never appear here because they are absorbed by the gateway.
"""

from typing import Optional


class QuoteError(Exception):
    """Base class for every failure a quote can end with."""


class ValidationError(QuoteError):
    """Raised when a quote request is malformed or out of range."""


class ExternalServiceError(QuoteError):
    """Raised when a downstream dependency cannot serve a logical call."""

    def __init__(self, message: str, attempts: int = 0, cause: Optional[BaseException] = None):
        self.attempts = attempts
        self.cause = cause
        super().__init__(message)


class CircuitOpenError(ExternalServiceError):
    """Raised when a circuit breaker short-circuits a call without attempting it."""

    def __init__(self, dependency: str):
        self.dependency = dependency
        super().__init__(f"{dependency} unavailable (circuit open)", attempts=0)


class QuoteTimeoutError(QuoteError):
    """Raised when the overall quote deadline elapses."""

    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"Quote calculation exceeded {timeout_s:.2f}s deadline")
