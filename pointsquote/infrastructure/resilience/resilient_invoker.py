"""Service for executing outbound calls with retries and circuit breaking.

Implements bounded retries with deterministic exponential backoff, a
per-attempt timeout, and an optional circuit breaker that treats the whole
retry sequence as one logical call. A failure policy decides whether a
definitive failure propagates to the caller or is replaced by a default value.
"""

import asyncio
import enum
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pointsquote.domain.events.api_events import (
    ApiCallFailed, ApiCallInitiated, ApiCallSucceeded, RetryScheduled, dispatch_event
)
from pointsquote.domain.interfaces.metrics import MetricsSink, NullMetricsSink
from pointsquote.domain.models.errors import CircuitOpenError, ExternalServiceError
from pointsquote.infrastructure.resilience.circuit_breaker import CircuitBreaker, CircuitState

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF_SECONDS = 0.1
DEFAULT_PER_CALL_TIMEOUT_SECONDS = 3.0

class FailurePolicy(enum.Enum):
    """What a definitive failure of a logical call turns into."""
    PROPAGATE = "propagate"      # raise ExternalServiceError / CircuitOpenError
    USE_DEFAULT = "use_default"  # return the configured default value

class ResilientInvoker:
    """Runs a zero-argument async operation under retry + circuit-breaker policy."""

    def __init__(
        self,
        name: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff_s: float = DEFAULT_INITIAL_BACKOFF_SECONDS,
        per_call_timeout_s: Optional[float] = DEFAULT_PER_CALL_TIMEOUT_SECONDS,
        circuit_breaker: Optional[CircuitBreaker] = None,
        failure_policy: FailurePolicy = FailurePolicy.PROPAGATE,
        default_value: Any = None,
        metrics: Optional[MetricsSink] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initializes the ResilientInvoker.

        Args:
            name: Name of the downstream dependency (for logging/metrics).
            max_retries: Retries after the initial attempt (0 disables retrying).
            initial_backoff_s: Delay before the first retry; doubles for each further retry.
            per_call_timeout_s: Timeout of each individual attempt, None for no timeout.
            circuit_breaker: Optional breaker shared by every call to this dependency.
            failure_policy: Whether definitive failures propagate or map to default_value.
            default_value: Value returned on failure under FailurePolicy.USE_DEFAULT.
            metrics: Sink for retry/failure counters.
            sleep: Coroutine used to wait between attempts. Injectable for tests.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if initial_backoff_s < 0:
            raise ValueError("initial_backoff_s must be >= 0")
        self.name = name
        self.max_retries = max_retries
        self.initial_backoff_s = initial_backoff_s
        self.per_call_timeout_s = per_call_timeout_s
        self.circuit_breaker = circuit_breaker
        self.failure_policy = failure_policy
        self.default_value = default_value
        self.metrics = metrics or NullMetricsSink()
        self._sleep = sleep

        logger.info(
            f"ResilientInvoker '{name}' initialized: max_retries={max_retries}, "
            f"initial_backoff={initial_backoff_s}s, per_call_timeout={per_call_timeout_s}s, "
            f"breaker={'yes' if circuit_breaker else 'no'}, policy={failure_policy.value}"
        )

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based): initial_backoff * 2^(n-1)."""
        return self.initial_backoff_s * (2 ** (retry_number - 1))

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Executes one logical call.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt.

        Returns:
            The operation's result, or the default value under USE_DEFAULT.

        Raises:
            CircuitOpenError: If the breaker rejected the call (PROPAGATE only).
            ExternalServiceError: If every attempt failed (PROPAGATE only).
        """
        is_probe = False
        if self.circuit_breaker is not None:
            if not await self.circuit_breaker.acquire():
                return self._reject()
            is_probe = self.circuit_breaker.state is CircuitState.HALF_OPEN

        try:
            result = await self._run_attempts(operation)
        except ExternalServiceError as error:
            if self.circuit_breaker is not None:
                await self.circuit_breaker.record_failure(probe=is_probe)
            self.metrics.increment_failures(self.name)
            dispatch_event(ApiCallFailed(
                dependency=self.name,
                error_type=type(error.cause).__name__ if error.cause else type(error).__name__,
                error_message=str(error),
                attempts=error.attempts,
            ))
            return self._fail(error)
        except asyncio.CancelledError:
            # No outcome to record, but a cancelled probe must free its slot.
            if is_probe:
                await self.circuit_breaker.release_probe()
            raise

        if self.circuit_breaker is not None:
            await self.circuit_breaker.record_success(probe=is_probe)
        return result

    def _reject(self) -> Any:
        """Handles a call short-circuited by the open breaker."""
        self.metrics.increment_failures(self.name)
        error = CircuitOpenError(self.name)
        logger.error(f"Call to {self.name} short-circuited: circuit open")
        dispatch_event(ApiCallFailed(
            dependency=self.name, error_type=type(error).__name__, error_message=str(error), attempts=0
        ))
        return self._fail(error)

    async def _run_attempts(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Runs attempts sequentially until one succeeds or retries are exhausted."""
        last_exception: Optional[Exception] = None
        total_attempts = self.max_retries + 1

        for attempt in range(total_attempts):
            dispatch_event(ApiCallInitiated(dependency=self.name, attempt_number=attempt + 1))
            start_time = time.perf_counter()
            try:
                if self.per_call_timeout_s is None:
                    result = await operation()
                else:
                    result = await asyncio.wait_for(operation(), timeout=self.per_call_timeout_s)
            except asyncio.TimeoutError as e:
                last_exception = e
                reason = f"timed out after {self.per_call_timeout_s}s"
            except Exception as e:
                last_exception = e
                reason = f"{type(e).__name__}: {e}"
            else:
                latency_ms = (time.perf_counter() - start_time) * 1000
                dispatch_event(ApiCallSucceeded(dependency=self.name, attempt_number=attempt + 1, latency_ms=latency_ms))
                return result

            if attempt < self.max_retries:
                delay = self.backoff_delay(attempt + 1)
                self.metrics.increment_retries(self.name)
                logger.warning(
                    f"Call to {self.name} failed on attempt {attempt + 1}/{total_attempts} ({reason}). "
                    f"Retrying in {delay:.3f}s..."
                )
                dispatch_event(RetryScheduled(dependency=self.name, attempt_number=attempt + 2, delay_seconds=delay))
                await self._sleep(delay)
            else:
                logger.error(f"Call to {self.name} failed after {total_attempts} attempt(s). Last error: {reason}")

        raise ExternalServiceError(
            f"{self.name} call failed after {total_attempts} attempt(s)",
            attempts=total_attempts,
            cause=last_exception,
        )

    def _fail(self, error: ExternalServiceError) -> Any:
        """Applies the failure policy to a definitive failure."""
        if self.failure_policy is FailurePolicy.USE_DEFAULT:
            logger.warning(f"Call to {self.name} failed ({error}); continuing with default value")
            return self.default_value
        raise error
