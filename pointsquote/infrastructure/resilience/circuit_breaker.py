"""Implementation of a circuit breaker.

Tracks consecutive logical-call failures against one downstream dependency
and short-circuits calls while the dependency is considered down.
One instance per dependency, shared by all concurrent requests for the
lifetime of the process.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pointsquote.domain.events.api_events import CircuitStateChanged, dispatch_event

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_RESET_TIMEOUT_SECONDS = 10.0

class CircuitState(enum.Enum):
    """Circuit breaker state values."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals, for logging and display."""
    name: str
    state: CircuitState
    consecutive_failures: int
    opened_at: Optional[float]

class CircuitBreaker:
    """CLOSED -> OPEN -> HALF_OPEN state machine guarded by an asyncio lock.

    CLOSED: calls pass through; consecutive failures are counted and the
        breaker opens once the count reaches ``failure_threshold``.
    OPEN: calls are rejected until ``reset_timeout`` has elapsed.
    HALF_OPEN: exactly one probe call is let through; its success closes the
        breaker, its failure opens it again. Other calls are rejected while
        the probe is in flight.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        reset_timeout: float = DEFAULT_RESET_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the circuit breaker.

        Args:
            name: Name of the protected dependency (for logging/events).
            failure_threshold: Consecutive logical failures before opening.
            reset_timeout: Seconds the breaker stays OPEN before allowing a probe.
            clock: Monotonic clock in seconds. Injectable for tests.
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False
        self._lock = asyncio.Lock()
        logger.info(
            f"CircuitBreaker '{name}' initialized: failure_threshold={failure_threshold}, "
            f"reset_timeout={reset_timeout}s"
        )

    @property
    def state(self) -> CircuitState:
        """Current state, without triggering the OPEN -> HALF_OPEN transition."""
        return self._state

    def snapshot(self) -> BreakerSnapshot:
        """Returns a point-in-time view of the breaker."""
        return BreakerSnapshot(
            name=self.name,
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            opened_at=self._opened_at,
        )

    async def acquire(self) -> bool:
        """Asks permission to start a logical call.

        Returns:
            True if the call may proceed, False if it must be short-circuited.
        """
        async with self._lock:
            if self._state is CircuitState.CLOSED:
                return True

            if self._state is CircuitState.OPEN:
                elapsed = self._clock() - (self._opened_at or 0.0)
                if elapsed < self.reset_timeout:
                    return False
                self._transition(CircuitState.HALF_OPEN, reason=f"reset timeout elapsed ({elapsed:.2f}s)")
                self._probe_in_flight = True
                return True

            # HALF_OPEN: a single probe at a time
            if self._probe_in_flight:
                return False
            self._probe_in_flight = True
            return True

    async def record_success(self, probe: bool = True) -> None:
        """Records a successful logical call.

        Args:
            probe: False for a call admitted while the breaker was CLOSED. Such a
                call finishing while HALF_OPEN leaves the probe to decide.
        """
        async with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                if not probe:
                    return
                self._consecutive_failures = 0
                self._probe_in_flight = False
                self._opened_at = None
                self._transition(CircuitState.CLOSED, reason="probe succeeded")
                return
            self._consecutive_failures = 0

    async def record_failure(self, probe: bool = True) -> None:
        """Records a failed logical call.

        Args:
            probe: False for a call admitted while the breaker was CLOSED.
        """
        async with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                if not probe:
                    return
                self._probe_in_flight = False
                self._open(reason="probe failed")
                return

            if self._state is CircuitState.OPEN:
                # A call admitted before the breaker opened finished late.
                return

            self._consecutive_failures += 1
            logger.debug(
                f"CircuitBreaker '{self.name}' failure {self._consecutive_failures}/{self.failure_threshold}"
            )
            if self._consecutive_failures >= self.failure_threshold:
                self._open(reason=f"{self._consecutive_failures} consecutive failures")

    async def release_probe(self) -> None:
        """Frees the probe slot when a probe ended without an outcome (e.g. cancelled)."""
        async with self._lock:
            self._probe_in_flight = False

    # --- Internal helpers (call with the lock held) ---

    def _open(self, reason: str) -> None:
        self._opened_at = self._clock()
        self._transition(CircuitState.OPEN, reason=reason)

    def _transition(self, new_state: CircuitState, reason: str) -> None:
        old_state = self._state
        self._state = new_state
        if new_state is CircuitState.OPEN:
            logger.warning(f"CircuitBreaker '{self.name}' {old_state.value} -> {new_state.value}: {reason}")
        else:
            logger.info(f"CircuitBreaker '{self.name}' {old_state.value} -> {new_state.value}: {reason}")
        dispatch_event(CircuitStateChanged(
            breaker=self.name,
            old_state=old_state.value,
            new_state=new_state.value,
            reason=reason,
        ))
