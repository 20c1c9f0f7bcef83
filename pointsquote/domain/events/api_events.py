"""Domain Events related to outbound calls and resilience.

Examples include events for when calls are initiated, retried, fail, or
succeed, and for circuit breaker state transitions.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an attempt of a logical call is about to be made."""
    dependency: str # e.g., 'fx-service', 'promo-service'
    attempt_number: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an attempt succeeds."""
    dependency: str
    attempt_number: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a logical call fails definitively (after retries or short-circuit)."""
    dependency: str
    error_type: str
    error_message: str
    attempts: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    dependency: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class CircuitStateChanged(DomainEvent):
    """Event triggered when a circuit breaker moves between states."""
    breaker: str
    old_state: str
    new_state: str
    reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

def dispatch_event(event: DomainEvent) -> None:
    """Publishes an event. Events currently go to the debug log only."""
    logger.debug(f"EVENT: {event}")
