"""Outbound Call Resilience.

Contains the circuit breaker state machine and the invoker that runs remote
calls with retries, exponential backoff, per-attempt timeouts and a
fail-open/fail-closed policy.
Bounded Context: External Service Resilience
"""
