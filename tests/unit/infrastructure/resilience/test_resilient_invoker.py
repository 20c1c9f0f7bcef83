import asyncio

import pytest

from pointsquote.domain.models.errors import CircuitOpenError, ExternalServiceError
from pointsquote.infrastructure.resilience.circuit_breaker import CircuitBreaker, CircuitState
from pointsquote.infrastructure.resilience.resilient_invoker import FailurePolicy, ResilientInvoker

from conftest import never_returns

class FlakyOperation:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, failures: int, result="ok", error: Exception = None):
        self.failures = failures
        self.result = result
        self.error = error or ConnectionError("boom")
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result

@pytest.fixture
def make_invoker(recording_sleep, metrics):
    def _make(**kwargs):
        options = dict(
            name="fx-service", max_retries=3, initial_backoff_s=0.1,
            per_call_timeout_s=1.0, metrics=metrics, sleep=recording_sleep,
        )
        options.update(kwargs)
        return ResilientInvoker(**options)
    return _make

async def test_returns_result_of_first_success(make_invoker, recording_sleep):
    operation = FlakyOperation(failures=0)

    assert await make_invoker().execute(operation) == "ok"
    assert operation.calls == 1
    assert recording_sleep.delays == []

async def test_retries_until_success(make_invoker, recording_sleep, metrics):
    operation = FlakyOperation(failures=2)

    assert await make_invoker().execute(operation) == "ok"
    assert operation.calls == 3
    assert recording_sleep.delays == pytest.approx([0.1, 0.2])
    assert metrics.value("external_service_retries_total", dependency="fx-service") == 2
    assert metrics.value("external_service_failures_total", dependency="fx-service") == 0

async def test_exhausted_retries_raise_with_attempt_count(make_invoker, recording_sleep):
    operation = FlakyOperation(failures=99)

    with pytest.raises(ExternalServiceError) as exc_info:
        await make_invoker().execute(operation)

    assert operation.calls == 4
    assert exc_info.value.attempts == 4
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert recording_sleep.delays == pytest.approx([0.1, 0.2, 0.4])

async def test_zero_retries_makes_one_attempt(make_invoker, recording_sleep):
    operation = FlakyOperation(failures=99)

    with pytest.raises(ExternalServiceError):
        await make_invoker(max_retries=0).execute(operation)

    assert operation.calls == 1
    assert recording_sleep.delays == []

async def test_attempt_timeout_is_retried(make_invoker):
    calls = []

    async def slow_then_fast():
        calls.append(1)
        if len(calls) == 1:
            await never_returns()
        return "late but fine"

    result = await make_invoker(per_call_timeout_s=0.01).execute(slow_then_fast)

    assert result == "late but fine"
    assert len(calls) == 2

async def test_timeouts_on_every_attempt_raise_external_error(make_invoker):
    with pytest.raises(ExternalServiceError) as exc_info:
        await make_invoker(max_retries=1, per_call_timeout_s=0.01).execute(never_returns)

    assert exc_info.value.attempts == 2
    assert isinstance(exc_info.value.cause, asyncio.TimeoutError)

def test_backoff_doubles_per_retry(make_invoker):
    invoker = make_invoker(initial_backoff_s=0.25)

    assert [invoker.backoff_delay(n) for n in (1, 2, 3, 4)] == [0.25, 0.5, 1.0, 2.0]

def test_rejects_negative_settings():
    with pytest.raises(ValueError):
        ResilientInvoker("fx-service", max_retries=-1)
    with pytest.raises(ValueError):
        ResilientInvoker("fx-service", initial_backoff_s=-0.1)

async def test_use_default_policy_returns_default(make_invoker, metrics):
    invoker = make_invoker(
        name="promo-service", max_retries=0,
        failure_policy=FailurePolicy.USE_DEFAULT, default_value="fallback",
    )

    assert await invoker.execute(FlakyOperation(failures=1)) == "fallback"
    assert metrics.value("external_service_failures_total", dependency="promo-service") == 1

# --- With a circuit breaker ---

@pytest.fixture
def breaker(fake_clock):
    return CircuitBreaker("fx-service", failure_threshold=2, reset_timeout=10.0, clock=fake_clock)

async def test_whole_retry_sequence_counts_as_one_failure(make_invoker, breaker):
    invoker = make_invoker(circuit_breaker=breaker)

    with pytest.raises(ExternalServiceError):
        await invoker.execute(FlakyOperation(failures=99))

    assert breaker.snapshot().consecutive_failures == 1
    assert breaker.state is CircuitState.CLOSED

async def test_open_circuit_short_circuits_without_attempting(make_invoker, breaker, metrics):
    invoker = make_invoker(circuit_breaker=breaker, max_retries=0)
    for _ in range(2):
        with pytest.raises(ExternalServiceError):
            await invoker.execute(FlakyOperation(failures=99))
    assert breaker.state is CircuitState.OPEN

    operation = FlakyOperation(failures=0)
    with pytest.raises(CircuitOpenError, match="fx-service unavailable"):
        await invoker.execute(operation)

    assert operation.calls == 0
    assert metrics.value("external_service_failures_total", dependency="fx-service") == 3

async def test_open_circuit_with_default_policy_returns_default(make_invoker, breaker):
    invoker = make_invoker(
        circuit_breaker=breaker, max_retries=0,
        failure_policy=FailurePolicy.USE_DEFAULT, default_value=None,
    )
    for _ in range(2):
        await invoker.execute(FlakyOperation(failures=99))

    operation = FlakyOperation(failures=0)
    assert await invoker.execute(operation) is None
    assert operation.calls == 0

async def test_successful_probe_closes_circuit(make_invoker, breaker, fake_clock):
    invoker = make_invoker(circuit_breaker=breaker, max_retries=0)
    for _ in range(2):
        with pytest.raises(ExternalServiceError):
            await invoker.execute(FlakyOperation(failures=99))

    fake_clock.advance(10.0)
    assert await invoker.execute(FlakyOperation(failures=0)) == "ok"
    assert breaker.state is CircuitState.CLOSED

async def test_success_resets_consecutive_failures(make_invoker, breaker):
    invoker = make_invoker(circuit_breaker=breaker, max_retries=0)
    with pytest.raises(ExternalServiceError):
        await invoker.execute(FlakyOperation(failures=99))

    await invoker.execute(FlakyOperation(failures=0))

    assert breaker.snapshot().consecutive_failures == 0

async def test_cancelled_probe_releases_slot(make_invoker, breaker, fake_clock):
    invoker = make_invoker(circuit_breaker=breaker, max_retries=0, per_call_timeout_s=None)
    for _ in range(2):
        with pytest.raises(ExternalServiceError):
            await invoker.execute(FlakyOperation(failures=99))
    fake_clock.advance(10.0)

    probe = asyncio.create_task(invoker.execute(never_returns))
    await asyncio.sleep(0)
    assert breaker.state is CircuitState.HALF_OPEN
    probe.cancel()
    with pytest.raises(asyncio.CancelledError):
        await probe

    assert await invoker.execute(FlakyOperation(failures=0)) == "ok"
    assert breaker.state is CircuitState.CLOSED

# --- Concurrent callers ---

class GatedOperation:
    """Blocks every call until released, then fails or returns a value."""

    def __init__(self, fail: bool):
        self.fail = fail
        self.calls = 0
        self.release = asyncio.Event()

    async def __call__(self):
        self.calls += 1
        await self.release.wait()
        if self.fail:
            raise ConnectionError("boom")
        return "ok"

async def let_tasks_run(rounds: int = 10):
    for _ in range(rounds):
        await asyncio.sleep(0)

async def test_concurrent_failures_are_all_counted(make_invoker, fake_clock):
    breaker = CircuitBreaker("fx-service", failure_threshold=5, reset_timeout=10.0, clock=fake_clock)
    invoker = make_invoker(circuit_breaker=breaker, max_retries=0, per_call_timeout_s=None)
    operation = GatedOperation(fail=True)

    tasks = [asyncio.create_task(invoker.execute(operation)) for _ in range(5)]
    await let_tasks_run()
    assert operation.calls == 5
    operation.release.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert all(type(result) is ExternalServiceError for result in results)
    assert breaker.state is CircuitState.OPEN
    assert breaker.snapshot().consecutive_failures == 5

async def test_concurrent_calls_admit_a_single_probe(make_invoker, breaker, fake_clock):
    invoker = make_invoker(circuit_breaker=breaker, max_retries=0, per_call_timeout_s=None)
    for _ in range(2):
        with pytest.raises(ExternalServiceError):
            await invoker.execute(FlakyOperation(failures=99))
    fake_clock.advance(10.0)
    operation = GatedOperation(fail=False)

    tasks = [asyncio.create_task(invoker.execute(operation)) for _ in range(4)]
    await let_tasks_run()
    assert operation.calls == 1
    operation.release.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert results.count("ok") == 1
    assert sum(isinstance(result, CircuitOpenError) for result in results) == 3
    assert breaker.state is CircuitState.CLOSED

async def test_late_success_from_closed_state_does_not_end_probe(make_invoker, breaker, fake_clock):
    invoker = make_invoker(circuit_breaker=breaker, max_retries=0, per_call_timeout_s=None)
    straggler = GatedOperation(fail=False)
    late_call = asyncio.create_task(invoker.execute(straggler))
    await let_tasks_run()
    for _ in range(2):
        with pytest.raises(ExternalServiceError):
            await invoker.execute(FlakyOperation(failures=99))
    fake_clock.advance(10.0)
    probe_operation = GatedOperation(fail=False)
    probe = asyncio.create_task(invoker.execute(probe_operation))
    await let_tasks_run()
    assert breaker.state is CircuitState.HALF_OPEN

    straggler.release.set()
    assert await late_call == "ok"

    assert breaker.state is CircuitState.HALF_OPEN
    with pytest.raises(CircuitOpenError):
        await invoker.execute(FlakyOperation(failures=0))

    probe_operation.release.set()
    assert await probe == "ok"
    assert breaker.state is CircuitState.CLOSED
