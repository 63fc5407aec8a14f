"""CircuitBreaker: CLOSED -> OPEN -> HALF_OPEN, rolling window, single trial, timeouts, exclusions."""

import asyncio

import pytest

from consent_engine.observability.metrics import MetricsCollector
from consent_engine.scalability.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def fail():
    raise ValueError("fail")


async def ok():
    return 42


@pytest.mark.asyncio
async def test_closed_success():
    cb = CircuitBreaker(failure_threshold=3, recovery_timeout_seconds=0.1)
    result = await cb.call(ok)
    assert result == 42
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_opens_after_threshold():
    cb = CircuitBreaker(failure_threshold=3, recovery_timeout_seconds=10.0)

    for _ in range(3):
        with pytest.raises(ValueError):
            await cb.call(fail)
    assert cb.state == CircuitState.OPEN

    with pytest.raises(CircuitOpenError, match="OPEN"):
        await cb.call(ok)


@pytest.mark.asyncio
async def test_failures_outside_window_do_not_open():
    clock = FakeClock()
    cb = CircuitBreaker(failure_threshold=3, window_seconds=60, clock=clock)
    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(fail)
    clock.now = 61
    with pytest.raises(ValueError):
        await cb.call(fail)
    assert cb.state == CircuitState.CLOSED
    assert cb.failure_count == 1


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker(failure_threshold=3)
    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(fail)
    await cb.call(ok)
    assert cb.failure_count == 0
    with pytest.raises(ValueError):
        await cb.call(fail)
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_after_recovery():
    cb = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=0.05)

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(fail)
    assert cb.state == CircuitState.OPEN

    await asyncio.sleep(0.1)

    result = await cb.call(ok)
    assert result == 42
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_failure_opens_again():
    clock = FakeClock()
    cb = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=30, clock=clock)

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(fail)
    clock.now = 30
    with pytest.raises(ValueError):
        await cb.call(fail)
    assert cb.state == CircuitState.OPEN

    # Cool-down restarts from the failed trial.
    clock.now = 45
    with pytest.raises(CircuitOpenError):
        await cb.call(ok)
    clock.now = 60
    assert await cb.call(ok) == 42


@pytest.mark.asyncio
async def test_half_open_admits_single_trial():
    clock = FakeClock()
    cb = CircuitBreaker(failure_threshold=1, recovery_timeout_seconds=5, clock=clock)
    with pytest.raises(ValueError):
        await cb.call(fail)
    clock.now = 5

    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def slow():
        nonlocal calls
        calls += 1
        started.set()
        await release.wait()
        return "done"

    trial = asyncio.create_task(cb.call(slow))
    await started.wait()
    assert cb.state == CircuitState.HALF_OPEN

    with pytest.raises(CircuitOpenError, match="HALF_OPEN"):
        await cb.call(slow)

    release.set()
    assert await trial == "done"
    assert calls == 1
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_call_timeout_counts_as_failure():
    cb = CircuitBreaker(failure_threshold=1, call_timeout_seconds=0.01)

    async def hang():
        await asyncio.sleep(10)

    with pytest.raises(asyncio.TimeoutError):
        await cb.call(hang)
    assert cb.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_excluded_exceptions_do_not_count():
    cb = CircuitBreaker(failure_threshold=1, excluded_exceptions=(KeyError,))

    async def rejected():
        raise KeyError("bad input")

    for _ in range(3):
        with pytest.raises(KeyError):
            await cb.call(rejected)
    assert cb.state == CircuitState.CLOSED
    assert cb.failure_count == 0


@pytest.mark.asyncio
async def test_state_changes_reported_to_metrics():
    metrics = MetricsCollector()
    cb = CircuitBreaker(failure_threshold=1, name="ledger", metrics_callback=metrics)
    with pytest.raises(ValueError):
        await cb.call(fail)
    with pytest.raises(CircuitOpenError):
        await cb.call(ok)
    assert metrics.counter("circuit_breaker_open", category="ledger") == 1
    assert metrics.counter("circuit_breaker_rejected", category="ledger") == 1


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        CircuitBreaker(failure_threshold=0)


@pytest.mark.asyncio
async def test_late_success_does_not_close_open_circuit():
    """A call admitted while CLOSED that succeeds after the circuit opened leaves it OPEN."""
    clock = FakeClock()
    cb = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=30, clock=clock)
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow():
        started.set()
        await release.wait()
        return "late"

    straggler = asyncio.create_task(cb.call(slow))
    await started.wait()
    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(fail)
    assert cb.state == CircuitState.OPEN

    release.set()
    assert await straggler == "late"
    assert cb.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await cb.call(ok)


@pytest.mark.asyncio
async def test_stray_results_during_trial_do_not_decide_half_open():
    clock = FakeClock()
    cb = CircuitBreaker(failure_threshold=1, recovery_timeout_seconds=5, clock=clock)

    stray_started = asyncio.Event()
    stray_release = asyncio.Event()
    trial_started = asyncio.Event()
    trial_release = asyncio.Event()

    async def stray():
        stray_started.set()
        await stray_release.wait()
        return "stray"

    async def trial_call():
        trial_started.set()
        await trial_release.wait()
        return "trial"

    async def stray_fail():
        stray_started.set()
        await stray_release.wait()
        raise ValueError("stray")

    ok_straggler = asyncio.create_task(cb.call(stray))
    await stray_started.wait()
    stray_started.clear()
    failing_straggler = asyncio.create_task(cb.call(stray_fail))
    await stray_started.wait()

    with pytest.raises(ValueError):
        await cb.call(fail)
    clock.now = 5
    trial = asyncio.create_task(cb.call(trial_call))
    await trial_started.wait()
    assert cb.state == CircuitState.HALF_OPEN

    stray_release.set()
    assert await ok_straggler == "stray"
    with pytest.raises(ValueError):
        await failing_straggler
    assert cb.state == CircuitState.HALF_OPEN

    trial_release.set()
    assert await trial == "trial"
    assert cb.state == CircuitState.CLOSED
