"""PrincipalRateLimiter: per-principal budget, failed-auth budget per address, window reset, metrics."""

import pytest

from consent_engine.observability.metrics import MetricsCollector
from consent_engine.scalability.rate_limiter import InMemoryRateLimitBackend, PrincipalRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return InMemoryRateLimitBackend(clock=clock)


@pytest.fixture
def limiter(backend):
    return PrincipalRateLimiter(backend=backend, requests_per_window=3, window_seconds=60, auth_failures_per_window=2)


@pytest.mark.asyncio
async def test_allow_under_limit(limiter):
    for expected in (1, 2, 3):
        decision = await limiter.check_principal("u1")
        assert decision.allowed is True
        assert decision.count == expected


@pytest.mark.asyncio
async def test_deny_over_limit(limiter, clock):
    for _ in range(3):
        await limiter.check_principal("u1")
    clock.now = 15
    decision = await limiter.check_principal("u1")
    assert decision.allowed is False
    assert decision.limit == 3
    assert decision.retry_after_seconds == 45


@pytest.mark.asyncio
async def test_per_principal(limiter):
    for _ in range(3):
        await limiter.check_principal("u1")
    assert (await limiter.check_principal("c1")).allowed is True


@pytest.mark.asyncio
async def test_window_resets(limiter, clock):
    for _ in range(4):
        await limiter.check_principal("u1")
    clock.now = 60
    decision = await limiter.check_principal("u1")
    assert decision.allowed is True
    assert decision.count == 1


@pytest.mark.asyncio
async def test_auth_failures_have_their_own_budget(limiter):
    for _ in range(2):
        assert (await limiter.check_auth_failure("10.0.0.7")).allowed is True
    assert (await limiter.check_auth_failure("10.0.0.7")).allowed is False
    # Same string as a principal id is a different budget.
    assert (await limiter.check_principal("10.0.0.7")).allowed is True
    assert (await limiter.check_auth_failure("10.0.0.8")).allowed is True


@pytest.mark.asyncio
async def test_denial_counted_in_metrics(backend):
    metrics = MetricsCollector()
    limiter = PrincipalRateLimiter(backend=backend, requests_per_window=1, window_seconds=60, metrics_callback=metrics)
    await limiter.check_principal("u1")
    assert (await limiter.check_principal("u1")).allowed is False
    assert metrics.counter("rate_limit_exceeded", category="principal") == 1
