"""Fixtures for application tests: in-memory repository, ledger, cache, lock wired into ConsentService."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from consent_engine.application.consent_cache import ConsentCache
from consent_engine.application.consent_service import ConsentService
from consent_engine.application.ledger import PermanentLedgerError, TransientLedgerError
from consent_engine.application.ledger_gateway import LedgerGateway
from consent_engine.domain.models.consent import ValidityWindow
from consent_engine.infrastructure.ledger.memory_ledger import InMemoryLedgerClient
from consent_engine.infrastructure.memory.cache_memory import InMemoryCacheBackend
from consent_engine.infrastructure.memory.consent_repository_memory import InMemoryConsentRepository
from consent_engine.observability.metrics import MetricsCollector
from consent_engine.scalability.circuit_breaker import CircuitBreaker
from consent_engine.scalability.distributed_lock import DistributedLock, InMemoryLockBackend

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic seconds for TTL backends, advanced by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedLedger:
    """Wraps the in-memory ledger. Fails while `failures` is non-empty, pops one per call."""

    def __init__(self, delay: float = 0.0) -> None:
        self.inner = InMemoryLedgerClient(clock=lambda: NOW)
        self.failures: list[BaseException] = []
        self.calls = 0
        self.delay = delay

    async def append(self, consent_id, event_type, payload):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            raise self.failures.pop(0)
        return await self.inner.append(consent_id, event_type, payload)

    def fail_always(self, exc_factory=lambda: TransientLedgerError("ledger down")) -> None:
        self.failures = [exc_factory() for _ in range(1000)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger_client():
    return ScriptedLedger()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def breaker(clock, metrics):
    return CircuitBreaker(
        failure_threshold=5,
        recovery_timeout_seconds=30,
        window_seconds=60,
        name="ledger",
        excluded_exceptions=(PermanentLedgerError,),
        metrics_callback=metrics,
        clock=clock,
    )


@pytest.fixture
def sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def gateway(ledger_client, breaker, metrics, sleep):
    return LedgerGateway(ledger_client, breaker, max_attempts=3, retry_interval_seconds=0.5, metrics=metrics, sleep=sleep)


@pytest.fixture
def repository():
    return InMemoryConsentRepository()


@pytest.fixture
def cache_backend(clock):
    return InMemoryCacheBackend(clock=clock)


@pytest.fixture
def cache(cache_backend):
    return ConsentCache(cache_backend, ttl_seconds=300)


@pytest.fixture
def lock_backend():
    return InMemoryLockBackend()


@pytest.fixture
def lock(lock_backend):
    return DistributedLock(lock_backend)


@pytest.fixture
def publisher():
    p = AsyncMock()
    p.publish = AsyncMock(return_value=None)
    return p


@pytest.fixture
def logger():
    return MagicMock()


@pytest.fixture
def service_clock():
    """Wall clock for the service; tests move it forward to cross validity windows."""
    state = {"now": NOW}

    def now():
        return state["now"]

    now.state = state
    return now


@pytest.fixture
def consent_service(repository, gateway, cache, lock, logger, publisher, metrics, service_clock):
    return ConsentService(
        repository=repository,
        ledger=gateway,
        cache=cache,
        lock=lock,
        logger=logger,
        publisher=publisher,
        metrics=metrics,
        clock=service_clock,
    )


@pytest.fixture
def window():
    return ValidityWindow(start=NOW, end=NOW + timedelta(days=90))
