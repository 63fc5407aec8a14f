"""Fixtures for API unit tests: in-memory service graph, fresh rate limiter, signed tokens, AsyncClient."""

import logging
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from consent_engine.application.consent_cache import ConsentCache
from consent_engine.application.consent_service import ConsentService
from consent_engine.application.ledger import PermanentLedgerError
from consent_engine.application.ledger_gateway import LedgerGateway
from consent_engine.infrastructure.ledger.memory_ledger import InMemoryLedgerClient
from consent_engine.infrastructure.memory.cache_memory import InMemoryCacheBackend
from consent_engine.infrastructure.memory.consent_repository_memory import InMemoryConsentRepository
from consent_engine.main import app
from consent_engine.scalability.circuit_breaker import CircuitBreaker
from consent_engine.scalability.distributed_lock import DistributedLock, InMemoryLockBackend
from consent_engine.scalability.rate_limiter import InMemoryRateLimitBackend, PrincipalRateLimiter
from consent_engine.security.rbac import Role


class FlakyLedger:
    """In-memory ledger that can be switched off."""

    def __init__(self) -> None:
        self.inner = InMemoryLedgerClient()
        self.down = False

    async def append(self, consent_id, event_type, payload):
        if self.down:
            raise ConnectionError("ledger unreachable")
        return await self.inner.append(consent_id, event_type, payload)


@pytest.fixture
def ledger():
    return FlakyLedger()


@pytest.fixture
def repository():
    return InMemoryConsentRepository()


@pytest.fixture
def mock_publisher():
    """Mock RabbitMQ publisher so tests do not connect to real broker."""
    p = AsyncMock()
    p.publish = AsyncMock(return_value=None)
    return p


@pytest.fixture
def consent_service(ledger, repository, mock_publisher):
    breaker = CircuitBreaker(
        failure_threshold=2,
        recovery_timeout_seconds=60,
        name="ledger",
        excluded_exceptions=(PermanentLedgerError,),
    )
    return ConsentService(
        repository=repository,
        ledger=LedgerGateway(ledger, breaker, max_attempts=2, sleep=AsyncMock(return_value=None)),
        cache=ConsentCache(InMemoryCacheBackend(), ttl_seconds=60),
        lock=DistributedLock(InMemoryLockBackend()),
        logger=logging.getLogger("tests.consents"),
        publisher=mock_publisher,
    )


@pytest.fixture
def rate_limit():
    """Requests per window for the test app; override per test."""
    return 1000


@pytest.fixture
def auth_failure_limit():
    """Rejected tokens per client address per window; override per test."""
    return 1000


@pytest.fixture
def app_with_overrides(consent_service, rate_limit, auth_failure_limit, monkeypatch):
    """App with ConsentService and rate limiter replaced for testing."""
    from consent_engine.api import dependencies

    monkeypatch.setattr(
        dependencies,
        "_rate_limiter",
        PrincipalRateLimiter(
            InMemoryRateLimitBackend(),
            requests_per_window=rate_limit,
            window_seconds=60,
            auth_failures_per_window=auth_failure_limit,
        ),
    )
    app.dependency_overrides[dependencies.get_consent_service] = lambda: consent_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app_with_overrides):
    """Async HTTP client for testing; uses overridden app."""
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    """Build Authorization headers for an actor and role."""
    from consent_engine.api import dependencies

    def build(actor_id: str, role: Role = Role.SUBJECT) -> dict:
        token = dependencies.get_authenticator().issue(actor_id, role)
        return {"Authorization": f"Bearer {token}"}

    return build
