"""FastAPI dependency injection: process-wide breaker, lock, cache, ledger, publisher; per-request ConsentService."""

import logging
from typing import Annotated, AsyncIterator

from fastapi import Depends, Request

from consent_engine.application.consent_cache import ConsentCache
from consent_engine.application.consent_repository import ConsentRepository
from consent_engine.application.consent_service import ConsentService
from consent_engine.application.ledger import LedgerClient, PermanentLedgerError
from consent_engine.application.ledger_gateway import LedgerGateway
from consent_engine.config.settings import get_settings
from consent_engine.infrastructure.cache.redis_client import RedisClient
from consent_engine.infrastructure.database.consent_repository_db import DbConsentRepository
from consent_engine.infrastructure.database.session import get_sessionmaker
from consent_engine.infrastructure.ledger.db_ledger import DbLedgerClient
from consent_engine.infrastructure.ledger.http_ledger_client import HttpLedgerClient
from consent_engine.infrastructure.ledger.memory_ledger import InMemoryLedgerClient
from consent_engine.infrastructure.memory.cache_memory import InMemoryCacheBackend
from consent_engine.infrastructure.memory.consent_repository_memory import InMemoryConsentRepository
from consent_engine.infrastructure.messaging.rabbitmq_publisher import RabbitMQPublisher
from consent_engine.observability.metrics import MetricsCollector
from consent_engine.scalability.circuit_breaker import CircuitBreaker
from consent_engine.scalability.distributed_lock import DistributedLock, InMemoryLockBackend
from consent_engine.scalability.rate_limiter import InMemoryRateLimitBackend, PrincipalRateLimiter
from consent_engine.security.auth import Principal, TokenAuthenticator
from consent_engine.security.encryption import EncryptionService
from consent_engine.security.rbac import RBACService

_metrics: MetricsCollector | None = None
_redis_client: RedisClient | None = None
_publisher: RabbitMQPublisher | None = None
_encryption: EncryptionService | None = None
_authenticator: TokenAuthenticator | None = None
_rate_limiter: PrincipalRateLimiter | None = None
_ledger_gateway: LedgerGateway | None = None
_lock: DistributedLock | None = None
_cache: ConsentCache | None = None
_memory_repository: InMemoryConsentRepository | None = None


def _use_memory_storage() -> bool:
    return get_settings().storage_backend == "memory"


def get_metrics() -> MetricsCollector:
    """Return singleton metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_redis_client() -> RedisClient:
    """Return singleton Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


def get_publisher() -> RabbitMQPublisher | None:
    """Return singleton RabbitMQ publisher, or None when notifications are disabled."""
    global _publisher
    if not get_settings().notifications_enabled:
        return None
    if _publisher is None:
        _publisher = RabbitMQPublisher()
    return _publisher


def get_encryption_service() -> EncryptionService:
    global _encryption
    if _encryption is None:
        settings = get_settings()
        _encryption = EncryptionService(settings.encryption_key, previous_keys=settings.encryption_previous_keys)
    return _encryption


def get_authenticator() -> TokenAuthenticator:
    global _authenticator
    if _authenticator is None:
        settings = get_settings()
        _authenticator = TokenAuthenticator(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
        )
    return _authenticator


def get_rate_limiter() -> PrincipalRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        backend = InMemoryRateLimitBackend() if _use_memory_storage() else get_redis_client()
        _rate_limiter = PrincipalRateLimiter(
            backend,
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            auth_failures_per_window=settings.rate_limit_auth_failures,
            metrics_callback=get_metrics(),
        )
    return _rate_limiter


def _build_ledger_client() -> LedgerClient:
    settings = get_settings()
    if settings.ledger_backend == "memory":
        return InMemoryLedgerClient()
    if settings.ledger_backend == "http":
        if not settings.ledger_url:
            raise RuntimeError("LEDGER_URL is required when LEDGER_BACKEND=http")
        return HttpLedgerClient(
            settings.ledger_url,
            api_key=settings.ledger_api_key,
            timeout=settings.ledger_timeout_seconds,
        )
    return DbLedgerClient(get_sessionmaker())


def get_ledger_gateway() -> LedgerGateway:
    """Return singleton ledger gateway. One breaker per process so every request sees the same circuit."""
    global _ledger_gateway
    if _ledger_gateway is None:
        settings = get_settings()
        metrics = get_metrics()
        breaker = CircuitBreaker(
            failure_threshold=settings.breaker_failure_threshold,
            recovery_timeout_seconds=settings.breaker_recovery_timeout_seconds,
            window_seconds=settings.breaker_window_seconds,
            call_timeout_seconds=settings.ledger_timeout_seconds,
            name="ledger",
            excluded_exceptions=(PermanentLedgerError,),
            metrics_callback=metrics,
        )
        _ledger_gateway = LedgerGateway(
            _build_ledger_client(),
            breaker,
            max_attempts=settings.ledger_max_attempts,
            retry_interval_seconds=settings.ledger_retry_interval_seconds,
            metrics=metrics,
            logger=logging.getLogger("consent_engine.ledger"),
        )
    return _ledger_gateway


def get_lock() -> DistributedLock:
    global _lock
    if _lock is None:
        backend = InMemoryLockBackend() if _use_memory_storage() else get_redis_client()
        _lock = DistributedLock(backend)
    return _lock


def get_consent_cache() -> ConsentCache:
    global _cache
    if _cache is None:
        backend = InMemoryCacheBackend() if _use_memory_storage() else get_redis_client()
        _cache = ConsentCache(
            backend,
            ttl_seconds=get_settings().cache_ttl_seconds,
            logger=logging.getLogger("consent_engine.cache"),
        )
    return _cache


async def get_consent_repository(
    encryption: Annotated[EncryptionService, Depends(get_encryption_service)],
) -> AsyncIterator[ConsentRepository]:
    """One database session per request; in memory mode a process-wide store."""
    global _memory_repository
    if _use_memory_storage():
        if _memory_repository is None:
            _memory_repository = InMemoryConsentRepository()
        yield _memory_repository
        return
    async with get_sessionmaker()() as session:
        yield DbConsentRepository(session, encryption)


async def get_consent_service(
    repository: Annotated[ConsentRepository, Depends(get_consent_repository)],
    ledger: Annotated[LedgerGateway, Depends(get_ledger_gateway)],
    cache: Annotated[ConsentCache, Depends(get_consent_cache)],
    lock: Annotated[DistributedLock, Depends(get_lock)],
    publisher: Annotated[RabbitMQPublisher | None, Depends(get_publisher)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
) -> ConsentService:
    """Build ConsentService with injected repository, ledger, cache, lock, publisher, logger."""
    settings = get_settings()
    return ConsentService(
        repository=repository,
        ledger=ledger,
        cache=cache,
        lock=lock,
        logger=logging.getLogger("consent_engine.consents"),
        publisher=publisher,
        metrics=metrics,
        lock_ttl_seconds=settings.lock_ttl_seconds,
        max_validity_days=settings.max_validity_days,
    )


def get_rbac() -> RBACService:
    return RBACService()


def get_principal(request: Request) -> Principal:
    """Extract the authenticated principal from request.state (set by middleware)."""
    return request.state.principal


def get_correlation_id(request: Request) -> str:
    """Extract correlation_id from request.state (set by middleware)."""
    return getattr(request.state, "correlation_id", "") or ""
