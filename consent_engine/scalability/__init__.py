"""Scalability layer: distributed locking, rate limiting, circuit breaker, health. No FastAPI."""

from consent_engine.scalability.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from consent_engine.scalability.distributed_lock import DistributedLock, InMemoryLockBackend
from consent_engine.scalability.health_monitor import HealthMonitor
from consent_engine.scalability.rate_limiter import (
    InMemoryRateLimitBackend,
    PrincipalRateLimiter,
    RateLimitDecision,
)

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "DistributedLock",
    "HealthMonitor",
    "InMemoryLockBackend",
    "InMemoryRateLimitBackend",
    "PrincipalRateLimiter",
    "RateLimitDecision",
]
