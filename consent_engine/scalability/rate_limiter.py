"""Fixed-window request limits: per authenticated principal, and per client address for failed sign-ins."""

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

PRINCIPAL_SCOPE = "principal"
AUTH_FAILURE_SCOPE = "auth_failure"


class RateLimitBackend(Protocol):
    """Counts hits in the current window. Returns (count, seconds until the window resets)."""

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]: ...


class InMemoryRateLimitBackend:
    """key -> (window start, hits). For tests or single-node."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._windows: dict[str, tuple[float, int]] = {}
        self._clock = clock

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        now = self._clock()
        started, hits = self._windows.get(key, (now, 0))
        if now - started >= window_seconds:
            started, hits = now, 0
        hits += 1
        self._windows[key] = (started, hits)
        return hits, max(1, math.ceil(started + window_seconds - now))


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    retry_after_seconds: int


class PrincipalRateLimiter:
    """
    Two independent budgets sharing one window length:
    requests per authenticated actor, and failed authentications per client
    address (so token guessing is throttled before any principal exists).
    """

    def __init__(
        self,
        backend: RateLimitBackend,
        requests_per_window: int = 100,
        window_seconds: int = 900,
        auth_failures_per_window: Optional[int] = None,
        metrics_callback: Any = None,
    ) -> None:
        self._backend = backend
        self._limits = {
            PRINCIPAL_SCOPE: requests_per_window,
            AUTH_FAILURE_SCOPE: auth_failures_per_window or requests_per_window,
        }
        self._window = window_seconds
        self._metrics = metrics_callback

    @property
    def window_seconds(self) -> int:
        return self._window

    async def _check(self, scope: str, subject: str) -> RateLimitDecision:
        limit = self._limits[scope]
        count, reset_in = await self._backend.incr_window(f"rate:{scope}:{subject}", self._window)
        decision = RateLimitDecision(
            allowed=count <= limit,
            count=count,
            limit=limit,
            retry_after_seconds=reset_in,
        )
        if not decision.allowed and self._metrics is not None:
            self._metrics.increment("rate_limit_exceeded", 1, category=scope)
        return decision

    async def check_principal(self, actor_id: str) -> RateLimitDecision:
        return await self._check(PRINCIPAL_SCOPE, actor_id)

    async def check_auth_failure(self, client_address: str) -> RateLimitDecision:
        """Charge one failed authentication to the client address."""
        return await self._check(AUTH_FAILURE_SCOPE, client_address)
