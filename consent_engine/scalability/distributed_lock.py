"""Per-key locking. SETNX pattern, TTL, safe release. Serializes status changes on one consent across nodes."""

import asyncio
import time
import uuid
from typing import Callable, Optional, Protocol


class LockBackend(Protocol):
    """Minimal key-value operations for the lock (Redis in production). Injected; no global state."""

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool: ...
    async def get(self, key: str) -> str | None: ...
    async def delete_if_value(self, key: str, value: str) -> bool: ...


class InMemoryLockBackend:
    """In-process backend: key -> (token, expires_at). For tests or single-node deployments."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[str, float]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> tuple[str, float] | None:
        entry = self._entries.get(key)
        if entry is not None and entry[1] <= self._clock():
            del self._entries[key]
            return None
        return entry

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
        async with self._lock:
            if self._live(key) is not None:
                return False
            self._entries[key] = (value, self._clock() + ttl)
            return True

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    async def delete_if_value(self, key: str, value: str) -> bool:
        async with self._lock:
            entry = self._live(key)
            if entry is not None and entry[0] == value:
                del self._entries[key]
                return True
            return False


LOCK_PREFIX = "lock:"


class DistributedLock:
    """
    Distributed lock using SET NX EX. Each acquire gets its own token and only
    that token releases the key, so a holder whose TTL lapsed cannot free the
    lock a later holder took.
    """

    def __init__(self, backend: LockBackend, key_prefix: str = LOCK_PREFIX) -> None:
        self._backend = backend
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def acquire(self, key: str, ttl: int) -> Optional[str]:
        """
        Try to acquire the lock. Returns the holder token, or None if already held.
        TTL enforced; lock auto-expires to avoid deadlock.
        """
        token = str(uuid.uuid4())
        if await self._backend.set_nx_ex(self._key(key), token, ttl):
            return token
        return None

    async def release(self, key: str, token: str) -> bool:
        """Release the lock if token still holds it (atomic compare-and-delete)."""
        return await self._backend.delete_if_value(self._key(key), token)
