"""In-process TTL key-value store. Implements the consent cache backend for memory mode and tests."""

import time
from typing import Callable, Dict, Optional, Tuple


class InMemoryCacheBackend:
    """key -> (value, expires_at). Expired keys read as missing."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: Dict[str, Tuple[str, float]] = {}
        self._clock = clock

    async def get_cache(self, key: str) -> Optional[str]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._store[key]
            return None
        return entry[0]

    async def set_cache(self, key: str, value: str, ttl: int = 300) -> None:
        self._store[key] = (value, self._clock() + ttl)

    async def delete_key(self, key: str) -> None:
        self._store.pop(key, None)
