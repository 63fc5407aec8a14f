# consent_engine/infrastructure/cache/redis_client.py

from typing import Optional

import redis.asyncio as redis

from consent_engine.config.settings import get_settings


class RedisClient:
    """
    Thin async Redis wrapper. Serves the consent cache (get_cache/set_cache/delete_key),
    the distributed lock backend (set_nx_ex/get/delete_if_value) and the rate limiter
    backend (incr_window).
    """

    def __init__(self, url: Optional[str] = None):
        self.client = redis.from_url(
            url or get_settings().redis_url,
            decode_responses=True,
        )

    async def set_cache(self, key: str, value: str, ttl: int = 300):
        await self.client.set(key, value, ex=ttl)

    async def get_cache(self, key: str):
        return await self.client.get(key)

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
        """Set key to value only if not exists, with TTL. Returns True if key was set."""
        return bool(await self.client.set(key, value, nx=True, ex=ttl))

    async def get(self, key: str) -> str | None:
        """Get value for key. Returns None if key does not exist."""
        return await self.client.get(key)

    async def delete_key(self, key: str) -> None:
        """Delete a key."""
        await self.client.delete(key)

    async def delete_if_value(self, key: str, value: str) -> bool:
        """Delete key only if its value equals value (atomic). Returns True if deleted."""
        script = "if redis.call('get', KEYS[1]) == ARGV[1] then return redis.call('del', KEYS[1]) else return 0 end"
        result = await self.client.eval(script, 1, key, value)
        return bool(result)

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Increment a fixed-window counter; the first hit starts the window TTL. Returns (count, ttl)."""
        current = await self.client.incr(key)
        if current == 1:
            await self.client.expire(key, window_seconds)
            return current, window_seconds
        ttl = await self.client.ttl(key)
        if ttl < 0:
            # Counter without an expiry would never reset.
            await self.client.expire(key, window_seconds)
            ttl = window_seconds
        return current, ttl

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
