"""DistributedLock: acquire/release, holder-only release, TTL expiry on the in-memory backend."""

import asyncio

import pytest

from consent_engine.scalability.distributed_lock import DistributedLock, InMemoryLockBackend


class FakeRedisLockBackend:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._ttl: dict[str, int] = {}

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
        if key in self._store:
            return False
        self._store[key] = value
        self._ttl[key] = ttl
        return True

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def delete_if_value(self, key: str, value: str) -> bool:
        if self._store.get(key) == value:
            del self._store[key]
            self._ttl.pop(key, None)
            return True
        return False


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def backend():
    return FakeRedisLockBackend()


@pytest.fixture
def lock(backend):
    return DistributedLock(backend=backend)


@pytest.mark.asyncio
async def test_acquire_release(lock):
    token = await lock.acquire("consent-status:c1", ttl=60)
    assert token is not None
    assert await lock.release("consent-status:c1", token) is True
    # Can acquire again after release
    assert await lock.acquire("consent-status:c1", ttl=60) is not None


@pytest.mark.asyncio
async def test_acquire_fails_when_held(backend, lock):
    await lock.acquire("key1", ttl=60)
    assert await lock.acquire("key1", ttl=60) is None
    assert backend._ttl["lock:key1"] == 60


@pytest.mark.asyncio
async def test_release_needs_holder_token(backend, lock):
    token = await lock.acquire("key1", ttl=60)
    assert await lock.release("key1", "not-the-token") is False
    assert "lock:key1" in backend._store
    assert await lock.release("key1", token) is True
    assert "lock:key1" not in backend._store


@pytest.mark.asyncio
async def test_lapsed_holder_cannot_release_new_holder_same_instance():
    """One DistributedLock per process: an expired acquisition must not free the next one."""
    clock = FakeClock()
    lock = DistributedLock(backend=InMemoryLockBackend(clock=clock))

    first = await lock.acquire("c1", ttl=1)
    assert first is not None
    clock.now = 2
    second = await lock.acquire("c1", ttl=30)
    assert second is not None

    assert await lock.release("c1", first) is False
    assert await lock.acquire("c1", ttl=30) is None
    assert await lock.release("c1", second) is True
    assert await lock.acquire("c1", ttl=30) is not None


@pytest.mark.asyncio
async def test_in_memory_backend_expires_after_ttl():
    clock = FakeClock()
    backend = InMemoryLockBackend(clock=clock)
    first = DistributedLock(backend=backend)
    second = DistributedLock(backend=backend)

    first_token = await first.acquire("c1", ttl=30)
    assert first_token is not None
    assert await second.acquire("c1", ttl=30) is None
    clock.now = 30
    assert await second.acquire("c1", ttl=30) is not None
    # The expired holder must not release the new holder's lock.
    await first.release("c1", first_token)
    assert await backend.get("lock:c1") is not None


@pytest.mark.asyncio
async def test_concurrent_acquire_single_winner():
    backend = InMemoryLockBackend()
    locks = [DistributedLock(backend=backend) for _ in range(5)]
    results = await asyncio.gather(*(lk.acquire("same_key", ttl=10) for lk in locks))
    assert sum(token is not None for token in results) == 1
