"""Read-through cache for consent records and subject pages. Best-effort; TTL bounds staleness."""

import json
import logging
import uuid
from typing import Optional, Protocol

from consent_engine.domain.models.consent import ConsentPage, ConsentRecord

CONSENT_KEY_PREFIX = "consent:"
SUBJECT_PAGE_PREFIX = "consents:subject:"
SUBJECT_GENERATION_PREFIX = "consents:subject-gen:"
INITIAL_GENERATION = "0"


class CacheBackend(Protocol):
    """Non-durable key-value store with per-key TTL (Redis in production)."""

    async def get_cache(self, key: str) -> Optional[str]: ...
    async def set_cache(self, key: str, value: str, ttl: int = 300) -> None: ...
    async def delete_key(self, key: str) -> None: ...


def consent_key(consent_id: str) -> str:
    return f"{CONSENT_KEY_PREFIX}{consent_id}"


def subject_generation_key(subject_id: str) -> str:
    return f"{SUBJECT_GENERATION_PREFIX}{subject_id}"


def subject_page_key(subject_id: str, generation: str, page: int, page_size: int) -> str:
    return f"{SUBJECT_PAGE_PREFIX}{subject_id}:{generation}:{page}:{page_size}"


class ConsentCache:
    """
    Single records live under consent:{id}. Subject pages are keyed by a per-subject
    generation token; invalidating a subject writes a new token so every cached page
    for that subject becomes unreachable at once. Old pages then age out by TTL.

    The generation key outlives any page written under it (2x TTL), so an expired
    generation can never resurrect pages cached before the last invalidation.
    Backend failures are logged and treated as misses.
    """

    def __init__(self, backend: CacheBackend, ttl_seconds: int = 300, logger: Optional[logging.Logger] = None) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        self._backend = backend
        self._ttl = ttl_seconds
        self._logger = logger or logging.getLogger(__name__)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def _get(self, key: str) -> Optional[str]:
        try:
            return await self._backend.get_cache(key)
        except Exception as e:
            self._logger.warning("cache_get_failed", extra={"cache_key": key, "error": repr(e)})
            return None

    async def _set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._backend.set_cache(key, value, ttl=ttl)
        except Exception as e:
            self._logger.warning("cache_set_failed", extra={"cache_key": key, "error": repr(e)})

    async def _delete(self, key: str) -> None:
        try:
            await self._backend.delete_key(key)
        except Exception as e:
            self._logger.warning("cache_delete_failed", extra={"cache_key": key, "error": repr(e)})

    async def subject_generation(self, subject_id: str) -> str:
        """Current page generation for subject. Read once per lookup and reuse it for the fill."""
        return await self._get(subject_generation_key(subject_id)) or INITIAL_GENERATION

    async def get_record(self, consent_id: str) -> Optional[ConsentRecord]:
        raw = await self._get(consent_key(consent_id))
        if not raw:
            return None
        try:
            return ConsentRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            self._logger.warning("cache_entry_corrupt", extra={"cache_key": consent_key(consent_id), "error": repr(e)})
            return None

    async def set_record(self, record: ConsentRecord) -> None:
        await self._set(consent_key(record.consent_id), json.dumps(record.to_dict()), self._ttl)

    async def get_subject_page(
        self, subject_id: str, generation: str, page: int, page_size: int
    ) -> Optional[ConsentPage]:
        key = subject_page_key(subject_id, generation, page, page_size)
        raw = await self._get(key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return ConsentPage(
                items=[ConsentRecord.from_dict(item) for item in data["items"]],
                total=int(data["total"]),
                page=int(data["page"]),
                page_size=int(data["page_size"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            self._logger.warning("cache_entry_corrupt", extra={"cache_key": key, "error": repr(e)})
            return None

    async def set_subject_page(self, subject_id: str, generation: str, result: ConsentPage) -> None:
        """Store a page under the generation observed before the repository read."""
        payload = {
            "items": [r.to_dict() for r in result.items],
            "total": result.total,
            "page": result.page,
            "page_size": result.page_size,
        }
        await self._set(
            subject_page_key(subject_id, generation, result.page, result.page_size),
            json.dumps(payload),
            self._ttl,
        )

    async def invalidate_subject(self, subject_id: str) -> None:
        await self._set(subject_generation_key(subject_id), uuid.uuid4().hex, self._ttl * 2)

    async def invalidate_record(self, record: ConsentRecord) -> None:
        """Drop the single-record entry and every cached page of the record's subject."""
        await self._delete(consent_key(record.consent_id))
        await self.invalidate_subject(record.subject_id)
