"""Consent lifecycle service: transaction boundary. Orchestrates validation, ledger, persistence, cache, notifications."""

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from consent_engine.application.consent_cache import ConsentCache
from consent_engine.application.consent_repository import ConsentRepository
from consent_engine.application.exceptions import (
    ConcurrentModificationError,
    ConsentNotFoundError,
)
from consent_engine.application.ledger import LedgerEventType, event_type_for_status
from consent_engine.application.ledger_gateway import LedgerGateway
from consent_engine.domain.exceptions import InvalidTransitionError
from consent_engine.domain.models.consent import (
    ConsentPage,
    ConsentRecord,
    ConsentScope,
    ConsentStatus,
    ValidityWindow,
    validate_transition,
)
from consent_engine.domain.validators.consent_validator import (
    DEFAULT_MAX_VALIDITY_DAYS,
    validate_new_consent,
    validate_paging,
    validate_party_id,
)
from consent_engine.governance.audit_models import AuditRecord
from consent_engine.scalability.distributed_lock import DistributedLock

EXCHANGE_CONSENT_EVENTS = "consent_events"
SYSTEM_ACTOR = "system"
LOCK_KEY_PREFIX = "consent-status:"
DEFAULT_LOCK_TTL = 60


class EventPublisher(Protocol):
    async def publish(
        self,
        exchange_name: str,
        routing_key: str,
        message: dict,
        idempotency_key: str,
    ) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ledger_payload(record: ConsentRecord, previous: Optional[ConsentStatus] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "consent_id": record.consent_id,
        "subject_id": record.subject_id,
        "requester_id": record.requester_id,
        "data_categories": list(record.scope.data_categories),
        "access_level": record.scope.access_level.value,
        "valid_from": record.window.start.isoformat(),
        "valid_to": record.window.end.isoformat() if record.window.end else None,
        "status": record.status.value,
        "actor_id": record.last_modified_by,
    }
    if previous is not None:
        payload["previous_status"] = previous.value
    return payload


class ConsentService:
    """
    Application-layer orchestration only. No HTTP, no FastAPI, no direct infrastructure.
    Consistency strategy: the ledger is written first and is authoritative. A record is
    persisted only after its ledger entry exists; a status change is persisted only after
    its transition entry exists. Cache and notifications are best-effort and never fail
    an operation that has already been persisted.
    """

    def __init__(
        self,
        repository: ConsentRepository,
        ledger: LedgerGateway,
        cache: ConsentCache,
        lock: DistributedLock,
        logger: logging.Logger,
        publisher: Optional[EventPublisher] = None,
        metrics: Any = None,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL,
        max_validity_days: int = DEFAULT_MAX_VALIDITY_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._ledger = ledger
        self._cache = cache
        self._lock = lock
        self._logger = logger
        self._publisher = publisher
        self._metrics = metrics
        worst_case = ledger.worst_case_seconds()
        if worst_case is not None and lock_ttl_seconds <= worst_case:
            raise ValueError(
                f"lock_ttl_seconds ({lock_ttl_seconds}) must exceed the worst-case ledger time ({worst_case:.1f}s)"
            )
        self._lock_ttl = lock_ttl_seconds
        self._max_validity_days = max_validity_days
        self._clock = clock

    def _count(self, name: str, category: Optional[str] = None) -> None:
        if self._metrics is not None:
            self._metrics.increment(name, 1, category=category)

    async def _notify(self, record: ConsentRecord, event_type: LedgerEventType, ledger_entry_id: str, correlation_id: str) -> None:
        """Publish a lifecycle notification. Failure is logged, never raised."""
        if self._publisher is None:
            return
        message = {
            "event_type": event_type.value,
            "consent_id": record.consent_id,
            "subject_id": record.subject_id,
            "requester_id": record.requester_id,
            "status": record.status.value,
            "data_categories": list(record.scope.data_categories),
            "ledger_entry_id": ledger_entry_id,
            "correlation_id": correlation_id,
            "occurred_at": record.updated_at.isoformat(),
        }
        try:
            await self._publisher.publish(
                EXCHANGE_CONSENT_EVENTS,
                event_type.value,
                message,
                ledger_entry_id,
            )
        except Exception as e:
            self._logger.error(
                "consent_notification_failed",
                extra={"consent_id": record.consent_id, "correlation_id": correlation_id, "error": str(e)},
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(
        self,
        subject_id: str,
        requester_id: str,
        scope: ConsentScope,
        window: ValidityWindow,
        actor_id: str,
        *,
        initial_status: ConsentStatus = ConsentStatus.ACTIVE,
        metadata: Optional[Dict[str, Any]] = None,
        correlation_id: str = "",
    ) -> ConsentRecord:
        """
        Create a consent record. Validation happens before any side effect.
        Raises ConsentValidationError, or LedgerUnavailableError in which case nothing is persisted.
        """
        validate_new_consent(subject_id, requester_id, scope, window, metadata, self._max_validity_days)
        validate_party_id(actor_id, "actor_id")
        if initial_status not in (ConsentStatus.DRAFT, ConsentStatus.ACTIVE):
            raise InvalidTransitionError(
                f"A consent can only be created as draft or active, not {initial_status.value}"
            )

        consent_id = str(uuid.uuid4())
        now = self._clock()
        self._logger.info(
            "consent_create_requested",
            extra={"consent_id": consent_id, "subject_id": subject_id, "correlation_id": correlation_id},
        )
        draft = ConsentRecord(
            consent_id=consent_id,
            subject_id=subject_id,
            requester_id=requester_id,
            scope=scope,
            window=window,
            status=initial_status,
            ledger_ref="",
            created_at=now,
            updated_at=now,
            last_modified_by=actor_id,
            metadata=metadata,
        )

        # Step 1: Ledger first; LedgerUnavailableError propagates with nothing persisted
        entry = await self._ledger.append(consent_id, LedgerEventType.CREATED.value, _ledger_payload(draft))
        record = replace(draft, ledger_ref=entry.entry_id, ledger_history=(entry.entry_id,))

        # Step 2: Persist record and audit row
        try:
            persisted = await self._repository.save(
                record,
                AuditRecord.for_creation(
                    consent_id,
                    actor_id,
                    record.status.value,
                    entry.entry_id,
                    record.created_at,
                    correlation_id=correlation_id,
                ),
            )
        except Exception as e:
            self._logger.error(
                "consent_persist_failed",
                extra={
                    "consent_id": consent_id,
                    "ledger_entry_id": entry.entry_id,
                    "correlation_id": correlation_id,
                    "error": str(e),
                },
            )
            raise

        # Step 3: Subject listings changed
        await self._cache.invalidate_subject(subject_id)

        self._logger.info(
            "consent_created",
            extra={
                "consent_id": consent_id,
                "subject_id": subject_id,
                "requester_id": requester_id,
                "status": persisted.status.value,
                "ledger_entry_id": entry.entry_id,
                "correlation_id": correlation_id,
            },
        )
        self._count("consent_created", category=persisted.status.value)

        # Step 4: Notify (best-effort)
        await self._notify(persisted, LedgerEventType.CREATED, entry.entry_id, correlation_id)
        return persisted

    async def update_status(
        self,
        consent_id: str,
        new_status: ConsentStatus,
        actor_id: str,
        *,
        reason: Optional[str] = None,
        correlation_id: str = "",
    ) -> ConsentRecord:
        """
        Move a consent to new_status. Serialized per consent id.
        Raises ConsentNotFoundError, InvalidTransitionError, ConcurrentModificationError,
        or LedgerUnavailableError (status not persisted).
        """
        validate_party_id(actor_id, "actor_id")
        lock_key = f"{LOCK_KEY_PREFIX}{consent_id}"
        lock_token = await self._lock.acquire(lock_key, self._lock_ttl)
        if lock_token is None:
            self._count("consent_update_conflict")
            raise ConcurrentModificationError(
                f"Another status change on consent {consent_id} is in progress"
            )
        try:
            current = await self._repository.find_by_id(consent_id)
            if current is None:
                raise ConsentNotFoundError(f"Consent {consent_id} not found")
            validate_transition(current.status, new_status)

            event_type = event_type_for_status(new_status)
            entry = await self._ledger.append(
                consent_id,
                event_type.value,
                {
                    **_ledger_payload(current, previous=current.status),
                    "status": new_status.value,
                    "actor_id": actor_id,
                    "reason": reason,
                },
            )
            updated = current.transitioned(
                new_status,
                actor_id=actor_id,
                ledger_entry_id=entry.entry_id,
                at=self._clock(),
            )
            audit = AuditRecord.for_status_change(
                consent_id,
                actor_id,
                current.status.value,
                new_status.value,
                entry.entry_id,
                updated.updated_at,
                reason=reason,
                correlation_id=correlation_id,
            )
            try:
                persisted = await self._repository.update_status(updated, current.version, audit)
            except ConcurrentModificationError:
                self._logger.error(
                    "consent_version_conflict",
                    extra={
                        "consent_id": consent_id,
                        "ledger_entry_id": entry.entry_id,
                        "correlation_id": correlation_id,
                    },
                )
                raise
        finally:
            await self._lock.release(lock_key, lock_token)

        await self._cache.invalidate_record(persisted)

        self._logger.info(
            "consent_status_changed",
            extra={
                "consent_id": consent_id,
                "from_status": current.status.value,
                "to_status": new_status.value,
                "ledger_entry_id": entry.entry_id,
                "actor_id": actor_id,
                "correlation_id": correlation_id,
            },
        )
        self._count("consent_status_changed", category=new_status.value)
        await self._notify(persisted, event_type, entry.entry_id, correlation_id)
        return persisted

    async def expire_overdue(
        self,
        now: Optional[datetime] = None,
        batch_size: int = 100,
        correlation_id: str = "",
    ) -> List[ConsentRecord]:
        """
        Move ACTIVE consents whose validity window has ended to EXPIRED, one ledger entry each.
        Records changed concurrently are skipped. LedgerUnavailableError stops the sweep.
        """
        now = now or self._clock()
        candidates = await self._repository.find_active_expired(now, batch_size)
        expired: List[ConsentRecord] = []
        for candidate in candidates:
            try:
                expired.append(
                    await self.update_status(
                        candidate.consent_id,
                        ConsentStatus.EXPIRED,
                        SYSTEM_ACTOR,
                        reason="validity window ended",
                        correlation_id=correlation_id,
                    )
                )
            except (ConcurrentModificationError, InvalidTransitionError) as e:
                self._logger.info(
                    "consent_expiry_skipped",
                    extra={"consent_id": candidate.consent_id, "reason": e.message},
                )
        self._logger.info(
            "consent_expiry_sweep_completed",
            extra={"candidates": len(candidates), "expired": len(expired), "correlation_id": correlation_id},
        )
        return expired

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_consent(self, consent_id: str) -> ConsentRecord:
        """Read-through cached lookup. Raises ConsentNotFoundError."""
        cached = await self._cache.get_record(consent_id)
        if cached is not None:
            self._count("consent_cache_hit")
            return cached
        self._count("consent_cache_miss")
        record = await self._repository.find_by_id(consent_id)
        if record is None:
            raise ConsentNotFoundError(f"Consent {consent_id} not found")
        await self._cache.set_record(record)
        return record

    async def get_by_subject(self, subject_id: str, page: int = 1, page_size: int = 20) -> ConsentPage:
        """One page of a subject's consents, newest first. Cached with a bounded TTL."""
        validate_party_id(subject_id, "subject_id")
        validate_paging(page, page_size)
        generation = await self._cache.subject_generation(subject_id)
        cached = await self._cache.get_subject_page(subject_id, generation, page, page_size)
        if cached is not None:
            self._count("consent_cache_hit")
            return cached
        self._count("consent_cache_miss")
        items, total = await self._repository.find_by_subject(subject_id, page, page_size)
        result = ConsentPage(items=list(items), total=total, page=page, page_size=page_size)
        await self._cache.set_subject_page(subject_id, generation, result)
        return result

    async def get_audit_trail(self, consent_id: str) -> List[AuditRecord]:
        if await self._repository.find_by_id(consent_id) is None:
            raise ConsentNotFoundError(f"Consent {consent_id} not found")
        return await self._repository.list_audit(consent_id)
