"""In-memory consent repository. Implements ConsentRepository for tests and local development."""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from consent_engine.application.exceptions import ConcurrentModificationError
from consent_engine.domain.models.consent import ConsentRecord, ConsentStatus
from consent_engine.governance.audit_models import AuditRecord


class InMemoryConsentRepository:
    """Same contract as the database repository: atomic record+audit writes, version-checked updates."""

    def __init__(self) -> None:
        self._records: Dict[str, ConsentRecord] = {}
        self._audit: Dict[str, List[AuditRecord]] = {}
        self._lock = asyncio.Lock()

    async def save(self, record: ConsentRecord, audit: AuditRecord) -> ConsentRecord:
        async with self._lock:
            if record.consent_id in self._records:
                raise ValueError(f"Consent {record.consent_id} already exists")
            self._records[record.consent_id] = record
            self._audit.setdefault(record.consent_id, []).append(audit)
            return record

    async def find_by_id(self, consent_id: str) -> Optional[ConsentRecord]:
        return self._records.get(consent_id)

    async def find_by_subject(
        self,
        subject_id: str,
        page: int,
        page_size: int,
    ) -> Tuple[List[ConsentRecord], int]:
        matching = sorted(
            (r for r in self._records.values() if r.subject_id == subject_id),
            key=lambda r: (r.created_at, r.consent_id),
            reverse=True,
        )
        start = (page - 1) * page_size
        return matching[start : start + page_size], len(matching)

    async def update_status(
        self,
        record: ConsentRecord,
        expected_version: int,
        audit: AuditRecord,
    ) -> ConsentRecord:
        async with self._lock:
            stored = self._records.get(record.consent_id)
            if stored is None or stored.version != expected_version:
                raise ConcurrentModificationError(
                    f"Consent {record.consent_id} changed since version {expected_version}"
                )
            self._records[record.consent_id] = record
            self._audit.setdefault(record.consent_id, []).append(audit)
            return record

    async def find_active_expired(self, now: datetime, limit: int) -> List[ConsentRecord]:
        overdue = [
            r
            for r in self._records.values()
            if r.status == ConsentStatus.ACTIVE and r.is_expired_at(now)
        ]
        overdue.sort(key=lambda r: r.window.end)
        return overdue[:limit]

    async def list_audit(self, consent_id: str) -> List[AuditRecord]:
        return list(self._audit.get(consent_id, []))
