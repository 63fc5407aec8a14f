"""Consent repository protocol. Application layer depends on this; infrastructure implements it."""

from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from consent_engine.domain.models.consent import ConsentRecord
from consent_engine.governance.audit_models import AuditRecord


class ConsentRepository(Protocol):
    """
    Persistence for consent records. Records are never deleted.
    Each write stores the record and its audit row atomically.
    """

    async def save(self, record: ConsentRecord, audit: AuditRecord) -> ConsentRecord:
        """Insert a new record together with its audit row."""
        ...

    async def find_by_id(self, consent_id: str) -> Optional[ConsentRecord]:
        """Return the record or None if unknown."""
        ...

    async def find_by_subject(
        self,
        subject_id: str,
        page: int,
        page_size: int,
    ) -> Tuple[List[ConsentRecord], int]:
        """Return (records newest first, total count) for one page of a subject's consents."""
        ...

    async def update_status(
        self,
        record: ConsentRecord,
        expected_version: int,
        audit: AuditRecord,
    ) -> ConsentRecord:
        """
        Store record's status, ledger history and audit fields only if the stored version
        still equals expected_version. Raises ConcurrentModificationError otherwise.
        """
        ...

    async def find_active_expired(self, now: datetime, limit: int) -> List[ConsentRecord]:
        """ACTIVE records whose validity window ended at or before now, oldest end first."""
        ...

    async def list_audit(self, consent_id: str) -> List[AuditRecord]:
        """Audit rows for one consent, oldest first."""
        ...
