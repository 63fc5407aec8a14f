"""DB-backed consent repository. Persists consents and their audit trail to PostgreSQL."""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from consent_engine.application.exceptions import ConcurrentModificationError
from consent_engine.domain.models.consent import (
    AccessLevel,
    ConsentRecord,
    ConsentScope,
    ConsentStatus,
    ValidityWindow,
)
from consent_engine.governance.audit_models import AuditRecord
from consent_engine.infrastructure.database.models import Consent, ConsentAudit
from consent_engine.security.encryption import EncryptionService


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DbConsentRepository:
    """
    Implements ConsentRepository. purpose and metadata are encrypted at rest.
    Every write commits the consent row and its audit row together.
    """

    def __init__(self, session: AsyncSession, encryption: EncryptionService) -> None:
        self._session = session
        self._encryption = encryption

    def _to_record(self, orm: Consent) -> ConsentRecord:
        return ConsentRecord(
            consent_id=orm.consent_id,
            subject_id=orm.subject_id,
            requester_id=orm.requester_id,
            scope=ConsentScope(
                data_categories=tuple(orm.data_categories or ()),
                purpose=self._encryption.decrypt(orm.purpose_encrypted),
                access_level=AccessLevel(orm.access_level),
            ),
            window=ValidityWindow(start=_aware(orm.valid_from), end=_aware(orm.valid_to)),
            status=ConsentStatus(orm.status),
            ledger_ref=orm.ledger_ref,
            ledger_history=tuple(orm.ledger_history or ()),
            created_at=_aware(orm.created_on),
            updated_at=_aware(orm.updated_on),
            last_modified_by=orm.last_modified_by,
            version=orm.version,
            metadata=self._encryption.decrypt_json(orm.metadata_encrypted),
        )

    @staticmethod
    def _audit_row(audit: AuditRecord) -> ConsentAudit:
        return ConsentAudit(
            consent_id=audit.resource_id,
            actor=audit.actor,
            action=audit.action,
            reason=audit.reason,
            correlation_id=audit.correlation_id,
            metadata_=audit.metadata,
            timestamp_utc=audit.timestamp_utc,
        )

    async def save(self, record: ConsentRecord, audit: AuditRecord) -> ConsentRecord:
        orm = Consent(
            consent_id=record.consent_id,
            subject_id=record.subject_id,
            requester_id=record.requester_id,
            data_categories=list(record.scope.data_categories),
            purpose_encrypted=self._encryption.encrypt(record.scope.purpose),
            access_level=record.scope.access_level.value,
            valid_from=record.window.start,
            valid_to=record.window.end,
            status=record.status.value,
            ledger_ref=record.ledger_ref,
            ledger_history=list(record.ledger_history),
            created_on=record.created_at,
            updated_on=record.updated_at,
            last_modified_by=record.last_modified_by,
            metadata_encrypted=self._encryption.encrypt_json(record.metadata),
            version=record.version,
        )
        self._session.add(orm)
        self._session.add(self._audit_row(audit))
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return record

    async def find_by_id(self, consent_id: str) -> Optional[ConsentRecord]:
        stmt = select(Consent).where(Consent.consent_id == consent_id)
        result = await self._session.execute(stmt)
        orm = result.scalar_one_or_none()
        if orm is None:
            return None
        return self._to_record(orm)

    async def find_by_subject(
        self,
        subject_id: str,
        page: int,
        page_size: int,
    ) -> Tuple[List[ConsentRecord], int]:
        total = await self._session.scalar(
            select(func.count()).select_from(Consent).where(Consent.subject_id == subject_id)
        )
        stmt = (
            select(Consent)
            .where(Consent.subject_id == subject_id)
            .order_by(Consent.created_on.desc(), Consent.consent_id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self._session.execute(stmt)
        return [self._to_record(orm) for orm in result.scalars().all()], int(total or 0)

    async def update_status(
        self,
        record: ConsentRecord,
        expected_version: int,
        audit: AuditRecord,
    ) -> ConsentRecord:
        stmt = (
            update(Consent)
            .where(
                Consent.consent_id == record.consent_id,
                Consent.version == expected_version,
            )
            .values(
                status=record.status.value,
                ledger_ref=record.ledger_ref,
                ledger_history=list(record.ledger_history),
                updated_on=record.updated_at,
                last_modified_by=record.last_modified_by,
                version=record.version,
            )
        )
        try:
            result = await self._session.execute(stmt)
            if result.rowcount == 0:
                await self._session.rollback()
                raise ConcurrentModificationError(
                    f"Consent {record.consent_id} changed since version {expected_version}"
                )
            self._session.add(self._audit_row(audit))
            await self._session.commit()
        except ConcurrentModificationError:
            raise
        except Exception:
            await self._session.rollback()
            raise
        return record

    async def find_active_expired(self, now: datetime, limit: int) -> List[ConsentRecord]:
        stmt = (
            select(Consent)
            .where(
                Consent.status == ConsentStatus.ACTIVE.value,
                Consent.valid_to.is_not(None),
                Consent.valid_to <= now,
            )
            .order_by(Consent.valid_to)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_record(orm) for orm in result.scalars().all()]

    async def list_audit(self, consent_id: str) -> List[AuditRecord]:
        stmt = (
            select(ConsentAudit)
            .where(ConsentAudit.consent_id == consent_id)
            .order_by(ConsentAudit.timestamp_utc, ConsentAudit.created_at)
        )
        result = await self._session.execute(stmt)
        return [
            AuditRecord(
                actor=row.actor,
                action=row.action,
                resource_id=row.consent_id,
                reason=row.reason,
                correlation_id=row.correlation_id or "",
                metadata=row.metadata_,
                timestamp_utc=_aware(row.timestamp_utc),
            )
            for row in result.scalars().all()
        ]
