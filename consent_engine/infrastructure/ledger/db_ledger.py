"""PostgreSQL-backed ledger. Append-only table; each entry hashes over its predecessor for the same consent."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from consent_engine.application.ledger import (
    LedgerEntry,
    PermanentLedgerError,
    TransientLedgerError,
    compute_entry_hash,
)
from consent_engine.infrastructure.database.models import LedgerEntryRow


def _to_entry(row: LedgerEntryRow) -> LedgerEntry:
    recorded_at = row.recorded_at
    if recorded_at is not None and recorded_at.tzinfo is None:
        recorded_at = recorded_at.replace(tzinfo=timezone.utc)
    return LedgerEntry(
        entry_id=row.entry_id,
        consent_id=row.consent_id,
        event_type=row.event_type,
        payload=row.payload,
        entry_hash=row.entry_hash,
        prev_hash=row.prev_hash,
        recorded_at=recorded_at,
    )


class DbLedgerClient:
    """
    Implements LedgerClient. Uses its own session per append so a ledger write never
    shares a transaction with the consent row it proves.
    A concurrent append to the same chain loses on the (consent_id, sequence) constraint
    and surfaces as TransientLedgerError; the retry re-reads the chain head.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, consent_id: str, event_type: str, payload: Dict[str, Any]) -> LedgerEntry:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(LedgerEntryRow)
                    .where(LedgerEntryRow.consent_id == consent_id)
                    .order_by(LedgerEntryRow.sequence.desc())
                    .limit(1)
                )
                head = (await session.execute(stmt)).scalar_one_or_none()
                prev_hash = head.entry_hash if head else None
                row = LedgerEntryRow(
                    entry_id=str(uuid.uuid4()),
                    consent_id=consent_id,
                    sequence=(head.sequence + 1) if head else 1,
                    event_type=event_type,
                    payload=payload,
                    entry_hash=compute_entry_hash(consent_id, event_type, payload, prev_hash),
                    prev_hash=prev_hash,
                    recorded_at=datetime.now(timezone.utc),
                )
                session.add(row)
                await session.commit()
                return _to_entry(row)
        except IntegrityError as e:
            raise TransientLedgerError(f"Ledger chain for {consent_id} advanced concurrently") from e
        except (DBAPIError, OSError) as e:
            raise TransientLedgerError(f"Ledger store unavailable: {e}") from e
        except SQLAlchemyError as e:
            raise PermanentLedgerError(f"Ledger store rejected entry: {e}") from e

    async def entries(self, consent_id: str) -> List[LedgerEntry]:
        async with self._session_factory() as session:
            stmt = (
                select(LedgerEntryRow)
                .where(LedgerEntryRow.consent_id == consent_id)
                .order_by(LedgerEntryRow.sequence)
            )
            result = await session.execute(stmt)
            return [_to_entry(row) for row in result.scalars().all()]
