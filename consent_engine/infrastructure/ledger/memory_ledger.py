"""In-process hash-chained ledger. For tests, local development and single-node demos."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from consent_engine.application.ledger import LedgerEntry, compute_entry_hash


class InMemoryLedgerClient:
    """Implements LedgerClient. Entries are chained per consent and never modified."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._chains: Dict[str, List[LedgerEntry]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def append(self, consent_id: str, event_type: str, payload: Dict[str, Any]) -> LedgerEntry:
        async with self._lock:
            chain = self._chains.setdefault(consent_id, [])
            prev_hash = chain[-1].entry_hash if chain else None
            entry = LedgerEntry(
                entry_id=str(uuid.uuid4()),
                consent_id=consent_id,
                event_type=event_type,
                payload=dict(payload),
                entry_hash=compute_entry_hash(consent_id, event_type, payload, prev_hash),
                prev_hash=prev_hash,
                recorded_at=self._clock(),
            )
            chain.append(entry)
            return entry

    async def entries(self, consent_id: str) -> List[LedgerEntry]:
        """Chain for one consent, oldest first."""
        return list(self._chains.get(consent_id, []))

    def count(self) -> int:
        return sum(len(chain) for chain in self._chains.values())
