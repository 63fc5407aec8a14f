"""Verification ledger protocol and hash-chain helpers. Application layer depends on this; infrastructure implements it."""

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Protocol

from consent_engine.domain.models.consent import ConsentStatus


class LedgerEventType(str, Enum):
    CREATED = "consent.created"
    ACTIVATED = "consent.activated"
    REVOKED = "consent.revoked"
    EXPIRED = "consent.expired"


_STATUS_EVENTS: Dict[ConsentStatus, LedgerEventType] = {
    ConsentStatus.ACTIVE: LedgerEventType.ACTIVATED,
    ConsentStatus.REVOKED: LedgerEventType.REVOKED,
    ConsentStatus.EXPIRED: LedgerEventType.EXPIRED,
}


def event_type_for_status(status: ConsentStatus) -> LedgerEventType:
    """Ledger event recorded when a consent moves into status."""
    return _STATUS_EVENTS[status]


class LedgerError(Exception):
    """Base for errors raised by ledger clients."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TransientLedgerError(LedgerError):
    """Network-style failure; the same append may succeed if retried."""


class PermanentLedgerError(LedgerError):
    """The ledger rejected the entry; retrying will not help."""


@dataclass(frozen=True)
class LedgerEntry:
    """Write-once proof of a consent event. entry_hash chains to the previous entry of the same consent."""

    entry_id: str
    consent_id: str
    event_type: str
    payload: Dict[str, Any]
    entry_hash: str
    prev_hash: Optional[str]
    recorded_at: datetime


class LedgerClient(Protocol):
    """Append-only, tamper-evident log of consent events."""

    async def append(
        self,
        consent_id: str,
        event_type: str,
        payload: Dict[str, Any],
    ) -> LedgerEntry:
        """Append an entry. Raises TransientLedgerError or PermanentLedgerError."""
        ...


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_entry_hash(
    consent_id: str,
    event_type: str,
    payload: Dict[str, Any],
    prev_hash: Optional[str],
) -> str:
    material = "|".join([consent_id, event_type, canonical_json(payload), prev_hash or ""])
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def verify_chain(entries: Iterable[LedgerEntry]) -> bool:
    """
    True if entries (oldest first, one consent) form an unbroken hash chain.
    An empty history verifies trivially.
    """
    prev_hash: Optional[str] = None
    for entry in entries:
        if entry.prev_hash != prev_hash:
            return False
        expected = compute_entry_hash(entry.consent_id, entry.event_type, entry.payload, prev_hash)
        if entry.entry_hash != expected:
            return False
        prev_hash = entry.entry_hash
    return True
