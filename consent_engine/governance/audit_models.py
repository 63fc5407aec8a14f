"""Consent audit trail entries. One row per accepted change, written with the change itself."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

CONSENT_RESOURCE = "consent"


class AuditAction(Enum):
    CREATED = "consent_created"
    STATUS_CHANGED = "consent_status_changed"


@dataclass(frozen=True)
class AuditRecord:
    """
    Who changed which consent, when (UTC), why, under which correlation_id.
    For status changes metadata carries from, to and the ledger entry id.
    """

    actor: str
    action: str
    resource_id: str
    reason: Optional[str]
    correlation_id: str
    metadata: Optional[Dict[str, Any]]
    timestamp_utc: datetime
    resource_type: str = CONSENT_RESOURCE

    @classmethod
    def for_creation(
        cls,
        consent_id: str,
        actor_id: str,
        status: str,
        ledger_entry_id: str,
        at: datetime,
        correlation_id: str = "",
    ) -> "AuditRecord":
        return cls(
            actor=actor_id,
            action=AuditAction.CREATED.value,
            resource_id=consent_id,
            reason=None,
            correlation_id=correlation_id,
            metadata={"status": status, "ledger_entry_id": ledger_entry_id},
            timestamp_utc=at,
        )

    @classmethod
    def for_status_change(
        cls,
        consent_id: str,
        actor_id: str,
        from_status: str,
        to_status: str,
        ledger_entry_id: str,
        at: datetime,
        reason: Optional[str] = None,
        correlation_id: str = "",
    ) -> "AuditRecord":
        return cls(
            actor=actor_id,
            action=AuditAction.STATUS_CHANGED.value,
            resource_id=consent_id,
            reason=reason,
            correlation_id=correlation_id,
            metadata={"from": from_status, "to": to_status, "ledger_entry_id": ledger_entry_id},
            timestamp_utc=at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor": self.actor,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "reason": self.reason,
            "correlation_id": self.correlation_id,
            "metadata": self.metadata,
            "timestamp_utc": self.timestamp_utc.isoformat(),
        }
