"""Domain model for consent records. Pure business semantics: no ORM or infrastructure."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from consent_engine.domain.exceptions import InvalidTransitionError


class ConsentStatus(str, Enum):
    """Lifecycle status for consent records. Transitions only move forward."""

    DRAFT = "draft"
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class AccessLevel(str, Enum):
    READ = "read"
    WRITE = "write"
    FULL = "full"


# Allowed status transitions: from_status -> set of valid next statuses
_STATUS_TRANSITIONS: Dict[ConsentStatus, FrozenSet[ConsentStatus]] = {
    ConsentStatus.DRAFT: frozenset({ConsentStatus.ACTIVE, ConsentStatus.REVOKED}),
    ConsentStatus.ACTIVE: frozenset({ConsentStatus.REVOKED, ConsentStatus.EXPIRED}),
    ConsentStatus.REVOKED: frozenset(),
    ConsentStatus.EXPIRED: frozenset(),
}


def allowed_transitions(current: ConsentStatus) -> FrozenSet[ConsentStatus]:
    return _STATUS_TRANSITIONS.get(current, frozenset())


def validate_transition(current: ConsentStatus, new: ConsentStatus) -> None:
    """Validate that transition from current to new is allowed. Raises if invalid."""
    if new not in allowed_transitions(current):
        raise InvalidTransitionError(
            f"Invalid status transition from {current.value} to {new.value}"
        )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class ConsentScope:
    """What is shared and why."""

    data_categories: Tuple[str, ...]
    purpose: str
    access_level: AccessLevel = AccessLevel.READ


@dataclass(frozen=True)
class ValidityWindow:
    """Validity interval. An open end means no scheduled expiry."""

    start: datetime
    end: Optional[datetime] = None

    def contains(self, at: datetime) -> bool:
        if at < self.start:
            return False
        return self.end is None or at < self.end


@dataclass(frozen=True)
class ConsentRecord:
    """
    Authorization unit granting a requester access to a subject's data.
    Never mutated in place: status changes go through transitioned(), which returns
    a new record with the ledger entry appended and the version bumped.
    """

    consent_id: str
    subject_id: str
    requester_id: str
    scope: ConsentScope
    window: ValidityWindow
    status: ConsentStatus
    ledger_ref: str
    created_at: datetime
    updated_at: datetime
    last_modified_by: str
    ledger_history: Tuple[str, ...] = field(default_factory=tuple)
    version: int = 1
    metadata: Optional[Dict[str, Any]] = None

    def transitioned(
        self,
        new_status: ConsentStatus,
        *,
        actor_id: str,
        ledger_entry_id: str,
        at: Optional[datetime] = None,
    ) -> "ConsentRecord":
        """
        Return the record after a status transition. Raises InvalidTransitionError
        if new_status is not a legal successor of the current status.
        """
        validate_transition(self.status, new_status)
        return replace(
            self,
            status=new_status,
            updated_at=at or datetime.now(timezone.utc),
            last_modified_by=actor_id,
            ledger_history=self.ledger_history + (ledger_entry_id,),
            version=self.version + 1,
        )

    def is_expired_at(self, at: datetime) -> bool:
        return self.window.end is not None and at >= self.window.end

    def permits(self, requester_id: str, category: str, at: Optional[datetime] = None) -> bool:
        """True when this consent currently authorizes requester_id to read category."""
        at = at or datetime.now(timezone.utc)
        return (
            self.status == ConsentStatus.ACTIVE
            and self.requester_id == requester_id
            and category in self.scope.data_categories
            and self.window.contains(at)
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation (cache payloads, notifications)."""
        return {
            "consent_id": self.consent_id,
            "subject_id": self.subject_id,
            "requester_id": self.requester_id,
            "data_categories": list(self.scope.data_categories),
            "purpose": self.scope.purpose,
            "access_level": self.scope.access_level.value,
            "valid_from": _iso(self.window.start),
            "valid_to": _iso(self.window.end),
            "status": self.status.value,
            "ledger_ref": self.ledger_ref,
            "ledger_history": list(self.ledger_history),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "last_modified_by": self.last_modified_by,
            "version": self.version,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsentRecord":
        return cls(
            consent_id=data["consent_id"],
            subject_id=data["subject_id"],
            requester_id=data["requester_id"],
            scope=ConsentScope(
                data_categories=tuple(data["data_categories"]),
                purpose=data["purpose"],
                access_level=AccessLevel(data.get("access_level", AccessLevel.READ.value)),
            ),
            window=ValidityWindow(start=_parse(data["valid_from"]), end=_parse(data.get("valid_to"))),
            status=ConsentStatus(data["status"]),
            ledger_ref=data["ledger_ref"],
            ledger_history=tuple(data.get("ledger_history") or ()),
            created_at=_parse(data["created_at"]),
            updated_at=_parse(data["updated_at"]),
            last_modified_by=data["last_modified_by"],
            version=int(data.get("version", 1)),
            metadata=data.get("metadata"),
        )


@dataclass(frozen=True)
class ConsentPage:
    """One page of a subject's consents, newest first."""

    items: List[ConsentRecord]
    total: int
    page: int
    page_size: int
