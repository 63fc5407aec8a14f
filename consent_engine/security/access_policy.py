"""Party-based access checks on consents. A principal only touches consents it is a party to. No FastAPI."""

from consent_engine.domain.models.consent import ConsentRecord, ConsentStatus
from consent_engine.security.auth import Principal
from consent_engine.security.exceptions import AccessDeniedError
from consent_engine.security.rbac import Role

# Status changes each party may request on its own consents. ADMIN may request any.
_PARTY_TRANSITIONS: dict[Role, frozenset[ConsentStatus]] = {
    Role.SUBJECT: frozenset({ConsentStatus.ACTIVE, ConsentStatus.REVOKED}),
    Role.REQUESTER: frozenset({ConsentStatus.REVOKED}),
}


class ConsentAccessPolicy:
    """Validate that the principal is a party to the consent. Raise AccessDeniedError otherwise."""

    @staticmethod
    def validate_create(principal: Principal, subject_id: str, requester_id: str, draft: bool) -> None:
        """
        Subjects create consents for themselves. Requesters may only open a DRAFT
        naming themselves; the subject activates it.
        """
        if principal.role == Role.ADMIN:
            return
        if principal.role == Role.SUBJECT and principal.actor_id == subject_id:
            return
        if principal.role == Role.REQUESTER and principal.actor_id == requester_id:
            if not draft:
                raise AccessDeniedError("Requesters may only create draft consents")
            return
        raise AccessDeniedError("Access denied: principal is not a party to this consent")

    @staticmethod
    def validate_view(principal: Principal, record: ConsentRecord) -> None:
        if principal.role in (Role.ADMIN, Role.AUDITOR):
            return
        if principal.role == Role.SUBJECT and principal.actor_id == record.subject_id:
            return
        if principal.role == Role.REQUESTER and principal.actor_id == record.requester_id:
            return
        raise AccessDeniedError("Access denied: principal is not a party to this consent")

    @staticmethod
    def validate_subject_listing(principal: Principal, subject_id: str) -> None:
        if principal.role in (Role.ADMIN, Role.AUDITOR):
            return
        if principal.role == Role.SUBJECT and principal.actor_id == subject_id:
            return
        raise AccessDeniedError("Access denied: consents of another subject")

    @staticmethod
    def validate_status_change(principal: Principal, record: ConsentRecord, new_status: ConsentStatus) -> None:
        if principal.role == Role.ADMIN:
            return
        ConsentAccessPolicy.validate_view(principal, record)
        if new_status not in _PARTY_TRANSITIONS.get(principal.role, frozenset()):
            raise AccessDeniedError(
                f"Role {principal.role.value} may not move a consent to {new_status.value}"
            )
