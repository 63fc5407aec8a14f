"""Role-based access control. No FastAPI."""

from enum import Enum

from consent_engine.security.exceptions import AuthorizationError


class Role(Enum):
    ADMIN = "ADMIN"
    SUBJECT = "SUBJECT"
    REQUESTER = "REQUESTER"
    AUDITOR = "AUDITOR"


# Permission matrix:
# Role       Create  UpdateStatus  View  ViewAudit  ExpireSweep
# ADMIN      ✓       ✓             ✓     ✓          ✓
# SUBJECT    ✓       ✓             ✓     ✗          ✗
# REQUESTER  ✓       ✓             ✓     ✗          ✗
# AUDITOR    ✗       ✗             ✓     ✓          ✗

_ACTION_PERMISSIONS: dict[tuple[Role, str], bool] = {
    (Role.ADMIN, "create"): True,
    (Role.ADMIN, "update_status"): True,
    (Role.ADMIN, "view"): True,
    (Role.ADMIN, "view_audit"): True,
    (Role.ADMIN, "expire_sweep"): True,
    (Role.SUBJECT, "create"): True,
    (Role.SUBJECT, "update_status"): True,
    (Role.SUBJECT, "view"): True,
    (Role.SUBJECT, "view_audit"): False,
    (Role.SUBJECT, "expire_sweep"): False,
    (Role.REQUESTER, "create"): True,
    (Role.REQUESTER, "update_status"): True,
    (Role.REQUESTER, "view"): True,
    (Role.REQUESTER, "view_audit"): False,
    (Role.REQUESTER, "expire_sweep"): False,
    (Role.AUDITOR, "create"): False,
    (Role.AUDITOR, "update_status"): False,
    (Role.AUDITOR, "view"): True,
    (Role.AUDITOR, "view_audit"): True,
    (Role.AUDITOR, "expire_sweep"): False,
}


class RBACService:
    """Check permission for role and action. Raise AuthorizationError if invalid."""

    def check_permission(self, role: Role, action: str) -> None:
        """Raises AuthorizationError if role does not have permission for action."""
        key = (role, action)
        if key not in _ACTION_PERMISSIONS or not _ACTION_PERMISSIONS[key]:
            raise AuthorizationError(
                f"Role {role.value} does not have permission for action '{action}'"
            )
