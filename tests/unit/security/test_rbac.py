"""Security tests: RBAC permission matrix fully tested."""

import pytest

from consent_engine.security.exceptions import AuthorizationError
from consent_engine.security.rbac import RBACService, Role


@pytest.fixture
def rbac():
    return RBACService()


# Permission matrix:
# Role       Create  UpdateStatus  View  ViewAudit  ExpireSweep
# ADMIN      ✓       ✓             ✓     ✓          ✓
# SUBJECT    ✓       ✓             ✓     ✗          ✗
# REQUESTER  ✓       ✓             ✓     ✗          ✗
# AUDITOR    ✗       ✗             ✓     ✓          ✗


def test_admin_has_all_permissions(rbac):
    for action in ("create", "update_status", "view", "view_audit", "expire_sweep"):
        rbac.check_permission(Role.ADMIN, action)


@pytest.mark.parametrize("role", [Role.SUBJECT, Role.REQUESTER])
def test_parties_manage_but_cannot_audit_or_sweep(rbac, role):
    rbac.check_permission(role, "create")
    rbac.check_permission(role, "update_status")
    rbac.check_permission(role, "view")
    with pytest.raises(AuthorizationError):
        rbac.check_permission(role, "view_audit")
    with pytest.raises(AuthorizationError):
        rbac.check_permission(role, "expire_sweep")


def test_auditor_read_only(rbac):
    rbac.check_permission(Role.AUDITOR, "view")
    rbac.check_permission(Role.AUDITOR, "view_audit")
    for action in ("create", "update_status", "expire_sweep"):
        with pytest.raises(AuthorizationError):
            rbac.check_permission(Role.AUDITOR, action)


def test_unknown_action_raises(rbac):
    with pytest.raises(AuthorizationError):
        rbac.check_permission(Role.ADMIN, "unknown_action")
