"""Governance tests: audit immutability and audit fields completeness."""

import dataclasses
from datetime import datetime, timezone

import pytest

from consent_engine.governance.audit_models import AuditAction, AuditRecord

AT = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_audit_immutability():
    """Audit record must not allow mutation."""
    record = AuditRecord.for_creation("c-1", "u1", "active", "entry-1", AT)
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.actor = "someone-else"


def test_creation_entry_fields():
    record = AuditRecord.for_creation("c-1", "u1", "draft", "entry-1", AT, correlation_id="corr-1")
    assert record.action == AuditAction.CREATED.value
    assert record.resource_type == "consent"
    assert record.resource_id == "c-1"
    assert record.reason is None
    assert record.metadata == {"status": "draft", "ledger_entry_id": "entry-1"}


def test_status_change_entry_fields():
    record = AuditRecord.for_status_change(
        "c-1", "u1", "active", "revoked", "entry-2", AT, reason="withdrawn", correlation_id="corr-2"
    )
    assert record.action == "consent_status_changed"
    assert record.metadata == {"from": "active", "to": "revoked", "ledger_entry_id": "entry-2"}
    d = record.to_dict()
    assert d["reason"] == "withdrawn"
    assert d["correlation_id"] == "corr-2"
    assert d["timestamp_utc"] == AT.isoformat()
