"""Governance: consent audit trail. No FastAPI."""

from consent_engine.governance.audit_models import AuditAction, AuditRecord

__all__ = ["AuditAction", "AuditRecord"]
