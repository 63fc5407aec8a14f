# consent_engine/infrastructure/database/models.py

import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from consent_engine.infrastructure.database.session import Base


class BaseModel(Base):
    __abstract__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Consent(BaseModel):
    """
    One consent record. Rows are never deleted. purpose and metadata are stored
    encrypted; version guards status updates (optimistic concurrency).
    """

    __tablename__ = "consents"
    __table_args__ = (
        Index("ix_consents_subject_created", "subject_id", "created_on"),
        Index("ix_consents_status_valid_to", "status", "valid_to"),
    )

    consent_id = Column(String, nullable=False, unique=True, index=True)
    subject_id = Column(String, nullable=False)
    requester_id = Column(String, nullable=False, index=True)
    data_categories = Column(JSONB, nullable=False)
    purpose_encrypted = Column(Text, nullable=False)
    access_level = Column(String, nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_to = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False)
    ledger_ref = Column(String, nullable=False)
    ledger_history = Column(JSONB, nullable=False)
    created_on = Column(DateTime(timezone=True), nullable=False)
    updated_on = Column(DateTime(timezone=True), nullable=False)
    last_modified_by = Column(String, nullable=False)
    metadata_encrypted = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)


class ConsentAudit(BaseModel):
    """Append-only audit trail; one row per create or status change."""

    __tablename__ = "consent_audit"

    consent_id = Column(String, nullable=False, index=True)
    actor = Column(String, nullable=False)
    action = Column(String, nullable=False)
    reason = Column(Text, nullable=True)
    correlation_id = Column(String, nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=True)
    timestamp_utc = Column(DateTime(timezone=True), nullable=False)


class LedgerEntryRow(BaseModel):
    """Hash-chained ledger entries. (consent_id, sequence) is unique so concurrent appends to one chain conflict."""

    __tablename__ = "ledger_entries"
    __table_args__ = (UniqueConstraint("consent_id", "sequence", name="uq_ledger_consent_sequence"),)

    entry_id = Column(String, nullable=False, unique=True)
    consent_id = Column(String, nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    event_type = Column(String, nullable=False)
    payload = Column(JSONB, nullable=False)
    entry_hash = Column(String(64), nullable=False)
    prev_hash = Column(String(64), nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False)
