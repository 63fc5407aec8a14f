"""Pydantic schemas for consent API and serialization. Strict validation, no DB or infrastructure."""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from consent_engine.domain.models.consent import (
    AccessLevel,
    ConsentPage,
    ConsentRecord,
    ConsentScope,
    ConsentStatus,
    ValidityWindow,
)


def _assume_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ConsentCreateRequest(BaseModel):
    """Request schema for creating a consent record. No DB-specific fields."""

    subject_id: str = Field(..., min_length=1, description="Data subject granting consent")
    requester_id: str = Field(..., min_length=1, description="Company or user receiving access")
    data_categories: List[str] = Field(..., min_length=1, description="Data categories granted")
    purpose: str = Field(..., min_length=1, max_length=1000)
    access_level: AccessLevel = AccessLevel.READ
    valid_from: datetime
    valid_to: Optional[datetime] = None
    draft: bool = Field(False, description="Create as DRAFT instead of ACTIVE")
    metadata: Optional[Dict[str, Any]] = Field(None, description="JSON-serializable metadata")

    @field_validator("valid_from", "valid_to")
    @classmethod
    def naive_datetimes_are_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(v)

    @field_validator("metadata")
    @classmethod
    def metadata_must_be_json_serializable(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if v is None:
            return v
        try:
            json.dumps(v)
        except (TypeError, ValueError) as e:
            raise ValueError("metadata must be JSON-serializable") from e
        return v

    def to_scope(self) -> ConsentScope:
        return ConsentScope(
            data_categories=tuple(self.data_categories),
            purpose=self.purpose,
            access_level=self.access_level,
        )

    def to_window(self) -> ValidityWindow:
        return ValidityWindow(start=self.valid_from, end=self.valid_to)


class ConsentStatusUpdateRequest(BaseModel):
    """Request schema for a status transition."""

    status: ConsentStatus
    reason: Optional[str] = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ConsentResponse(BaseModel):
    """Response schema for consent read."""

    consent_id: str
    subject_id: str
    requester_id: str
    data_categories: List[str]
    purpose: str
    access_level: AccessLevel
    valid_from: datetime
    valid_to: Optional[datetime] = None
    status: ConsentStatus
    ledger_ref: str
    ledger_history: List[str]
    created_at: datetime
    updated_at: datetime
    last_modified_by: str
    version: int
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, record: ConsentRecord) -> "ConsentResponse":
        return cls.model_validate(record.to_dict())


class ConsentPageResponse(BaseModel):
    items: List[ConsentResponse]
    total: int
    page: int
    page_size: int

    @classmethod
    def from_page(cls, page: ConsentPage) -> "ConsentPageResponse":
        return cls(
            items=[ConsentResponse.from_record(r) for r in page.items],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
        )


class ExpirySweepResponse(BaseModel):
    expired: List[str]
    count: int


class AuditEntryResponse(BaseModel):
    actor: str
    action: str
    resource_id: str
    reason: Optional[str] = None
    correlation_id: str
    metadata: Optional[Dict[str, Any]] = None
    timestamp_utc: datetime
