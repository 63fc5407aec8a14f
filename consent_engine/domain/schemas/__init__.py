"""Domain schemas. Request/response and validation."""

from consent_engine.domain.schemas.consent import (
    AuditEntryResponse,
    ConsentCreateRequest,
    ConsentPageResponse,
    ConsentResponse,
    ConsentStatusUpdateRequest,
    ExpirySweepResponse,
)

__all__ = [
    "AuditEntryResponse",
    "ConsentCreateRequest",
    "ConsentPageResponse",
    "ConsentResponse",
    "ConsentStatusUpdateRequest",
    "ExpirySweepResponse",
]
