"""Consents API router: create, read, status transitions, subject listing, audit trail, expiry sweep."""

from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, status

from consent_engine.api.dependencies import (
    get_consent_service,
    get_correlation_id,
    get_principal,
    get_rbac,
)
from consent_engine.application.consent_service import ConsentService
from consent_engine.domain.models.consent import ConsentStatus
from consent_engine.domain.schemas.consent import (
    AuditEntryResponse,
    ConsentCreateRequest,
    ConsentPageResponse,
    ConsentResponse,
    ConsentStatusUpdateRequest,
    ExpirySweepResponse,
)
from consent_engine.security.access_policy import ConsentAccessPolicy
from consent_engine.security.auth import Principal
from consent_engine.security.rbac import RBACService

router = APIRouter()


@router.post("/", response_model=ConsentResponse, status_code=status.HTTP_201_CREATED)
async def create_consent(
    body: ConsentCreateRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    rbac: Annotated[RBACService, Depends(get_rbac)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    consent_service: Annotated[ConsentService, Depends(get_consent_service)],
):
    """Create a consent. ACTIVE unless draft=true. The ledger entry is written before the record."""
    rbac.check_permission(principal.role, "create")
    ConsentAccessPolicy.validate_create(principal, body.subject_id, body.requester_id, body.draft)
    record = await consent_service.create(
        body.subject_id,
        body.requester_id,
        body.to_scope(),
        body.to_window(),
        principal.actor_id,
        initial_status=ConsentStatus.DRAFT if body.draft else ConsentStatus.ACTIVE,
        metadata=body.metadata,
        correlation_id=correlation_id,
    )
    return ConsentResponse.from_record(record)


@router.post("/expire", response_model=ExpirySweepResponse)
async def expire_overdue(
    principal: Annotated[Principal, Depends(get_principal)],
    rbac: Annotated[RBACService, Depends(get_rbac)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    consent_service: Annotated[ConsentService, Depends(get_consent_service)],
    batch_size: Annotated[int, Query(ge=1, le=1000)] = 100,
):
    """Expire ACTIVE consents whose validity window has ended. Admin only; meant for a scheduler."""
    rbac.check_permission(principal.role, "expire_sweep")
    expired = await consent_service.expire_overdue(batch_size=batch_size, correlation_id=correlation_id)
    return ExpirySweepResponse(expired=[r.consent_id for r in expired], count=len(expired))


@router.get("/subject/{subject_id}", response_model=ConsentPageResponse)
async def list_subject_consents(
    subject_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    rbac: Annotated[RBACService, Depends(get_rbac)],
    consent_service: Annotated[ConsentService, Depends(get_consent_service)],
    page: Annotated[int, Query()] = 1,
    page_size: Annotated[int, Query()] = 20,
):
    """One page of a subject's consents, newest first."""
    rbac.check_permission(principal.role, "view")
    ConsentAccessPolicy.validate_subject_listing(principal, subject_id)
    result = await consent_service.get_by_subject(subject_id, page=page, page_size=page_size)
    return ConsentPageResponse.from_page(result)


@router.get("/{consent_id}", response_model=ConsentResponse)
async def get_consent(
    consent_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    rbac: Annotated[RBACService, Depends(get_rbac)],
    consent_service: Annotated[ConsentService, Depends(get_consent_service)],
):
    rbac.check_permission(principal.role, "view")
    record = await consent_service.get_consent(consent_id)
    ConsentAccessPolicy.validate_view(principal, record)
    return ConsentResponse.from_record(record)


@router.put("/{consent_id}/status", response_model=ConsentResponse)
async def update_consent_status(
    consent_id: str,
    body: ConsentStatusUpdateRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    rbac: Annotated[RBACService, Depends(get_rbac)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    consent_service: Annotated[ConsentService, Depends(get_consent_service)],
):
    """Move a consent along the lifecycle. 409 for illegal transitions or a concurrent change."""
    rbac.check_permission(principal.role, "update_status")
    # Parties never change, so a cached copy is good enough for the access check.
    current = await consent_service.get_consent(consent_id)
    ConsentAccessPolicy.validate_status_change(principal, current, body.status)
    record = await consent_service.update_status(
        consent_id,
        body.status,
        principal.actor_id,
        reason=body.reason,
        correlation_id=correlation_id,
    )
    return ConsentResponse.from_record(record)


@router.get("/{consent_id}/audit", response_model=List[AuditEntryResponse])
async def get_consent_audit(
    consent_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    rbac: Annotated[RBACService, Depends(get_rbac)],
    consent_service: Annotated[ConsentService, Depends(get_consent_service)],
):
    rbac.check_permission(principal.role, "view_audit")
    trail = await consent_service.get_audit_trail(consent_id)
    return [AuditEntryResponse.model_validate(entry.to_dict()) for entry in trail]
