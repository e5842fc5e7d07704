"""Incident admin API — create, read and update status-page incidents.

Mutating routes run: authenticate → capability check → store operation →
audit entry → response. Any failure stops the chain, so rejected or failed
attempts never reach the store or the audit log.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.auth import get_current_admin, require_incident_writer
from backend.audit import AuditLog, audited, get_audit_log
from backend.database import get_ops_session
from backend.errors import ValidationError
from backend.incident_store import UNSET, IncidentStore
from backend.models.incident import (
    IncidentCreate,
    IncidentDetailResponse,
    IncidentListResponse,
    IncidentPatch,
    IncidentResponse,
    IncidentStatus,
    IncidentUpdateCreate,
    IncidentUpdateResponse,
)
from backend.permissions import AdminUser

router = APIRouter(prefix="/admin/incidents", tags=["incidents"])

MAX_PAGE_SIZE = 200


def get_incident_store(session: AsyncSession = Depends(get_ops_session)) -> IncidentStore:
    return IncidentStore(session)


@router.get("", response_model=IncidentListResponse)
async def list_incidents(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    admin: AdminUser = Depends(get_current_admin),
    store: IncidentStore = Depends(get_incident_store),
):
    """List incidents newest first, with the total matching the same filter.

    An empty ``status`` means no filter.
    """
    if status:
        try:
            status = IncidentStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")

    incidents, total = await store.list_incidents(status=status, limit=limit, offset=offset)
    return IncidentListResponse(
        incidents=[IncidentResponse.model_validate(i) for i in incidents],
        total=total,
    )


@router.post("", response_model=IncidentResponse, status_code=201)
@audited(
    "create_incident",
    "incident",
    target_id=lambda result, kwargs: result.id,
    details=lambda result, kwargs: {
        "title": result.title,
        "severity": result.severity,
        "status": result.status,
    },
)
async def create_incident(
    data: IncidentCreate,
    request: Request,
    admin: AdminUser = Depends(require_incident_writer("create incidents")),
    audit: AuditLog = Depends(get_audit_log),
    store: IncidentStore = Depends(get_incident_store),
):
    incident = await store.create(
        created_by_id=admin.id,
        created_by_email=admin.email,
        title=data.title,
        severity=data.severity,
        status=data.status,
        customer_message=data.customer_message,
        internal_notes=data.internal_notes,
        components=data.components,
    )
    return IncidentResponse.model_validate(incident)


@router.get("/{incident_id}", response_model=IncidentDetailResponse)
async def get_incident(
    incident_id: str,
    admin: AdminUser = Depends(get_current_admin),
    store: IncidentStore = Depends(get_incident_store),
):
    """Incident with its component tags and timeline (newest update first)."""
    incident = await store.get(incident_id)
    return IncidentDetailResponse.model_validate(incident)


@router.put("/{incident_id}", response_model=IncidentResponse)
@audited(
    "update_incident",
    "incident",
    target_id=lambda result, kwargs: kwargs["incident_id"],
    details=lambda result, kwargs: kwargs["data"].model_dump(mode="json", by_alias=True, exclude_unset=True),
)
async def update_incident(
    incident_id: str,
    data: IncidentPatch,
    request: Request,
    admin: AdminUser = Depends(require_incident_writer("update incidents")),
    audit: AuditLog = Depends(get_audit_log),
    store: IncidentStore = Depends(get_incident_store),
):
    """Partial update: fields absent from the body are left as they are."""
    supplied = data.model_fields_set
    incident = await store.update(
        incident_id,
        status=data.status,
        customer_message=data.customer_message if "customer_message" in supplied else UNSET,
        internal_notes=data.internal_notes if "internal_notes" in supplied else UNSET,
        resolved_at=data.resolved_at,
    )
    return IncidentResponse.model_validate(incident)


@router.post("/{incident_id}/updates", response_model=IncidentUpdateResponse, status_code=201)
@audited(
    "add_incident_update",
    "incident",
    target_id=lambda result, kwargs: kwargs["incident_id"],
    details=lambda result, kwargs: {"message": result.message, "status": result.status},
)
async def add_incident_update(
    incident_id: str,
    data: IncidentUpdateCreate,
    request: Request,
    admin: AdminUser = Depends(require_incident_writer("add updates")),
    audit: AuditLog = Depends(get_audit_log),
    store: IncidentStore = Depends(get_incident_store),
):
    """Post a timeline update. The incident's own status is changed separately via PUT."""
    update = await store.add_update(
        incident_id,
        created_by_id=admin.id,
        created_by_email=admin.email,
        message=data.message,
        status=data.status,
    )
    return IncidentUpdateResponse.model_validate(update)
