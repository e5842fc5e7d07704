"""Public status API — no authentication.

Serves the status page and the in-app banner from the currently active
incidents. Responses are cacheable for a short period.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import settings
from backend.database import get_ops_session
from backend.incident_store import IncidentStore
from backend.models.common import CamelModel
from backend.status.aggregator import ActiveIncident, ComponentInfo, build_status_report, select_banner

router = APIRouter(prefix="/status", tags=["status"])


class ComponentStatusResponse(CamelModel):
    name: str
    display_name: str
    status: str


class PublicIncidentResponse(CamelModel):
    id: str
    title: str
    severity: str
    status: str
    customer_message: str
    components: list[str]
    created_at: datetime
    updated_at: datetime | None = None


class StatusResponse(CamelModel):
    status: str
    components: list[ComponentStatusResponse]
    active_incidents: list[PublicIncidentResponse]


class BannerResponse(CamelModel):
    active: bool
    severity: str | None = None
    message: str | None = None
    url: str | None = None


def _cacheable(response: Response) -> None:
    response.headers["Cache-Control"] = f"public, max-age={settings.status_cache_max_age}"


async def _snapshot(store: IncidentStore) -> list[ActiveIncident]:
    return [ActiveIncident.from_model(incident) for incident in await store.list_active()]


@router.get("", response_model=StatusResponse)
async def get_status(
    response: Response,
    session: AsyncSession = Depends(get_ops_session),
):
    """Overall status, per-component status and the active incidents."""
    store = IncidentStore(session)
    catalogue = [
        ComponentInfo(name=c.name, display_name=c.display_name, display_order=c.display_order)
        for c in await store.list_components()
    ]
    report = build_status_report(catalogue, await _snapshot(store))

    _cacheable(response)
    return StatusResponse(
        status=report.status,
        components=[ComponentStatusResponse.model_validate(c) for c in report.components],
        active_incidents=[
            PublicIncidentResponse(
                id=i.id,
                title=i.title,
                severity=i.severity,
                status=i.status,
                customer_message=i.customer_message,
                components=list(i.components),
                created_at=i.created_at,
                updated_at=i.updated_at,
            )
            for i in report.active_incidents
        ],
    )


@router.get("/banner", response_model=BannerResponse, response_model_exclude_none=True)
async def get_banner(
    response: Response,
    session: AsyncSession = Depends(get_ops_session),
):
    """Single most urgent active incident for the product's banner, or ``{"active": false}``."""
    banner = select_banner(await _snapshot(IncidentStore(session)))

    _cacheable(response)
    return BannerResponse.model_validate(banner)
