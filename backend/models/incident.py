"""Status-page incident models: incidents, their component tags and timeline updates."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.database import Base
from backend.models import component  # noqa: F401  (system_components FK target)
from backend.models.common import CamelModel, UtcDatetime
from backend.utils.time import utc_now

OPERATIONAL = "operational"


class Severity(str, enum.Enum):
    DEGRADED = "degraded"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"

    @property
    def rank(self) -> int:
        return severity_rank(self.value)


class IncidentStatus(str, enum.Enum):
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"


# Total order used for every status comparison; unknown values rank as operational.
SEVERITY_RANK: dict[str, int] = {
    OPERATIONAL: 0,
    Severity.DEGRADED.value: 1,
    Severity.PARTIAL_OUTAGE.value: 2,
    Severity.MAJOR_OUTAGE.value: 3,
}


def severity_rank(value: str | None) -> int:
    if isinstance(value, enum.Enum):
        value = value.value
    return SEVERITY_RANK.get(value or OPERATIONAL, 0)


def _new_id() -> str:
    return str(uuid.uuid4())


class Incident(Base):
    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255))
    severity: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20), index=True)
    customer_message: Mapped[str] = mapped_column(Text)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by_id: Mapped[str] = mapped_column(String(255))
    created_by_email: Mapped[str] = mapped_column(String(255))

    component_links: Mapped[list["IncidentComponent"]] = relationship(
        back_populates="incident",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    updates: Mapped[list["IncidentUpdate"]] = relationship(
        back_populates="incident",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: IncidentUpdate.created_at.desc(),
    )

    @property
    def components(self) -> list[str]:
        return [link.component_name for link in self.component_links]

    @property
    def is_active(self) -> bool:
        return self.status != IncidentStatus.RESOLVED.value


class IncidentComponent(Base):
    __tablename__ = "incident_components"

    incident_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("incidents.id", ondelete="CASCADE"), primary_key=True
    )
    component_name: Mapped[str] = mapped_column(
        String(100), ForeignKey("system_components.name"), primary_key=True
    )

    incident: Mapped[Incident] = relationship(back_populates="component_links")


class IncidentUpdate(Base):
    __tablename__ = "incident_updates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    incident_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("incidents.id", ondelete="CASCADE"), index=True
    )
    message: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    created_by_id: Mapped[str] = mapped_column(String(255))
    created_by_email: Mapped[str] = mapped_column(String(255))

    incident: Mapped[Incident] = relationship(back_populates="updates")


# ── Pydantic Schemas ─────────────────────────────────────────

class IncidentCreate(CamelModel):
    # Required fields are checked by the store so missing and empty values fail alike.
    title: str | None = None
    severity: Severity | None = None
    status: IncidentStatus | None = None
    customer_message: str | None = None
    internal_notes: str | None = None
    components: list[str] = []


class IncidentPatch(CamelModel):
    status: IncidentStatus | None = None
    customer_message: str | None = None
    internal_notes: str | None = None
    resolved_at: datetime | None = None


class IncidentUpdateCreate(CamelModel):
    message: str | None = None
    status: IncidentStatus | None = None


class IncidentUpdateResponse(CamelModel):
    id: str
    incident_id: str
    message: str
    status: str
    created_at: UtcDatetime
    created_by_id: str
    created_by_email: str


class IncidentResponse(CamelModel):
    id: str
    title: str
    severity: str
    status: str
    customer_message: str
    internal_notes: str | None = None
    components: list[str] = []
    created_at: UtcDatetime
    updated_at: UtcDatetime
    resolved_at: UtcDatetime | None = None
    created_by_id: str
    created_by_email: str


class IncidentDetailResponse(IncidentResponse):
    updates: list[IncidentUpdateResponse] = []


class IncidentListResponse(CamelModel):
    incidents: list[IncidentResponse]
    total: int
