"""BarkBase product tables (tenants, pets, bookings, activity).

The ops service reads these for support lookups and writes only the account
fields its tenant actions own: ``status`` and ``trial_ends_at``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field
from sqlalchemy import JSON, DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.database import BarkbaseBase
from backend.models.common import CamelModel, UtcDatetime
from backend.models.user import TenantUserResponse, UserSearchResult


class Tenant(BarkbaseBase):
    __tablename__ = "Tenant"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255))
    subdomain: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    plan: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    settings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Pet(BarkbaseBase):
    __tablename__ = "Pet"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("Tenant.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))


class Booking(BarkbaseBase):
    __tablename__ = "Booking"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("Tenant.id"), index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    total_amount: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ActivityLog(BarkbaseBase):
    """Product-side activity feed. Older BarkBase databases do not have this table."""

    __tablename__ = "ActivityLog"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("Tenant.id"), index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ── Pydantic Schemas ─────────────────────────────────────────

class TenantSearchResult(CamelModel):
    type: Literal["tenant"] = "tenant"
    id: str
    name: str
    subdomain: str
    status: str
    plan: str | None = None
    user_count: int = 0
    created_at: UtcDatetime | None = None


class TenantStats(CamelModel):
    total_pets: int
    total_bookings: int
    total_revenue: float
    bookings_this_month: int
    active_users: int


class ActivityEntry(CamelModel):
    id: str
    type: str
    description: str | None = None
    timestamp: UtcDatetime | None = None
    user_name: str | None = None


class TenantDetailResponse(CamelModel):
    id: str
    name: str
    subdomain: str
    status: str
    created_at: UtcDatetime | None = None
    plan: str | None = None
    settings: dict[str, Any] | None = None
    trial_ends_at: UtcDatetime | None = None
    user_count: int
    pet_count: int
    booking_count: int
    stats: TenantStats
    users: list[TenantUserResponse]
    recent_activity: list[ActivityEntry] = []


class SearchResponse(CamelModel):
    results: list[TenantSearchResult | UserSearchResult]


class TenantSummary(CamelModel):
    id: str
    name: str
    subdomain: str
    status: str
    plan: str | None = None
    trial_ends_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class TenantStatusChangeResponse(CamelModel):
    success: bool = True
    previous_status: str
    tenant: TenantSummary


class ExtendTrialRequest(CamelModel):
    days: int | None = Field(default=None, ge=1, le=365)


class ExtendTrialResponse(CamelModel):
    success: bool = True
    new_end_date: UtcDatetime


class PasswordResetResponse(CamelModel):
    success: bool = True
    message: str
    email: str
