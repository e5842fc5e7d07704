"""Append-only audit trail of admin actions."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.database import Base
from backend.models.common import CamelModel, UtcDatetime
from backend.utils.time import utc_now


class AdminAuditLog(Base):
    __tablename__ = "admin_audit_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    admin_id: Mapped[str] = mapped_column(String(255), index=True)
    admin_email: Mapped[str] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(100), index=True)
    target_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    target_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)


# ── Pydantic Schemas ─────────────────────────────────────────

class AuditLogResponse(CamelModel):
    id: str
    admin_id: str
    admin_email: str
    action: str
    target_type: str | None = None
    target_id: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    created_at: UtcDatetime


class AuditPagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AuditAdminFilter(CamelModel):
    id: str
    email: str


class AuditFilters(CamelModel):
    admins: list[AuditAdminFilter]
    actions: list[str]
    target_types: list[str]


class AuditLogPage(CamelModel):
    logs: list[AuditLogResponse]
    pagination: AuditPagination
    filters: AuditFilters
