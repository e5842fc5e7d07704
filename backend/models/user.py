"""BarkBase product users, looked up by support staff."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.database import BarkbaseBase
from backend.models.common import CamelModel, UtcDatetime


class User(BarkbaseBase):
    __tablename__ = "User"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), index=True)
    email: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(30), default="staff")
    status: Mapped[str] = mapped_column(String(20), default="active")
    cognito_sub: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


# ── Pydantic Schemas ─────────────────────────────────────────

class TenantUserResponse(CamelModel):
    id: str
    email: str
    name: str | None = None
    role: str
    status: str
    created_at: UtcDatetime | None = None
    last_login_at: UtcDatetime | None = None


class TenantUsersResponse(CamelModel):
    users: list[TenantUserResponse]


class UserSearchResult(CamelModel):
    type: Literal["user"] = "user"
    id: str
    name: str | None = None
    email: str
    role: str
    tenant_id: str
    tenant_name: str | None = None
    last_login: UtcDatetime | None = None
