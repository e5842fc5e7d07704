"""Filtered, paginated audit log viewer over ``admin_audit_log``."""

from __future__ import annotations

import math
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.auth import get_current_admin
from backend.database import get_ops_session
from backend.models.audit import (
    AdminAuditLog,
    AuditAdminFilter,
    AuditFilters,
    AuditLogPage,
    AuditLogResponse,
    AuditPagination,
)
from backend.permissions import AdminUser
from backend.utils.time import as_utc

router = APIRouter(prefix="/admin/audit-logs", tags=["audit"])

PAGE_SIZE = 50


@router.get("", response_model=AuditLogPage)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    action: str | None = Query(None),
    admin_id: str | None = Query(None, alias="admin"),
    target_type: str | None = Query(None),
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    admin: AdminUser = Depends(get_current_admin),
    session: AsyncSession = Depends(get_ops_session),
):
    """Newest entries first; the total and the page share the same filters."""
    conditions = []
    if action:
        conditions.append(AdminAuditLog.action == action)
    if admin_id:
        conditions.append(AdminAuditLog.admin_id == admin_id)
    if target_type:
        conditions.append(AdminAuditLog.target_type == target_type)
    if start:
        conditions.append(AdminAuditLog.created_at >= as_utc(start))
    if end:
        conditions.append(AdminAuditLog.created_at <= as_utc(end))

    total = await session.scalar(select(func.count()).select_from(AdminAuditLog).where(*conditions)) or 0
    result = await session.execute(
        select(AdminAuditLog)
        .where(*conditions)
        .order_by(desc(AdminAuditLog.created_at))
        .offset((page - 1) * PAGE_SIZE)
        .limit(PAGE_SIZE)
    )
    logs = result.scalars().all()

    # Filter options for the viewer's dropdowns, across the whole log.
    admins = await session.execute(
        select(AdminAuditLog.admin_id, AdminAuditLog.admin_email).distinct().order_by(AdminAuditLog.admin_email)
    )
    actions = await session.scalars(select(AdminAuditLog.action).distinct().order_by(AdminAuditLog.action))
    target_types = await session.scalars(
        select(AdminAuditLog.target_type)
        .where(AdminAuditLog.target_type.is_not(None))
        .distinct()
        .order_by(AdminAuditLog.target_type)
    )

    return AuditLogPage(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        pagination=AuditPagination(
            page=page,
            limit=PAGE_SIZE,
            total=total,
            total_pages=math.ceil(total / PAGE_SIZE),
        ),
        filters=AuditFilters(
            admins=[AuditAdminFilter(id=row.admin_id, email=row.admin_email) for row in admins],
            actions=list(actions),
            target_types=list(target_types),
        ),
    )
