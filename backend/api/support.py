"""Support API — tenant and user lookups and account actions on the BarkBase product database.

Lookups need any authenticated admin; searches are audited so there is a
record of who looked for what. Account actions (suspend, unsuspend, trial
extension, password reset) are role-gated and always audited.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import desc, func, or_, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.api.auth import (
    get_current_admin,
    require_tenant_suspender,
    require_tenant_user_manager,
    require_trial_extender,
)
from backend.audit import AuditLog, audited, get_audit_log
from backend.config import settings
from backend.database import get_barkbase_sessionmaker
from backend.errors import NotFoundError, ValidationError
from backend.models.tenant import (
    ActivityEntry,
    ActivityLog,
    Booking,
    ExtendTrialRequest,
    ExtendTrialResponse,
    PasswordResetResponse,
    Pet,
    SearchResponse,
    Tenant,
    TenantDetailResponse,
    TenantSearchResult,
    TenantStats,
    TenantStatusChangeResponse,
    TenantSummary,
)
from backend.models.user import TenantUserResponse, TenantUsersResponse, User, UserSearchResult
from backend.permissions import AdminUser
from backend.utils.time import as_utc, start_of_month, utc_now

router = APIRouter(prefix="/admin", tags=["support"])
logger = logging.getLogger("barkbase_ops.api.support")

MIN_QUERY_LENGTH = 2
ACTIVE_USER_WINDOW = timedelta(days=30)
RECENT_ACTIVITY_LIMIT = 20
DEFAULT_TRIAL_EXTENSION_DAYS = 7

TENANT_ACTIVE = "active"
TENANT_SUSPENDED = "suspended"


@router.get("/search", response_model=SearchResponse)
@audited("search", "search", details=lambda result, kwargs: {"query": kwargs["q"]})
async def search(
    request: Request,
    q: Optional[str] = Query(None),
    admin: AdminUser = Depends(get_current_admin),
    audit: AuditLog = Depends(get_audit_log),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_barkbase_sessionmaker),
):
    """Case-insensitive substring search over tenants and users."""
    if not q or len(q) < MIN_QUERY_LENGTH:
        raise ValidationError(f"Query must be at least {MIN_QUERY_LENGTH} characters")

    pattern = f"%{q}%"
    limit = settings.search_result_limit
    async with sessions() as session:
        tenant_rows = await session.execute(
            select(Tenant, func.count(User.id).label("user_count"))
            .outerjoin(User, User.tenant_id == Tenant.id)
            .where(or_(Tenant.name.ilike(pattern), Tenant.subdomain.ilike(pattern)))
            .group_by(Tenant.id)
            .order_by(Tenant.name)
            .limit(limit)
        )
        user_rows = await session.execute(
            select(User, Tenant.name.label("tenant_name"))
            .outerjoin(Tenant, User.tenant_id == Tenant.id)
            .where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
            .order_by(User.name)
            .limit(limit)
        )

        results: list[TenantSearchResult | UserSearchResult] = [
            TenantSearchResult(
                id=tenant.id,
                name=tenant.name,
                subdomain=tenant.subdomain,
                status=tenant.status,
                plan=tenant.plan,
                user_count=int(user_count or 0),
                created_at=tenant.created_at,
            )
            for tenant, user_count in tenant_rows.all()
        ]
        results.extend(
            UserSearchResult(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                tenant_id=user.tenant_id,
                tenant_name=tenant_name,
                last_login=user.last_login_at,
            )
            for user, tenant_name in user_rows.all()
        )

    return SearchResponse(results=results)


async def _count(sessions: async_sessionmaker[AsyncSession], statement) -> int:
    # Own session per count so the counts can run concurrently.
    async with sessions() as session:
        return int(await session.scalar(statement) or 0)


async def _recent_activity(sessions: async_sessionmaker[AsyncSession], tenant_id: str) -> list[ActivityEntry]:
    """Latest product activity for the tenant, or ``[]`` where the database has no ActivityLog."""
    try:
        async with sessions() as session:
            rows = await session.execute(
                select(ActivityLog, User.name.label("user_name"))
                .outerjoin(User, User.id == ActivityLog.user_id)
                .where(ActivityLog.tenant_id == tenant_id)
                .order_by(desc(ActivityLog.created_at))
                .limit(RECENT_ACTIVITY_LIMIT)
            )
            return [
                ActivityEntry(
                    id=entry.id,
                    type=entry.action,
                    description=entry.description,
                    timestamp=entry.created_at,
                    user_name=user_name,
                )
                for entry, user_name in rows.all()
            ]
    except DBAPIError as exc:
        logger.info("Activity log not available for tenant %s: %s", tenant_id, exc.orig)
        return []


@router.get("/tenants/{tenant_id}", response_model=TenantDetailResponse)
async def get_tenant(
    tenant_id: str,
    admin: AdminUser = Depends(get_current_admin),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_barkbase_sessionmaker),
):
    """Tenant detail with user/pet/booking counts, usage stats, recent users and activity."""
    async with sessions() as session:
        tenant = await session.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")

        user_count, pet_count, booking_count, bookings_this_month, recent_activity = await asyncio.gather(
            _count(sessions, select(func.count()).select_from(User).where(User.tenant_id == tenant_id)),
            _count(sessions, select(func.count()).select_from(Pet).where(Pet.tenant_id == tenant_id)),
            _count(sessions, select(func.count()).select_from(Booking).where(Booking.tenant_id == tenant_id)),
            _count(
                sessions,
                select(func.count())
                .select_from(Booking)
                .where(Booking.tenant_id == tenant_id, Booking.created_at >= start_of_month()),
            ),
            _recent_activity(sessions, tenant_id),
        )

        revenue = await session.scalar(
            select(func.coalesce(func.sum(Booking.total_amount), 0)).where(
                Booking.tenant_id == tenant_id, Booking.status == "completed"
            )
        )
        active_users = await session.scalar(
            select(func.count())
            .select_from(User)
            .where(User.tenant_id == tenant_id, User.last_login_at >= utc_now() - ACTIVE_USER_WINDOW)
        )
        users = await session.execute(
            select(User)
            .where(User.tenant_id == tenant_id)
            .order_by(desc(User.created_at))
            .limit(settings.tenant_user_limit)
        )

        return TenantDetailResponse(
            id=tenant.id,
            name=tenant.name,
            subdomain=tenant.subdomain,
            status=tenant.status,
            created_at=tenant.created_at,
            plan=tenant.plan,
            settings=tenant.settings,
            trial_ends_at=tenant.trial_ends_at,
            user_count=user_count,
            pet_count=pet_count,
            booking_count=booking_count,
            stats=TenantStats(
                total_pets=pet_count,
                total_bookings=booking_count,
                total_revenue=float(revenue or 0),
                bookings_this_month=bookings_this_month,
                active_users=int(active_users or 0),
            ),
            users=[TenantUserResponse.model_validate(u) for u in users.scalars().all()],
            recent_activity=recent_activity,
        )


@router.get("/tenants/{tenant_id}/users", response_model=TenantUsersResponse)
async def get_tenant_users(
    tenant_id: str,
    admin: AdminUser = Depends(get_current_admin),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_barkbase_sessionmaker),
):
    async with sessions() as session:
        result = await session.execute(
            select(User).where(User.tenant_id == tenant_id).order_by(desc(User.created_at))
        )
        users = result.scalars().all()

    logger.debug("Loaded %d users for tenant %s", len(users), tenant_id)
    return TenantUsersResponse(users=[TenantUserResponse.model_validate(u) for u in users])


# ── Tenant actions ────────────────────────────────────────────

async def _set_tenant_status(
    sessions: async_sessionmaker[AsyncSession], tenant_id: str, status: str
) -> TenantStatusChangeResponse:
    async with sessions() as session:
        tenant = await session.get(Tenant, tenant_id, with_for_update=True)
        if tenant is None:
            raise NotFoundError("Tenant not found")

        previous_status = tenant.status
        tenant.status = status
        tenant.updated_at = utc_now()
        await session.commit()

    logger.info("Tenant %s status %s -> %s", tenant_id, previous_status, status)
    return TenantStatusChangeResponse(previous_status=previous_status, tenant=TenantSummary.model_validate(tenant))


@router.post("/tenants/{tenant_id}/suspend", response_model=TenantStatusChangeResponse)
@audited(
    "suspend_tenant",
    "tenant",
    target_id=lambda result, kwargs: kwargs["tenant_id"],
    details=lambda result, kwargs: {"previousStatus": result.previous_status},
)
async def suspend_tenant(
    tenant_id: str,
    request: Request,
    admin: AdminUser = Depends(require_tenant_suspender("suspend tenants")),
    audit: AuditLog = Depends(get_audit_log),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_barkbase_sessionmaker),
):
    return await _set_tenant_status(sessions, tenant_id, TENANT_SUSPENDED)


@router.post("/tenants/{tenant_id}/unsuspend", response_model=TenantStatusChangeResponse)
@audited(
    "unsuspend_tenant",
    "tenant",
    target_id=lambda result, kwargs: kwargs["tenant_id"],
    details=lambda result, kwargs: {"previousStatus": result.previous_status, "newStatus": TENANT_ACTIVE},
)
async def unsuspend_tenant(
    tenant_id: str,
    request: Request,
    admin: AdminUser = Depends(require_tenant_suspender("unsuspend tenants")),
    audit: AuditLog = Depends(get_audit_log),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_barkbase_sessionmaker),
):
    return await _set_tenant_status(sessions, tenant_id, TENANT_ACTIVE)


def _trial_days(data: Optional[ExtendTrialRequest]) -> int:
    return (data.days if data else None) or DEFAULT_TRIAL_EXTENSION_DAYS


@router.post("/tenants/{tenant_id}/extend-trial", response_model=ExtendTrialResponse)
@audited(
    "extend_trial",
    "tenant",
    target_id=lambda result, kwargs: kwargs["tenant_id"],
    details=lambda result, kwargs: {"days": _trial_days(kwargs["data"])},
)
async def extend_trial(
    tenant_id: str,
    request: Request,
    data: Optional[ExtendTrialRequest] = None,
    admin: AdminUser = Depends(require_trial_extender),
    audit: AuditLog = Depends(get_audit_log),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_barkbase_sessionmaker),
):
    """Push the trial end out by ``days`` (default 7), counting from now if no trial end is set."""
    days = _trial_days(data)
    async with sessions() as session:
        tenant = await session.get(Tenant, tenant_id, with_for_update=True)
        if tenant is None:
            raise NotFoundError("Tenant not found")

        tenant.trial_ends_at = (as_utc(tenant.trial_ends_at) or utc_now()) + timedelta(days=days)
        tenant.updated_at = utc_now()
        await session.commit()

    logger.info("Extended trial for tenant %s by %d days to %s", tenant_id, days, tenant.trial_ends_at)
    return ExtendTrialResponse(new_end_date=tenant.trial_ends_at)


@router.post("/tenants/{tenant_id}/users/{user_id}/reset-password", response_model=PasswordResetResponse)
@audited(
    "reset_password",
    "user",
    target_id=lambda result, kwargs: kwargs["user_id"],
    details=lambda result, kwargs: {"email": result.email, "tenantId": kwargs["tenant_id"]},
)
async def reset_user_password(
    tenant_id: str,
    user_id: str,
    request: Request,
    admin: AdminUser = Depends(require_tenant_user_manager),
    audit: AuditLog = Depends(get_audit_log),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_barkbase_sessionmaker),
):
    """Record a password reset for a user of this tenant.

    The reset itself is carried out in the Cognito console; this route checks
    that the user belongs to the tenant and leaves the audit trail.
    """
    async with sessions() as session:
        user = await session.scalar(select(User).where(User.id == user_id, User.tenant_id == tenant_id))
    if user is None:
        raise NotFoundError("User not found in this tenant")

    logger.info("Password reset requested for %s (cognito_sub=%s) by %s", user.email, user.cognito_sub, admin.email)
    return PasswordResetResponse(message="Password reset requested", email=user.email)
