"""Best-effort audit trail for admin actions.

``AuditLog.record`` never raises: a failed write is logged and counted, and the
admin action that triggered it still succeeds. Route handlers opt in with the
``audited`` decorator, which records an entry only after the handler returns.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.database import ops_session
from backend.models.audit import AdminAuditLog
from backend.observability.metrics import metrics
from backend.permissions import AdminUser

logger = logging.getLogger("barkbase_ops.audit")

TargetFn = Callable[[Any, dict[str, Any]], Optional[str]]
DetailsFn = Callable[[Any, dict[str, Any]], Optional[dict[str, Any]]]


class AuditLog:
    """Append-only sink writing to ``admin_audit_log`` in its own session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        admin: AdminUser,
        action: str,
        target_type: Optional[str],
        target_id: Optional[str],
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        try:
            async with self._session_factory() as session:
                session.add(
                    AdminAuditLog(
                        admin_id=admin.id,
                        admin_email=admin.email,
                        action=action,
                        target_type=target_type,
                        target_id=str(target_id) if target_id is not None else None,
                        details=details,
                        ip_address=ip_address,
                    )
                )
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to write audit entry action=%s target=%s/%s admin=%s",
                action,
                target_type,
                target_id,
                admin.email,
            )
            metrics.observe_audit(written=False)
            return False

        metrics.observe_audit(written=True)
        return True


def get_audit_log() -> AuditLog:
    """Dependency returning the audit sink bound to the ops database."""
    return AuditLog(ops_session)


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45]
    return request.client.host if request.client else None


def audited(
    action: str,
    target_type: Optional[str],
    *,
    target_id: Optional[TargetFn] = None,
    details: Optional[DetailsFn] = None,
):
    """Record an audit entry after the decorated route handler succeeds.

    The handler must accept ``admin`` and ``audit`` keyword arguments (FastAPI
    dependencies) and may accept ``request`` for the client IP. ``target_id``
    and ``details`` are called with ``(result, kwargs)``.
    """

    def decorator(func: Callable[..., Awaitable[Any]]):
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = await func(*args, **kwargs)

            admin: AdminUser = kwargs["admin"]
            audit: AuditLog = kwargs["audit"]
            try:
                entry_target = target_id(result, kwargs) if target_id else None
                entry_details = details(result, kwargs) if details else None
            except Exception:
                logger.exception("Failed to build audit entry for action=%s", action)
                metrics.observe_audit(written=False)
                return result

            await audit.record(
                admin,
                action,
                target_type,
                entry_target,
                entry_details,
                client_ip(kwargs.get("request")),
            )
            return result

        return wrapper

    return decorator
