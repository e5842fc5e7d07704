"""Incident persistence: incidents, component tags and the update timeline.

Each public method is one unit of work on the ops database and commits its own
transaction. Incident creation inserts the incident and all of its component
tags in a single transaction, so a failed tag insert leaves no partial incident.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.errors import NotFoundError, ValidationError
from backend.models.component import SystemComponent
from backend.models.incident import (
    Incident,
    IncidentComponent,
    IncidentStatus,
    IncidentUpdate,
    Severity,
)
from backend.sql_builder import UpdateBuilder
from backend.utils.time import utc_now

logger = logging.getLogger("barkbase_ops.incidents")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def _value(raw: Any) -> Any:
    return raw.value if isinstance(raw, (Severity, IncidentStatus)) else raw


class IncidentStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        *,
        created_by_id: str,
        created_by_email: str,
        title: Optional[str],
        severity: Optional[str],
        status: Optional[str],
        customer_message: Optional[str],
        internal_notes: Optional[str] = None,
        components: Iterable[str] = (),
    ) -> Incident:
        if not title or not severity or not status or not customer_message:
            raise ValidationError("Missing required fields")

        incident = Incident(
            title=title,
            severity=_value(severity),
            status=_value(status),
            customer_message=customer_message,
            internal_notes=internal_notes or None,
            created_by_id=created_by_id,
            created_by_email=created_by_email,
            # Duplicates are passed through; the composite key rejects them.
            component_links=[IncidentComponent(component_name=name) for name in components],
        )
        incident.updated_at = incident.created_at = utc_now()
        self.session.add(incident)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Created incident %s (%s, %s)", incident.id, incident.severity, incident.status)
        return await self.get(incident.id, with_updates=False)

    async def get(self, incident_id: str, *, with_updates: bool = True) -> Incident:
        options = [selectinload(Incident.component_links)]
        if with_updates:
            options.append(selectinload(Incident.updates))

        result = await self.session.execute(
            select(Incident)
            .where(Incident.id == incident_id)
            .options(*options)
            .execution_options(populate_existing=True)
        )
        incident = result.scalar_one_or_none()
        if incident is None:
            raise NotFoundError("Incident not found")
        return incident

    async def list_incidents(
        self,
        *,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[Incident], int]:
        """Return one page of incidents (newest first) and the filtered total."""
        # Page and count share the same predicates.
        filters = []
        if status:
            filters.append(Incident.status == _value(status))

        page = await self.session.execute(
            select(Incident)
            .where(*filters)
            .options(selectinload(Incident.component_links))
            .order_by(desc(Incident.created_at))
            .limit(limit)
            .offset(offset)
        )
        total = await self.session.scalar(
            select(func.count()).select_from(Incident).where(*filters)
        )
        return page.scalars().all(), int(total or 0)

    async def list_active(self) -> Sequence[Incident]:
        result = await self.session.execute(
            select(Incident)
            .where(Incident.status != IncidentStatus.RESOLVED.value)
            .options(selectinload(Incident.component_links))
            .order_by(desc(Incident.created_at))
        )
        return result.scalars().all()

    async def list_components(self) -> Sequence[SystemComponent]:
        result = await self.session.execute(
            select(SystemComponent).order_by(SystemComponent.display_order, SystemComponent.name)
        )
        return result.scalars().all()

    async def update(
        self,
        incident_id: str,
        *,
        status: Optional[str] = None,
        customer_message: Any = UNSET,
        internal_notes: Any = UNSET,
        resolved_at: Optional[datetime] = None,
    ) -> Incident:
        """Apply a partial update; only supplied fields change and ``updated_at`` always does."""
        table = Incident.__table__
        builder = UpdateBuilder(table, table.c.id)

        if status:
            builder.set(table.c.status, _value(status))
        if customer_message is not UNSET:
            if customer_message is None:
                raise ValidationError("customerMessage cannot be null")
            builder.set(table.c.customer_message, customer_message)
        if internal_notes is not UNSET:
            builder.set(table.c.internal_notes, internal_notes)
        if resolved_at:
            builder.set(table.c.resolved_at, resolved_at)
        elif _value(status) == IncidentStatus.RESOLVED.value:
            builder.set_if_null(table.c.resolved_at, utc_now())
        builder.set(table.c.updated_at, utc_now())

        try:
            result = await self.session.execute(builder.build(incident_id))
            if result.rowcount == 0:
                raise NotFoundError("Incident not found")
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Updated incident %s", incident_id)
        return await self.get(incident_id, with_updates=False)

    async def add_update(
        self,
        incident_id: str,
        *,
        created_by_id: str,
        created_by_email: str,
        message: Optional[str],
        status: Optional[str],
    ) -> IncidentUpdate:
        """Append a timeline entry. The parent incident's own status is left untouched."""
        if not message or not status:
            raise ValidationError("Message and status are required")

        exists = await self.session.scalar(select(Incident.id).where(Incident.id == incident_id))
        if exists is None:
            raise NotFoundError("Incident not found")

        update = IncidentUpdate(
            incident_id=incident_id,
            message=message,
            status=_value(status),
            created_by_id=created_by_id,
            created_by_email=created_by_email,
        )
        self.session.add(update)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return update
