"""Public status derivation: overall status, per-component status and the banner.

Everything here is a pure function of a snapshot (active incidents plus the
component catalogue), so the public status is recomputed per request and never
stored or invalidated. Severity ordering comes only from ``severity_rank``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from backend.models.incident import OPERATIONAL, IncidentStatus, severity_rank
from backend.utils.time import as_utc

STATUS_PAGE_URL = "/status"


@dataclass(frozen=True)
class ActiveIncident:
    """Public view of an incident; internal notes are never carried."""

    id: str
    title: str
    severity: str
    status: str
    customer_message: str
    components: tuple[str, ...]
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, incident) -> "ActiveIncident":
        return cls(
            id=incident.id,
            title=incident.title,
            severity=incident.severity,
            status=incident.status,
            customer_message=incident.customer_message,
            components=tuple(incident.components),
            created_at=as_utc(incident.created_at),
            updated_at=as_utc(incident.updated_at),
        )

    @property
    def is_active(self) -> bool:
        return self.status != IncidentStatus.RESOLVED.value


@dataclass(frozen=True)
class ComponentInfo:
    name: str
    display_name: str
    display_order: int = 0


@dataclass(frozen=True)
class ComponentStatus:
    name: str
    display_name: str
    status: str


@dataclass(frozen=True)
class Banner:
    active: bool
    severity: str | None = None
    message: str | None = None
    url: str | None = None


@dataclass
class StatusReport:
    status: str
    components: list[ComponentStatus] = field(default_factory=list)
    active_incidents: list[ActiveIncident] = field(default_factory=list)


def _active(incidents: Iterable[ActiveIncident]) -> list[ActiveIncident]:
    return [incident for incident in incidents if incident.is_active]


def _worse(current: str, candidate: str) -> str:
    return candidate if severity_rank(candidate) > severity_rank(current) else current


def overall_status(incidents: Iterable[ActiveIncident]) -> str:
    """Worst severity across active incidents, or ``operational``."""
    status = OPERATIONAL
    for incident in _active(incidents):
        status = _worse(status, incident.severity)
    return status


def component_statuses(
    components: Sequence[ComponentInfo],
    incidents: Iterable[ActiveIncident],
) -> list[ComponentStatus]:
    """Status of every catalogue component: worst severity among active incidents tagging it."""
    by_name = {component.name: OPERATIONAL for component in components}
    for incident in _active(incidents):
        for name in incident.components:
            # Tags outside the catalogue are not reported.
            if name in by_name:
                by_name[name] = _worse(by_name[name], incident.severity)

    return [
        ComponentStatus(name=component.name, display_name=component.display_name, status=by_name[component.name])
        for component in components
    ]


def select_banner(incidents: Iterable[ActiveIncident]) -> Banner:
    """Most severe active incident, most recent first on ties."""
    active = _active(incidents)
    if not active:
        return Banner(active=False)

    top = max(active, key=lambda incident: (severity_rank(incident.severity), incident.created_at))
    return Banner(
        active=True,
        severity=top.severity,
        message=top.customer_message,
        url=STATUS_PAGE_URL,
    )


def build_status_report(
    components: Sequence[ComponentInfo],
    incidents: Iterable[ActiveIncident],
) -> StatusReport:
    active = _active(incidents)
    return StatusReport(
        status=overall_status(active),
        components=component_statuses(components, active),
        active_incidents=sorted(active, key=lambda incident: incident.created_at, reverse=True),
    )
