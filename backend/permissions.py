"""Admin roles and the capabilities they grant."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class AdminRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ENGINEER = "engineer"
    SUPPORT_LEAD = "support_lead"
    SUPPORT = "support"


# Roles allowed into the ops admin API at all
ADMIN_ROLES = frozenset(role.value for role in AdminRole)

# Roles that can create/modify incidents
INCIDENT_WRITE_ROLES = frozenset(
    {AdminRole.SUPER_ADMIN.value, AdminRole.ENGINEER.value, AdminRole.SUPPORT_LEAD.value}
)

# Roles that can suspend or reactivate a customer's account
TENANT_SUSPEND_ROLES = frozenset({AdminRole.SUPER_ADMIN.value, AdminRole.SUPPORT_LEAD.value})

# Customer-facing roles: trial extensions and user password resets
TENANT_SUPPORT_ROLES = frozenset(
    {AdminRole.SUPER_ADMIN.value, AdminRole.SUPPORT_LEAD.value, AdminRole.SUPPORT.value}
)


def is_admin_role(role: str | None) -> bool:
    return isinstance(role, str) and role in ADMIN_ROLES


def can_write_incidents(role: str | None) -> bool:
    """True for roles that may create, update or post updates to incidents."""
    return isinstance(role, str) and role in INCIDENT_WRITE_ROLES


def can_suspend_tenants(role: str | None) -> bool:
    return isinstance(role, str) and role in TENANT_SUSPEND_ROLES


def can_extend_trials(role: str | None) -> bool:
    return isinstance(role, str) and role in TENANT_SUPPORT_ROLES


def can_manage_tenant_users(role: str | None) -> bool:
    """True for roles that may act on a tenant's users (password resets)."""
    return isinstance(role, str) and role in TENANT_SUPPORT_ROLES


@dataclass(frozen=True)
class AdminUser:
    """Authenticated ops staff member, built from verified token claims."""

    id: str
    email: str
    role: str
    name: str | None = None

    @property
    def can_write_incidents(self) -> bool:
        return can_write_incidents(self.role)

    @property
    def capabilities(self) -> dict[str, bool]:
        """Capability flags in the shape the console reads from ``/admin/me``."""
        return {
            "writeIncidents": can_write_incidents(self.role),
            "suspendTenants": can_suspend_tenants(self.role),
            "extendTrials": can_extend_trials(self.role),
            "manageTenantUsers": can_manage_tenant_users(self.role),
        }
