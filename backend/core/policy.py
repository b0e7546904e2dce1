"""
Authorization Policy — one capability gate for every operation.

Roles are stored on the user row as display strings ("Super Admin",
"Admin", "User"). Operations never compare role strings themselves; they
ask ``authorize(principal, capability)`` and the table below decides.
"""

from enum import Enum

import structlog

from core.errors import PermissionDenied

logger = structlog.get_logger()


class Role(str, Enum):
    SUPER_ADMIN = "Super Admin"
    ADMIN = "Admin"
    USER = "User"


class Capability(str, Enum):
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_OPEN_WAYBILLS = "view_open_waybills"
    SAVE_COUNTS = "save_counts"
    MANAGE_WAYBILLS = "manage_waybills"
    MANAGE_PRODUCTS = "manage_products"
    VIEW_REPORTS = "view_reports"
    MANAGE_USERS = "manage_users"
    DELETE_USERS = "delete_users"


_STAFF = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
_EVERYONE = frozenset(Role)

POLICY: dict[Capability, frozenset[Role]] = {
    Capability.VIEW_DASHBOARD: _EVERYONE,
    Capability.VIEW_OPEN_WAYBILLS: _EVERYONE,
    Capability.SAVE_COUNTS: _STAFF,
    Capability.MANAGE_WAYBILLS: _STAFF,
    Capability.MANAGE_PRODUCTS: _STAFF,
    Capability.VIEW_REPORTS: _STAFF,
    Capability.MANAGE_USERS: _STAFF,
    Capability.DELETE_USERS: frozenset({Role.SUPER_ADMIN}),
}


def role_of(principal: dict) -> Role | None:
    try:
        return Role(principal.get("role"))
    except ValueError:
        return None


def can(principal: dict, capability: Capability) -> bool:
    role = role_of(principal)
    return role is not None and role in POLICY[capability]


def authorize(principal: dict, capability: Capability) -> None:
    """Raise PermissionDenied unless the principal's role grants the capability."""
    if can(principal, capability):
        return
    logger.warning(
        "access.denied",
        user=principal.get("username"),
        role=principal.get("role"),
        capability=capability.value,
    )
    raise PermissionDenied("You do not have permission to perform this action.")


def assert_can_grant(principal: dict, target_role: Role) -> None:
    """Admins manage users but may not create or promote Super Admins."""
    if target_role == Role.SUPER_ADMIN and role_of(principal) != Role.SUPER_ADMIN:
        raise PermissionDenied("Admin users cannot create or assign Super Admin accounts.")
