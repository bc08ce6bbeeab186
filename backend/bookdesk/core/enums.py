# backend/bookdesk/core/enums.py
"""
Core enums for the booking platform.

Roles arrive as a JWT claim; permissions are derived from the role and
checked by the tenant context before any booking operation runs.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles a user may hold inside an organization."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    CARE_WORKER = "care_worker"
    SUPPORT_COORDINATOR = "support_coordinator"
    VIEWER = "viewer"


class PermissionName(str, Enum):
    """Permissions checked by the booking core."""

    VIEW_BOOKINGS = "view_bookings"
    MANAGE_BOOKINGS = "manage_bookings"
    DELETE_ACTIVE_BOOKINGS = "delete_active_bookings"
    MANAGE_ORGANIZATION = "manage_organization"


class OrganizationStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"


ADMIN_ROLES = frozenset({RoleName.SUPER_ADMIN, RoleName.ADMIN})

ROLE_PERMISSIONS: dict[RoleName, frozenset[PermissionName]] = {
    RoleName.SUPER_ADMIN: frozenset(PermissionName),
    RoleName.ADMIN: frozenset(PermissionName),
    RoleName.MANAGER: frozenset({PermissionName.VIEW_BOOKINGS, PermissionName.MANAGE_BOOKINGS}),
    RoleName.CARE_WORKER: frozenset({PermissionName.VIEW_BOOKINGS, PermissionName.MANAGE_BOOKINGS}),
    RoleName.SUPPORT_COORDINATOR: frozenset(
        {PermissionName.VIEW_BOOKINGS, PermissionName.MANAGE_BOOKINGS}
    ),
    RoleName.VIEWER: frozenset({PermissionName.VIEW_BOOKINGS}),
}
