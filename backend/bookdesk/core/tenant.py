"""Tenant context carried through every booking operation."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Optional

from .enums import ADMIN_ROLES, ROLE_PERMISSIONS, PermissionName, RoleName
from .exceptions import ForbiddenException, TimeoutException, UnauthorizedException


@dataclass(frozen=True)
class TenantContext:
    """
    The acting organization, user and role for one request.

    ``deadline`` is a ``time.monotonic()`` value; ``None`` means no deadline.
    The organization id only ever comes from verified token claims.
    """

    organization_id: str
    user_id: str
    role: RoleName
    deadline: Optional[float] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.organization_id:
            raise UnauthorizedException("Missing organization scope")

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def has_permission(self, permission: PermissionName) -> bool:
        return permission in ROLE_PERMISSIONS.get(self.role, frozenset())

    def require(self, permission: PermissionName) -> None:
        """Raise ForbiddenException unless the role grants ``permission``."""
        if not self.has_permission(permission):
            raise ForbiddenException(
                f"Role '{self.role.value}' is not allowed to perform this action",
                details={"required_permission": permission.value},
            )

    def remaining_seconds(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def check_deadline(self, stage: str = "operation") -> None:
        remaining = self.remaining_seconds()
        if remaining is not None and remaining <= 0:
            raise TimeoutException(
                "Request deadline exceeded",
                details={"stage": stage},
            )

    @classmethod
    def with_timeout(
        cls,
        organization_id: str,
        user_id: str,
        role: RoleName,
        timeout_seconds: Optional[float],
    ) -> "TenantContext":
        deadline = time.monotonic() + timeout_seconds if timeout_seconds else None
        return cls(organization_id=organization_id, user_id=user_id, role=role, deadline=deadline)
