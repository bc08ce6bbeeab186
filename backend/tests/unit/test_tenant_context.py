# backend/tests/unit/test_tenant_context.py
"""Unit tests for TenantContext permissions and deadlines."""

import time

import pytest

from bookdesk.core.enums import PermissionName, RoleName
from bookdesk.core.exceptions import ForbiddenException, TimeoutException, UnauthorizedException
from bookdesk.core.tenant import TenantContext

pytestmark = pytest.mark.unit


class TestPermissions:
    @pytest.mark.parametrize("role", list(RoleName))
    def test_every_role_can_view(self, role):
        assert TenantContext("org", "u", role).has_permission(PermissionName.VIEW_BOOKINGS)

    def test_viewer_cannot_manage(self):
        ctx = TenantContext("org", "u", RoleName.VIEWER)
        with pytest.raises(ForbiddenException) as exc_info:
            ctx.require(PermissionName.MANAGE_BOOKINGS)
        assert exc_info.value.details == {"required_permission": "manage_bookings"}

    @pytest.mark.parametrize(
        "role,expected",
        [
            (RoleName.SUPER_ADMIN, True),
            (RoleName.ADMIN, True),
            (RoleName.MANAGER, False),
            (RoleName.CARE_WORKER, False),
            (RoleName.SUPPORT_COORDINATOR, False),
            (RoleName.VIEWER, False),
        ],
    )
    def test_admin_only_permissions(self, role, expected):
        ctx = TenantContext("org", "u", role)
        assert ctx.is_admin is expected
        assert ctx.has_permission(PermissionName.DELETE_ACTIVE_BOOKINGS) is expected
        assert ctx.has_permission(PermissionName.MANAGE_ORGANIZATION) is expected

    def test_missing_organization_is_unauthenticated(self):
        with pytest.raises(UnauthorizedException):
            TenantContext("", "u", RoleName.ADMIN)

    def test_context_is_immutable(self):
        ctx = TenantContext("org", "u", RoleName.ADMIN)
        with pytest.raises(Exception):
            ctx.organization_id = "other"  # type: ignore[misc]


class TestDeadline:
    def test_no_deadline_never_expires(self):
        ctx = TenantContext("org", "u", RoleName.MANAGER)
        assert ctx.remaining_seconds() is None
        ctx.check_deadline()

    def test_future_deadline_passes(self):
        ctx = TenantContext.with_timeout("org", "u", RoleName.MANAGER, timeout_seconds=30)
        assert 0 < ctx.remaining_seconds() <= 30
        ctx.check_deadline()

    def test_expired_deadline_raises_timeout(self):
        ctx = TenantContext("org", "u", RoleName.MANAGER, deadline=time.monotonic() - 1)
        with pytest.raises(TimeoutException) as exc_info:
            ctx.check_deadline("create_booking.validate")
        assert exc_info.value.code == "TIMEOUT"
        assert exc_info.value.details == {"stage": "create_booking.validate"}

    def test_deadline_does_not_affect_equality(self):
        a = TenantContext("org", "u", RoleName.MANAGER, deadline=1.0)
        b = TenantContext("org", "u", RoleName.MANAGER, deadline=2.0)
        assert a == b
