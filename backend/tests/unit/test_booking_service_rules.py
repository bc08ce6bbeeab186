# backend/tests/unit/test_booking_service_rules.py
"""
Unit tests for BookingService rules that need no database.

Collaborators are mocks; the clock is fixed so window and cancellation
checks are deterministic.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from bookdesk.core.enums import RoleName
from bookdesk.core.exceptions import (
    BookingConflictException,
    CancellationNotAllowedException,
    OutsideBookingWindowException,
    ValidationException,
    VehicleMismatchException,
    VehicleRequiredException,
)
from bookdesk.core.tenant import TenantContext
from bookdesk.models.booking import BookingStatus
from bookdesk.schemas.booking import BookingUpdate
from bookdesk.services.booking_service import BookingListQuery, BookingPage, BookingService, price_lines

pytestmark = pytest.mark.unit

NOW = datetime(2030, 1, 6, 12, 0, tzinfo=timezone.utc)


def _settings(**overrides):
    values = dict(
        slot_minutes=30,
        min_lead_minutes=60,
        max_horizon_days=7,
        allow_overlap_per_staff=False,
        require_approval=False,
        allow_cancellation=True,
        cancellation_window_hours=24,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def catalog():
    return Mock()


@pytest.fixture
def service(catalog):
    return BookingService(
        MagicMock(),
        catalog=catalog,
        business_hours=Mock(),
        slot_engine=Mock(),
        clock=lambda: NOW,
        retry_attempts=2,
    )


@pytest.fixture
def manager():
    return TenantContext("org-1", "user-1", RoleName.MANAGER)


@pytest.fixture
def admin():
    return TenantContext("org-1", "user-2", RoleName.ADMIN)


class TestPriceLines:
    def test_totals_and_snapshots(self):
        services = [
            SimpleNamespace(id="s1", price=Decimal("85.00"), duration_minutes=60),
            SimpleNamespace(id="s2", price=Decimal("40.5"), duration_minutes=30),
        ]

        lines, duration, total = price_lines(services)

        assert [line.service_id for line in lines] == ["s1", "s2"]
        assert lines[1].unit_price == Decimal("40.50")
        assert duration == 90
        assert total == Decimal("125.50")


class TestBookingPage:
    @pytest.mark.parametrize("total,size,pages", [(0, 20, 0), (1, 20, 1), (20, 20, 1), (21, 20, 2)])
    def test_total_pages(self, total, size, pages):
        assert BookingPage(items=[], page=1, page_size=size, total_count=total).total_pages == pages


class TestBookingWindow:
    def test_start_inside_window_passes(self, service):
        service._check_window(_settings(), NOW + timedelta(hours=2))

    def test_start_before_lead_time_is_rejected(self, service):
        with pytest.raises(OutsideBookingWindowException) as exc_info:
            service._check_window(_settings(), NOW + timedelta(minutes=30))
        assert "earliest_start" in exc_info.value.details

    def test_start_past_horizon_is_rejected(self, service):
        with pytest.raises(OutsideBookingWindowException) as exc_info:
            service._check_window(_settings(), NOW + timedelta(days=8))
        assert "latest_start" in exc_info.value.details


class TestVehicleRules:
    def _services(self, requires_vehicle):
        return [SimpleNamespace(id="s1", requires_vehicle=requires_vehicle)]

    def test_missing_vehicle_for_vehicle_service(self, service, manager):
        with pytest.raises(VehicleRequiredException) as exc_info:
            service._check_vehicle(manager, self._services(True), None, "c1")
        assert exc_info.value.details == {"service_ids": ["s1"]}

    def test_no_vehicle_needed(self, service, manager, catalog):
        service._check_vehicle(manager, self._services(False), None, "c1")
        catalog.resolve_vehicle.assert_not_called()

    def test_vehicle_of_another_customer(self, service, manager, catalog):
        catalog.resolve_vehicle.return_value = SimpleNamespace(id="v2", customer_id="c2")
        with pytest.raises(VehicleMismatchException):
            service._check_vehicle(manager, self._services(True), "v2", "c1")

    def test_vehicle_with_inline_customer_is_mismatch(self, service, manager, catalog):
        catalog.resolve_vehicle.return_value = SimpleNamespace(id="v1", customer_id="c1")
        with pytest.raises(VehicleMismatchException):
            service._check_vehicle(manager, self._services(False), "v1", None)

    def test_matching_vehicle_passes(self, service, manager, catalog):
        catalog.resolve_vehicle.return_value = SimpleNamespace(id="v1", customer_id="c1")
        service._check_vehicle(manager, self._services(True), "v1", "c1")


class TestConflictCheck:
    def test_staffless_booking_never_conflicts(self, service, manager):
        with patch.object(service, "_repository") as repo:
            service._check_conflicts(manager, _settings(), None, NOW, NOW + timedelta(hours=1), "op")
        repo.assert_not_called()

    def test_overlap_allowed_skips_lookup(self, service, manager):
        with patch.object(service, "_repository") as repo:
            service._check_conflicts(
                manager,
                _settings(allow_overlap_per_staff=True),
                "st1",
                NOW,
                NOW + timedelta(hours=1),
                "op",
            )
        repo.assert_not_called()

    def test_first_collision_is_reported(self, service, manager):
        other = SimpleNamespace(id="B1", start_time=NOW, end_time=NOW + timedelta(hours=1))
        with patch.object(service, "_repository") as repo:
            repo.return_value.overlaps.return_value = [other]
            with pytest.raises(BookingConflictException) as exc_info:
                service._check_conflicts(
                    manager, _settings(), "st1", NOW, NOW + timedelta(minutes=30), "op", "B0"
                )
        assert exc_info.value.details["conflicting_booking_id"] == "B1"
        repo.return_value.overlaps.assert_called_once_with(
            NOW, NOW + timedelta(minutes=30), staff_id="st1", exclude_booking_id="B0"
        )


class TestCancellationPolicy:
    def _booking(self, hours_ahead):
        return SimpleNamespace(start_time=NOW + timedelta(hours=hours_ahead), status="scheduled")

    def test_cancellation_disabled(self, service, manager):
        with patch.object(service, "_repository"):
            with pytest.raises(CancellationNotAllowedException):
                service._transition(
                    manager, self._booking(48), _settings(allow_cancellation=False), BookingStatus.CANCELLED
                )

    def test_inside_window_rejected(self, service, manager):
        with patch.object(service, "_repository") as repo:
            with pytest.raises(CancellationNotAllowedException):
                service._transition(manager, self._booking(2), _settings(), BookingStatus.CANCELLED)
        repo.return_value.set_status.assert_not_called()

    def test_outside_window_allowed(self, service, manager):
        booking = self._booking(48)
        with patch.object(service, "_repository") as repo:
            service._transition(manager, booking, _settings(), BookingStatus.CANCELLED)
        repo.return_value.set_status.assert_called_once_with(booking, BookingStatus.CANCELLED)

    def test_admin_bypasses_policy(self, service, admin):
        booking = self._booking(1)
        with patch.object(service, "_repository") as repo:
            service._transition(admin, booking, _settings(allow_cancellation=False), BookingStatus.CANCELLED)
        repo.return_value.set_status.assert_called_once()

    def test_policy_only_applies_to_cancellation(self, service, manager):
        booking = self._booking(1)
        with patch.object(service, "_repository") as repo:
            service._transition(manager, booking, _settings(allow_cancellation=False), BookingStatus.CONFIRMED)
        repo.return_value.set_status.assert_called_once_with(booking, BookingStatus.CONFIRMED)


@patch("bookdesk.database.time.sleep")
class TestRetryExhaustion:
    def test_serialization_failures_become_conflict(self, sleep, service):
        func = Mock(side_effect=OperationalError("INSERT", {}, Exception("database is locked")))

        with pytest.raises(BookingConflictException) as exc_info:
            service._run_with_retry("create_booking", func)

        assert func.call_count == 3
        assert exc_info.value.details == {"reason": "serialization_failure"}

    def test_other_database_errors_pass_through(self, sleep, service):
        func = Mock(side_effect=IntegrityError("INSERT", {}, Exception("constraint")))
        with pytest.raises(IntegrityError):
            service._run_with_retry("create_booking", func)
        func.assert_called_once()


@patch("bookdesk.services.booking_service.acquire_staff_locks")
class TestUpdateStaffLocking:
    def _locked(self, acquire):
        return [set(c.args[2]) for c in acquire.call_args_list]

    def test_unchanged_staff_locked_once(self, acquire, service, manager):
        with patch.object(service, "_peek_staff", side_effect=["st-a", "st-a"]):
            service._lock_booking_staff(manager, "B1", BookingUpdate(notes="moved"))
        assert self._locked(acquire) == [{"st-a"}]

    def test_reassignment_locks_both_staff(self, acquire, service, manager):
        with patch.object(service, "_peek_staff", side_effect=["st-a", "st-a"]):
            service._lock_booking_staff(manager, "B1", BookingUpdate(staff_id="st-b"))
        assert self._locked(acquire) == [{"st-a", "st-b"}]

    def test_staff_changed_before_lock_is_locked_too(self, acquire, service, manager):
        with patch.object(service, "_peek_staff", side_effect=["st-a", "st-c", "st-c"]):
            service._lock_booking_staff(manager, "B1", BookingUpdate(notes="x"))
        assert self._locked(acquire) == [{"st-a"}, {"st-c"}]

    def test_booking_that_keeps_moving_is_a_conflict(self, acquire, service, manager):
        with patch.object(service, "_peek_staff", side_effect=["st-a", "st-b", "st-c"]):
            with pytest.raises(BookingConflictException) as exc_info:
                service._lock_booking_staff(manager, "B1", BookingUpdate(notes="x"))
        assert exc_info.value.details["reason"] == "concurrent_update"

    def test_staffless_booking_takes_no_lock(self, acquire, service, manager):
        with patch.object(service, "_peek_staff", return_value=None):
            service._lock_booking_staff(manager, "B1", BookingUpdate(notes="x"))
        acquire.assert_not_called()


@patch("bookdesk.database.time.sleep")
class TestStatusAndDeleteRetry:
    def _locked_error(self):
        return OperationalError("UPDATE bookings", {}, Exception("database is locked"))

    def test_set_status_retries_locked_database(self, sleep, service, manager):
        booking = SimpleNamespace(start_time=NOW + timedelta(days=3), status="scheduled")
        with patch.object(
            service, "_get_for_write", side_effect=[self._locked_error(), booking]
        ), patch.object(service, "_repository") as repo:
            service.set_status(manager, "B1", BookingStatus.CONFIRMED)
        repo.return_value.set_status.assert_called_once_with(booking, BookingStatus.CONFIRMED)

    def test_delete_gives_up_with_conflict(self, sleep, service, admin):
        with patch.object(service, "_get_for_write", side_effect=self._locked_error()) as load:
            with pytest.raises(BookingConflictException) as exc_info:
                service.delete_booking(admin, "B1")
        assert load.call_count == 3
        assert exc_info.value.details == {"reason": "serialization_failure"}


class TestListValidation:
    @pytest.mark.parametrize(
        "query",
        [
            BookingListQuery(page=0),
            BookingListQuery(page_size=0),
            BookingListQuery(page_size=10_000),
        ],
    )
    def test_bad_paging(self, service, manager, query):
        with pytest.raises(ValidationException):
            service.list_bookings(manager, query)

    def test_reversed_date_range(self, service, manager):
        with pytest.raises(ValidationException):
            service.list_bookings(
                manager, BookingListQuery(date_from=date(2030, 1, 2), date_to=date(2030, 1, 1))
            )
