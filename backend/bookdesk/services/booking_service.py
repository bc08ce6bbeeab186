# backend/bookdesk/services/booking_service.py
"""
Booking Service for the booking platform.

Transactional orchestrator for the booking lifecycle. Every write runs in
one transaction that:

1. takes the per-staff lock for the staff members involved,
2. resolves catalog references inside the caller's organization,
3. validates business hours, the booking window and vehicle rules,
4. checks for overlapping bookings,
5. writes the booking and its service-line snapshots.

Serialization failures restart the whole transaction a bounded number of
times and surface as a booking conflict once retries are exhausted.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Set, Tuple, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..core.booking_lock import acquire_staff_locks
from ..core.config import settings as app_settings
from ..core.enums import PermissionName
from ..core.exceptions import (
    BookingConflictException,
    CancellationNotAllowedException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    OutsideBookingWindowException,
    OutsideHoursException,
    ValidationException,
    VehicleMismatchException,
    VehicleRequiredException,
)
from ..core.tenant import TenantContext
from ..core.timezone_utils import ensure_utc, local_day_bounds
from ..database import get_dialect_name, is_serialization_failure, with_serialization_retry
from ..models.booking import Booking, BookingStatus
from ..models.catalog import Service
from ..models.organization import BookingSettings
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingFilter, BookingRepository, ServiceLineInput
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate, BookingUpdate
from .base import BaseService
from .business_hours_service import BusinessHoursService
from .catalog_service import CatalogService
from .slot_engine import Clock, SlotEngine, SlotQuery, SlotResult, utc_now

T = TypeVar("T")

CENTS = Decimal("0.01")
CREATABLE_STATUSES = frozenset({BookingStatus.SCHEDULED, BookingStatus.CONFIRMED})
MAX_STAFF_LOCK_ROUNDS = 3


@dataclass(frozen=True)
class BookingListQuery:
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: Optional[BookingStatus] = None
    staff_id: Optional[str] = None
    customer_id: Optional[str] = None
    service_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    q: Optional[str] = None
    page: int = 1
    page_size: int = 20


@dataclass(frozen=True)
class BookingPage:
    items: List[Booking]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.page_size) if self.total_count else 0


def price_lines(services: Sequence[Service]) -> Tuple[List[ServiceLineInput], int, Decimal]:
    """Snapshot lines, total duration in minutes and total price for ``services``."""
    lines = [
        ServiceLineInput(
            service_id=service.id,
            unit_price=Decimal(service.price).quantize(CENTS),
            duration_minutes=service.duration_minutes,
        )
        for service in services
    ]
    duration = sum(line.duration_minutes for line in lines)
    total = sum((line.unit_price for line in lines), Decimal("0.00")).quantize(CENTS)
    return lines, duration, total


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Reads never lock. Writes lock the affected staff partitions for the
    lifetime of their transaction.
    """

    def __init__(
        self,
        db: Session,
        catalog: Optional[CatalogService] = None,
        business_hours: Optional[BusinessHoursService] = None,
        slot_engine: Optional[SlotEngine] = None,
        clock: Clock = utc_now,
        retry_attempts: Optional[int] = None,
    ):
        super().__init__(db)
        self.catalog = catalog or CatalogService(db)
        self.business_hours = business_hours or BusinessHoursService(db)
        self.clock = clock
        self.slot_engine = slot_engine or SlotEngine(
            db, catalog=self.catalog, business_hours=self.business_hours, clock=clock
        )
        self.retry_attempts = (
            app_settings.booking_retry_attempts if retry_attempts is None else retry_attempts
        )

    def _repository(self, ctx: TenantContext) -> BookingRepository:
        return RepositoryFactory.create_booking_repository(self.db, ctx.organization_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("get_booking")
    def get_booking(self, ctx: TenantContext, booking_id: str) -> Booking:
        ctx.require(PermissionName.VIEW_BOOKINGS)
        ctx.check_deadline("get_booking")
        booking = self._repository(ctx).get_hydrated(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(self, ctx: TenantContext, query: BookingListQuery) -> BookingPage:
        ctx.require(PermissionName.VIEW_BOOKINGS)
        ctx.check_deadline("list_bookings")

        if query.page < 1:
            raise ValidationException("page must be at least 1", details={"field": "page"})
        if not 1 <= query.page_size <= app_settings.max_page_size:
            raise ValidationException(
                f"pageSize must be between 1 and {app_settings.max_page_size}",
                details={"field": "pageSize"},
            )
        if query.date_from and query.date_to and query.date_from > query.date_to:
            raise ValidationException(
                "date_from must not be after date_to", details={"field": "date_from"}
            )

        range_start = range_end = None
        if query.date_from or query.date_to:
            tz_name = self.business_hours.get_timezone(ctx)
            if query.date_from:
                range_start = local_day_bounds(query.date_from, tz_name)[0]
            if query.date_to:
                range_end = local_day_bounds(query.date_to, tz_name)[1]

        filters = BookingFilter(
            status=query.status,
            staff_id=query.staff_id,
            customer_id=query.customer_id,
            service_id=query.service_id,
            vehicle_id=query.vehicle_id,
            q=query.q.strip() if query.q and query.q.strip() else None,
            range_start=range_start,
            range_end=range_end,
        )
        items, total = self._repository(ctx).list(filters, query.page, query.page_size)
        return BookingPage(items=items, page=query.page, page_size=query.page_size, total_count=total)

    def available_slots(self, ctx: TenantContext, query: SlotQuery) -> SlotResult:
        ctx.require(PermissionName.VIEW_BOOKINGS)
        return self.slot_engine.available_slots(ctx, query)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(self, ctx: TenantContext, data: BookingCreate) -> Booking:
        """
        Create a booking, optionally creating its customer inline.

        Raises:
            NotFoundException: Unknown customer, staff, vehicle or service
            ValidationException: Inactive references or vehicle rule violations
            OutsideHoursException: Interval not inside business hours
            OutsideBookingWindowException: Start before lead time or past the horizon
            BookingConflictException: Overlap with another booking of the same staff
        """
        ctx.require(PermissionName.MANAGE_BOOKINGS)

        def attempt() -> str:
            with self.transaction():
                self._begin(ctx, [data.staff_id])
                booking = self._create_in_transaction(ctx, data)
                booking_id = booking.id
            return booking_id

        booking_id = self._run_with_retry("create_booking", attempt)
        self.log_operation(
            "create_booking",
            organization_id=ctx.organization_id,
            booking_id=booking_id,
            user_id=ctx.user_id,
        )
        return self._reload(ctx, booking_id)

    @BaseService.measure_operation("update_booking")
    def update_booking(self, ctx: TenantContext, booking_id: str, data: BookingUpdate) -> Booking:
        """
        Update a non-terminal booking.

        Only supplied fields change. When services or start time change the
        end time and price snapshots are recomputed; a status change goes
        through the state machine after the other changes are applied.
        """
        ctx.require(PermissionName.MANAGE_BOOKINGS)

        def attempt() -> None:
            with self.transaction():
                self._begin(ctx, [])
                self._lock_booking_staff(ctx, booking_id, data)
                self._update_in_transaction(ctx, booking_id, data)

        self._run_with_retry("update_booking", attempt)
        self.log_operation(
            "update_booking",
            organization_id=ctx.organization_id,
            booking_id=booking_id,
            fields=sorted(data.model_fields_set),
        )
        return self._reload(ctx, booking_id)

    @BaseService.measure_operation("set_booking_status")
    def set_status(self, ctx: TenantContext, booking_id: str, new_status: BookingStatus) -> Booking:
        ctx.require(PermissionName.MANAGE_BOOKINGS)

        def attempt() -> None:
            with self.transaction():
                self._begin(ctx, [])
                booking = self._get_for_write(ctx, booking_id)
                settings = self.business_hours.settings(ctx)
                self._transition(ctx, booking, settings, new_status)

        self._run_with_retry("set_booking_status", attempt)

        self.log_operation(
            "set_booking_status",
            organization_id=ctx.organization_id,
            booking_id=booking_id,
            status=new_status.value,
        )
        return self._reload(ctx, booking_id)

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, ctx: TenantContext, booking_id: str) -> None:
        """
        Soft-delete a booking.

        Terminal bookings may be deleted by anyone allowed to manage
        bookings; active ones only by admins.
        """
        ctx.require(PermissionName.MANAGE_BOOKINGS)

        def attempt() -> None:
            with self.transaction():
                self._begin(ctx, [])
                repo = self._repository(ctx)
                booking = self._get_for_write(ctx, booking_id)
                if not booking.is_terminal and not ctx.has_permission(
                    PermissionName.DELETE_ACTIVE_BOOKINGS
                ):
                    raise InvalidTransitionException(
                        booking.status,
                        "deleted",
                        message="Only completed, cancelled or no-show bookings can be deleted; "
                        "change the booking status first",
                    )
                repo.soft_delete(booking)

        self._run_with_retry("delete_booking", attempt)

        self.log_operation(
            "delete_booking",
            organization_id=ctx.organization_id,
            booking_id=booking_id,
            user_id=ctx.user_id,
        )

    # ------------------------------------------------------------------
    # Transaction bodies
    # ------------------------------------------------------------------

    def _create_in_transaction(self, ctx: TenantContext, data: BookingCreate) -> Booking:
        settings = self.business_hours.settings(ctx)
        status = data.status or BookingStatus.SCHEDULED
        if status not in CREATABLE_STATUSES:
            raise ValidationException(
                "New bookings must start as scheduled or confirmed",
                details={"field": "status", "status": status.value},
            )
        if status == BookingStatus.CONFIRMED and settings.require_approval and not ctx.is_admin:
            raise ForbiddenException(
                "Bookings require approval before they can be confirmed",
                details={"status": status.value},
            )

        customer_id = None
        if data.customer_id is not None:
            customer_id = self.catalog.resolve_customer(ctx, data.customer_id).id
        services = self.catalog.resolve_services(ctx, data.service_ids)
        self.catalog.resolve_staff(ctx, data.staff_id)
        lines, duration, total = price_lines(services)

        start = ensure_utc(data.start_time)
        end = start + timedelta(minutes=duration)
        ctx.check_deadline("create_booking.validate")
        self._check_hours(ctx, start, end)
        self._check_window(settings, start)
        self._check_vehicle(ctx, services, data.vehicle_id, customer_id)
        self._check_conflicts(ctx, settings, data.staff_id, start, end, "create_booking")

        if customer_id is None:
            # Schema validation guarantees new_customer when customer_id is absent.
            customer_id = self.catalog.create_customer(ctx, data.new_customer).id

        ctx.check_deadline("create_booking.insert")
        now = self.clock()
        return self._repository(ctx).insert(
            lines,
            customer_id=customer_id,
            staff_id=data.staff_id,
            vehicle_id=data.vehicle_id,
            start_time=start,
            end_time=end,
            status=status.value,
            total_price=total,
            notes=data.notes,
            internal_notes=data.internal_notes,
            created_by_id=ctx.user_id,
            confirmed_at=now if status == BookingStatus.CONFIRMED else None,
        )

    def _update_in_transaction(self, ctx: TenantContext, booking_id: str, data: BookingUpdate) -> None:
        repo = self._repository(ctx)
        booking = self._get_for_write(ctx, booking_id)
        fields = data.model_fields_set
        if booking.is_terminal:
            requested = data.status.value if data.status else booking.status
            raise InvalidTransitionException(
                booking.status,
                requested,
                message=f"Booking is {booking.status} and can no longer be modified",
            )

        settings = self.business_hours.settings(ctx)
        changes: dict = {}

        # Customer
        customer_id = booking.customer_id
        new_customer = None
        if data.new_customer is not None:
            new_customer = data.new_customer
            customer_id = None
        elif data.customer_id is not None and data.customer_id != booking.customer_id:
            customer_id = self.catalog.resolve_customer(ctx, data.customer_id).id
        customer_changed = customer_id != booking.customer_id

        # Staff and vehicle may be cleared explicitly with null
        staff_id = data.staff_id if "staff_id" in fields else booking.staff_id
        if staff_id != booking.staff_id:
            self.catalog.resolve_staff(ctx, staff_id)
        vehicle_id = data.vehicle_id if "vehicle_id" in fields else booking.vehicle_id

        # Services and timing
        current_ids = booking.service_ids
        services_changed = data.service_ids is not None and list(data.service_ids) != current_ids
        start = ensure_utc(data.start_time) if data.start_time is not None else booking.start_time
        start_changed = start != booking.start_time

        if services_changed or start_changed:
            services = self.catalog.resolve_services(
                ctx, data.service_ids if data.service_ids is not None else current_ids
            )
            lines, duration, total = price_lines(services)
        else:
            services = [line.service for line in booking.service_lines]
            lines, duration, total = [], booking.duration_minutes, booking.total_price
        end = start + timedelta(minutes=duration)
        timing_changed = start_changed or end != booking.end_time

        ctx.check_deadline("update_booking.validate")
        if timing_changed:
            self._check_hours(ctx, start, end)
        if start_changed:
            self._check_window(settings, start)
        if services_changed or customer_changed or vehicle_id != booking.vehicle_id:
            self._check_vehicle(ctx, services, vehicle_id, customer_id)
        if timing_changed or staff_id != booking.staff_id:
            self._check_conflicts(
                ctx, settings, staff_id, start, end, "update_booking", exclude_booking_id=booking.id
            )

        if new_customer is not None:
            customer_id = self.catalog.create_customer(ctx, new_customer).id

        changes.update(
            customer_id=customer_id,
            staff_id=staff_id,
            vehicle_id=vehicle_id,
            start_time=start,
            end_time=end,
        )
        if "notes" in fields:
            changes["notes"] = data.notes
        if "internal_notes" in fields:
            changes["internal_notes"] = data.internal_notes
        if services_changed or start_changed:
            repo.replace_service_lines(booking, lines)
            changes["total_price"] = total
        repo.update(booking, **changes)

        if data.status is not None and data.status.value != booking.status:
            self._transition(ctx, booking, settings, data.status)

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_hours(self, ctx: TenantContext, start: datetime, end: datetime) -> None:
        if not self.business_hours.contains(ctx, start, end):
            raise OutsideHoursException(start.isoformat(), end.isoformat())

    def _check_window(self, settings: BookingSettings, start: datetime) -> None:
        now = self.clock()
        earliest = now + timedelta(minutes=settings.min_lead_minutes)
        latest = now + timedelta(days=settings.max_horizon_days)
        if start < earliest:
            raise OutsideBookingWindowException(
                f"Bookings must start at least {settings.min_lead_minutes} minutes from now",
                details={"earliest_start": earliest.isoformat(), "start_time": start.isoformat()},
            )
        if start > latest:
            raise OutsideBookingWindowException(
                f"Bookings cannot be made more than {settings.max_horizon_days} days ahead",
                details={"latest_start": latest.isoformat(), "start_time": start.isoformat()},
            )

    def _check_vehicle(
        self,
        ctx: TenantContext,
        services: Sequence[Service],
        vehicle_id: Optional[str],
        customer_id: Optional[str],
    ) -> None:
        needs_vehicle = [s.id for s in services if s.requires_vehicle]
        if vehicle_id is None:
            if needs_vehicle:
                raise VehicleRequiredException(needs_vehicle)
            return
        vehicle = self.catalog.resolve_vehicle(ctx, vehicle_id)
        if customer_id is None or vehicle.customer_id != customer_id:
            raise VehicleMismatchException(vehicle_id, customer_id)

    def _check_conflicts(
        self,
        ctx: TenantContext,
        settings: BookingSettings,
        staff_id: Optional[str],
        start: datetime,
        end: datetime,
        operation: str,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        # Bookings without staff never conflict; neither do orgs that allow overlap.
        if staff_id is None or settings.allow_overlap_per_staff:
            return
        collisions = self._repository(ctx).overlaps(
            start, end, staff_id=staff_id, exclude_booking_id=exclude_booking_id
        )
        if collisions:
            prometheus_metrics.record_booking_conflict(operation)
            first = collisions[0]
            raise BookingConflictException(
                conflicting_booking_id=first.id,
                details={
                    "staff_id": staff_id,
                    "conflicting_start_time": first.start_time.isoformat(),
                    "conflicting_end_time": first.end_time.isoformat(),
                },
            )

    def _transition(
        self,
        ctx: TenantContext,
        booking: Booking,
        settings: BookingSettings,
        target: BookingStatus,
    ) -> None:
        if target == BookingStatus.CANCELLED and not ctx.is_admin:
            if not settings.allow_cancellation:
                raise CancellationNotAllowedException(
                    "This organization does not allow cancellations"
                )
            window = timedelta(hours=settings.cancellation_window_hours)
            if window and booking.start_time - self.clock() < window:
                raise CancellationNotAllowedException(
                    f"Bookings cannot be cancelled within {settings.cancellation_window_hours} "
                    "hours of the start time",
                    details={"cancellation_window_hours": settings.cancellation_window_hours},
                )
        self._repository(ctx).set_status(booking, target)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _begin(self, ctx: TenantContext, staff_ids: Sequence[Optional[str]]) -> None:
        """Open the transaction, bound statement time by the deadline and take staff locks."""
        ctx.check_deadline("begin")
        self.db.connection()
        remaining = ctx.remaining_seconds()
        if remaining is not None and get_dialect_name(self.db) == "postgresql":
            timeout_ms = max(1, int(remaining * 1000))
            self.db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
        acquire_staff_locks(self.db, ctx.organization_id, staff_ids)

    def _peek_staff(self, ctx: TenantContext, booking_id: str) -> Optional[str]:
        row = self._repository(ctx).lookup_staff_id(booking_id)
        if row is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return row[0]

    def _lock_booking_staff(self, ctx: TenantContext, booking_id: str, data: BookingUpdate) -> None:
        """
        Lock the booking's current staff and the requested staff.

        The current staff is read again after every round of locking. A booking
        moved to another staff member before the lock was granted gets that
        member locked too; if it keeps moving the update gives up with a
        conflict the caller may retry.
        """
        locked: Set[str] = set()
        for _ in range(MAX_STAFF_LOCK_ROUNDS):
            current = self._peek_staff(ctx, booking_id)
            target = data.staff_id if "staff_id" in data.model_fields_set else current
            missing = {s for s in (current, target) if s} - locked
            if not missing:
                return
            acquire_staff_locks(self.db, ctx.organization_id, missing)
            locked |= missing
        raise BookingConflictException(
            "The booking was changed by another request; please retry",
            details={"reason": "concurrent_update", "booking_id": booking_id},
        )

    def _get_for_write(self, ctx: TenantContext, booking_id: str) -> Booking:
        booking = self._repository(ctx).get_hydrated(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _reload(self, ctx: TenantContext, booking_id: str) -> Booking:
        booking = self._repository(ctx).get_hydrated(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _run_with_retry(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return with_serialization_retry(
                operation,
                func,
                max_retries=self.retry_attempts,
                on_retry=lambda _attempt: prometheus_metrics.record_serialization_retry(operation),
            )
        except DBAPIError as exc:
            if not is_serialization_failure(exc):
                raise
            prometheus_metrics.record_booking_conflict(operation)
            self.logger.warning(
                f"{operation} gave up after {self.retry_attempts} serialization retries",
                extra={"operation": operation, "retries": self.retry_attempts},
            )
            raise BookingConflictException(
                "The booking could not be saved because of concurrent changes; please retry",
                details={"reason": "serialization_failure"},
            ) from exc
