# backend/bookdesk/repositories/booking_repository.py
"""
Booking Repository for the booking platform.

Persists bookings together with their ordered service lines and answers
the conflict queries the booking service runs inside its write
transaction. Every query is scoped to one organization.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import TERMINAL_STATUSES, Booking, BookingServiceLine, BookingStatus
from ..models.catalog import Customer
from .base_repository import TenantRepository


@dataclass(frozen=True)
class ServiceLineInput:
    """Snapshot of one service at booking time."""

    service_id: str
    unit_price: Decimal
    duration_minutes: int


@dataclass(frozen=True)
class BookingFilter:
    """Typed list filter; every field is optional and combined with AND."""

    status: Optional[BookingStatus] = None
    staff_id: Optional[str] = None
    customer_id: Optional[str] = None
    service_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    q: Optional[str] = None
    # Interval the booking must intersect: start < range_end and end > range_start.
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BookingRepository(TenantRepository[Booking]):
    """Tenant-scoped persistence for bookings and their service lines."""

    def __init__(self, db: Session, organization_id: str):
        super().__init__(db, Booking, organization_id)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.customer),
            joinedload(Booking.staff),
            joinedload(Booking.vehicle),
            selectinload(Booking.service_lines).joinedload(BookingServiceLine.service),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, lines: Sequence[ServiceLineInput], **fields: Any) -> Booking:
        """Write a booking and its join rows in the caller's transaction."""
        try:
            booking = Booking(organization_id=self.organization_id, **fields)
            booking.service_lines = self._build_lines(lines)
            self.db.add(booking)
            self.db.flush()
            self.logger.info(
                f"Inserted booking {booking.id} with {len(lines)} service line(s)",
                extra={"organization_id": self.organization_id, "booking_id": booking.id},
            )
            return booking
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting booking: {str(e)}")
            raise RepositoryException(f"Failed to insert booking: {str(e)}")

    def replace_service_lines(self, booking: Booking, lines: Sequence[ServiceLineInput]) -> Booking:
        """Drop the existing snapshots and write new ones in input order."""
        try:
            booking.service_lines.clear()
            self.db.flush()
            booking.service_lines.extend(self._build_lines(lines))
            self.db.flush()
            return booking
        except SQLAlchemyError as e:
            self.logger.error(f"Error replacing service lines for booking {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to replace booking services: {str(e)}")

    def set_status(self, booking: Booking, new_status: BookingStatus) -> Booking:
        """Apply a lifecycle transition; the model enforces the state machine."""
        booking.transition_to(new_status)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating status for booking {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking status: {str(e)}")
        return booking

    @staticmethod
    def _build_lines(lines: Sequence[ServiceLineInput]) -> List[BookingServiceLine]:
        return [
            BookingServiceLine(
                service_id=line.service_id,
                position=position,
                unit_price_snapshot=line.unit_price,
                duration_minutes_snapshot=line.duration_minutes,
            )
            for position, line in enumerate(lines)
        ]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_hydrated(self, booking_id: str) -> Optional[Booking]:
        """Load a booking with customer, staff, vehicle and service lines, refreshing stale state."""
        try:
            query = self._apply_eager_loading(self._query().filter(Booking.id == booking_id))
            return query.populate_existing().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve booking: {str(e)}")

    def lookup_staff_id(self, booking_id: str) -> Optional[Tuple[Optional[str]]]:
        """
        Current ``staff_id`` of a booking read from the database, bypassing the
        session identity map. None when the booking does not exist.
        """
        try:
            return (
                self._query()
                .with_entities(Booking.staff_id)
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading staff of booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve booking: {str(e)}")

    def overlaps(
        self,
        start: datetime,
        end: datetime,
        staff_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Non-terminal bookings intersecting ``[start, end)``.

        With ``staff_id`` only that staff member's bookings are considered;
        without it any booking in the organization counts. Results are
        ordered by start time so the first element is the earliest collision.
        """
        try:
            query = self._query().filter(
                Booking.status.notin_([s.value for s in TERMINAL_STATUSES]),
                Booking.start_time < end,
                Booking.end_time > start,
            )
            if staff_id is not None:
                query = query.filter(Booking.staff_id == staff_id)
            if exclude_booking_id is not None:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.start_time, Booking.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking booking overlaps: {str(e)}")
            raise RepositoryException(f"Failed to check booking conflicts: {str(e)}")

    def list(self, filters: BookingFilter, page: int, page_size: int) -> Tuple[List[Booking], int]:
        """Return one page of bookings ordered by ``start_time, id`` plus the total count."""
        try:
            query = self._filtered_query(filters)
            total = query.order_by(None).count()
            items = (
                self._apply_eager_loading(query)
                .order_by(Booking.start_time.asc(), Booking.id.asc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return items, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def _filtered_query(self, filters: BookingFilter) -> Query:
        query = self._query()
        if filters.status is not None:
            query = query.filter(Booking.status == filters.status.value)
        if filters.staff_id is not None:
            query = query.filter(Booking.staff_id == filters.staff_id)
        if filters.customer_id is not None:
            query = query.filter(Booking.customer_id == filters.customer_id)
        if filters.vehicle_id is not None:
            query = query.filter(Booking.vehicle_id == filters.vehicle_id)
        if filters.service_id is not None:
            query = query.filter(
                Booking.service_lines.any(BookingServiceLine.service_id == filters.service_id)
            )
        if filters.range_start is not None:
            query = query.filter(Booking.end_time > filters.range_start)
        if filters.range_end is not None:
            query = query.filter(Booking.start_time < filters.range_end)
        if filters.q:
            pattern = f"%{_escape_like(filters.q.strip())}%"
            full_name = Customer.first_name + " " + Customer.last_name
            query = query.join(Customer, Customer.id == Booking.customer_id).filter(
                or_(
                    Customer.first_name.ilike(pattern, escape="\\"),
                    Customer.last_name.ilike(pattern, escape="\\"),
                    full_name.ilike(pattern, escape="\\"),
                    Booking.notes.ilike(pattern, escape="\\"),
                )
            )
        return query
