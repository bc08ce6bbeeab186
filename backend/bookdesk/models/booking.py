# backend/bookdesk/models/booking.py
"""
Booking model and its ordered service lines.

A booking reserves ``[start_time, end_time)`` for a customer, optionally with
a staff member and a vehicle. Service prices and durations are snapshotted
on the join rows at booking time so later catalog changes never alter an
existing booking's total.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
import logging
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from ..core.exceptions import InvalidTransitionException
from ..database import Base
from .types import TimestampMixin, UTCDateTime

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW})
ACTIVE_STATUSES = frozenset(set(BookingStatus) - TERMINAL_STATUSES)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.SCHEDULED: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Booking(TimestampMixin, Base):
    """Appointment for a customer within one organization."""

    __tablename__ = "bookings"

    organization_id = Column(String(26), ForeignKey("organizations.id"), nullable=False)
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)
    staff_id = Column(String(26), ForeignKey("staff.id"), nullable=True)
    vehicle_id = Column(String(26), ForeignKey("vehicles.id"), nullable=True)

    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.SCHEDULED.value)
    total_price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    created_by_id = Column(String(64), nullable=True)

    # Lifecycle timestamps
    confirmed_at = Column(UTCDateTime(), nullable=True)
    started_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    customer = relationship("Customer")
    staff = relationship("Staff")
    vehicle = relationship("Vehicle")
    service_lines = relationship(
        "BookingServiceLine",
        back_populates="booking",
        order_by="BookingServiceLine.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
            name="ck_bookings_status",
        ),
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
        Index(
            "ix_bookings_org_staff_start_active",
            "organization_id",
            "staff_id",
            "start_time",
            postgresql_where=text(
                "status NOT IN ('completed', 'cancelled', 'no_show') AND deleted_at IS NULL"
            ),
        ),
        Index("ix_bookings_org_start", "organization_id", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: org={self.organization_id}, customer={self.customer_id}, "
            f"staff={self.staff_id}, {self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_STATUSES

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def service_ids(self) -> list[str]:
        return [line.service_id for line in self.service_lines]

    def transition_to(self, target: BookingStatus, at: Optional[datetime] = None) -> None:
        """
        Move the booking to ``target`` following the lifecycle graph.

        Raises:
            InvalidTransitionException: If the transition is not allowed
        """
        current = self.status_enum
        if not can_transition(current, target):
            raise InvalidTransitionException(current.value, target.value)

        now = at or datetime.now(timezone.utc)
        self.status = target.value
        if target == BookingStatus.CONFIRMED:
            self.confirmed_at = now
        elif target == BookingStatus.IN_PROGRESS:
            self.started_at = now
        elif target == BookingStatus.COMPLETED:
            self.completed_at = now
        elif target == BookingStatus.CANCELLED:
            self.cancelled_at = now
        logger.info(f"Booking {self.id} moved from {current.value} to {target.value}")


class BookingServiceLine(Base):
    """Ordered join row between a booking and a service, with price/duration snapshot."""

    __tablename__ = "booking_services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(String(26), ForeignKey("services.id", ondelete="RESTRICT"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    unit_price_snapshot = Column(Numeric(10, 2), nullable=False)
    duration_minutes_snapshot = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="service_lines")
    service = relationship("Service")

    __table_args__ = (
        CheckConstraint("unit_price_snapshot >= 0", name="ck_booking_services_price_non_negative"),
        CheckConstraint("duration_minutes_snapshot > 0", name="ck_booking_services_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<BookingServiceLine {self.booking_id}#{self.position}: {self.service_id} @ {self.unit_price_snapshot}>"
