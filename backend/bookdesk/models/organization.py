# backend/bookdesk/models/organization.py
"""
Tenant root and its scheduling configuration.

Every organization owns one BusinessHours row per weekday and a single
BookingSettings row. Both are created when the organization is provisioned
and only change through admin operations.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..core.enums import OrganizationStatus
from ..database import Base
from .types import TimestampMixin

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Organization(TimestampMixin, Base):
    """A business account; every other entity is scoped to one."""

    __tablename__ = "organizations"

    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=False, default="Australia/Adelaide")
    status = Column(String(20), nullable=False, default=OrganizationStatus.ACTIVE.value)

    business_hours = relationship(
        "BusinessHours",
        back_populates="organization",
        order_by="BusinessHours.weekday",
        cascade="all, delete-orphan",
    )
    booking_settings = relationship(
        "BookingSettings",
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'pending', 'suspended')",
            name="ck_organizations_status",
        ),
    )

    @property
    def is_suspended(self) -> bool:
        return self.status == OrganizationStatus.SUSPENDED.value

    def __repr__(self) -> str:
        return f"<Organization {self.id}: {self.name} ({self.timezone}, {self.status})>"


class BusinessHours(TimestampMixin, Base):
    """
    Opening interval for one weekday (0 = Monday).

    The interval is ``[open_time, close_time)`` on the local calendar day and
    never crosses midnight.
    """

    __tablename__ = "business_hours"

    organization_id = Column(String(26), ForeignKey("organizations.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)
    is_closed = Column(Boolean, nullable=False, default=True)

    organization = relationship("Organization", back_populates="business_hours")

    __table_args__ = (
        UniqueConstraint("organization_id", "weekday", name="uq_business_hours_org_weekday"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_business_hours_weekday"),
    )

    @property
    def is_open(self) -> bool:
        return (
            not self.is_closed
            and self.open_time is not None
            and self.close_time is not None
            and self.open_time < self.close_time
        )

    def __repr__(self) -> str:
        if not self.is_open:
            return f"<BusinessHours {WEEKDAY_NAMES[self.weekday]}: closed>"
        return f"<BusinessHours {WEEKDAY_NAMES[self.weekday]}: {self.open_time}-{self.close_time}>"


class BookingSettings(TimestampMixin, Base):
    """Booking window and slot configuration for one organization."""

    __tablename__ = "booking_settings"

    organization_id = Column(String(26), ForeignKey("organizations.id"), nullable=False, unique=True)
    slot_minutes = Column(Integer, nullable=False, default=60)
    min_lead_minutes = Column(Integer, nullable=False, default=60)
    max_horizon_days = Column(Integer, nullable=False, default=30)
    allow_overlap_per_staff = Column(Boolean, nullable=False, default=False)
    require_approval = Column(Boolean, nullable=False, default=False)
    allow_cancellation = Column(Boolean, nullable=False, default=True)
    cancellation_window_hours = Column(Integer, nullable=False, default=0)

    organization = relationship("Organization", back_populates="booking_settings")

    __table_args__ = (
        CheckConstraint("slot_minutes > 0", name="ck_booking_settings_slot_positive"),
        CheckConstraint("min_lead_minutes >= 0", name="ck_booking_settings_lead_non_negative"),
        CheckConstraint("max_horizon_days > 0", name="ck_booking_settings_horizon_positive"),
        CheckConstraint(
            "cancellation_window_hours >= 0", name="ck_booking_settings_cancel_window_non_negative"
        ),
    )
