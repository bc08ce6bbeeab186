# backend/bookdesk/models/catalog.py
"""
Catalog entities referenced by bookings: customers, their vehicles,
bookable services and staff members.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .types import TimestampMixin


class Customer(TimestampMixin, Base):
    __tablename__ = "customers"

    organization_id = Column(String(26), ForeignKey("organizations.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    vehicles = relationship("Vehicle", back_populates="customer")

    # NULL emails never collide, so customers without email are unconstrained.
    __table_args__ = (UniqueConstraint("organization_id", "email", name="uq_customers_org_email"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Customer {self.id}: {self.full_name}>"


class Vehicle(TimestampMixin, Base):
    __tablename__ = "vehicles"

    organization_id = Column(String(26), ForeignKey("organizations.id"), nullable=False, index=True)
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=True)
    license_plate = Column(String(20), nullable=True)
    vin = Column(String(17), nullable=True)
    mileage = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    customer = relationship("Customer", back_populates="vehicles")

    def __repr__(self) -> str:
        return f"<Vehicle {self.id}: {self.make} {self.model} ({self.license_plate})>"


class Service(TimestampMixin, Base):
    """A bookable service with its duration and current price."""

    __tablename__ = "services"

    organization_id = Column(String(26), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, default="general")
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    requires_vehicle = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "category", "name", name="uq_services_org_category_name"),
        CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        CheckConstraint("price >= 0", name="ck_services_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Service {self.id}: {self.name} {self.duration_minutes}m @ {self.price}>"


class Staff(TimestampMixin, Base):
    __tablename__ = "staff"

    organization_id = Column(String(26), ForeignKey("organizations.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Staff {self.id}: {self.full_name}>"
