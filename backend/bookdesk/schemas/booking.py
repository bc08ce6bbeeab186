# backend/bookdesk/schemas/booking.py
"""
Booking schemas for the booking platform.

Requests carry instants as ISO-8601 strings with an explicit offset or
``Z``; naive datetimes are rejected. Responses always render instants in
UTC and money as 2-decimal strings.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import AwareDatetime, Field, field_validator, model_validator

from ..models.booking import Booking, BookingStatus
from .base import Money, StandardizedModel, StrictRequestModel


class NewCustomer(StrictRequestModel):
    """Customer created inline in the same transaction as the booking."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("email must be a valid address")
        return v.lower()


class BookingCreate(StrictRequestModel):
    """
    Create a booking for an existing or inline customer.

    ``end_time`` and ``total_price`` are derived from the selected services
    and cannot be supplied.
    """

    customer_id: Optional[str] = Field(None, description="Existing customer to book for")
    new_customer: Optional[NewCustomer] = Field(None, description="Customer to create inline")
    service_ids: List[str] = Field(..., min_length=1, description="Services in booking order")
    staff_id: Optional[str] = Field(None, description="Staff member performing the work")
    vehicle_id: Optional[str] = Field(None, description="Customer vehicle, when relevant")
    start_time: AwareDatetime = Field(..., description="Start instant with explicit offset")
    status: Optional[BookingStatus] = Field(None, description="scheduled (default) or confirmed")
    notes: Optional[str] = Field(None, max_length=2000)
    internal_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("service_ids")
    @classmethod
    def validate_service_ids(cls, v: List[str]) -> List[str]:
        if any(not sid for sid in v):
            raise ValueError("service_ids must not contain empty ids")
        return v

    @model_validator(mode="after")
    def validate_customer_choice(self) -> "BookingCreate":
        """Exactly one of customer_id and new_customer."""
        if (self.customer_id is None) == (self.new_customer is None):
            raise ValueError("Provide exactly one of customer_id or new_customer")
        return self


class BookingUpdate(StrictRequestModel):
    """
    Update a booking.

    Omitted fields keep their current value. ``staff_id`` and ``vehicle_id``
    may be set to null to clear them.
    """

    customer_id: Optional[str] = None
    new_customer: Optional[NewCustomer] = None
    service_ids: Optional[List[str]] = Field(None, min_length=1)
    staff_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    start_time: Optional[AwareDatetime] = None
    status: Optional[BookingStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)
    internal_notes: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_customer_choice(self) -> "BookingUpdate":
        if self.customer_id is not None and self.new_customer is not None:
            raise ValueError("Provide at most one of customer_id or new_customer")
        return self


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatus


class CustomerInfo(StandardizedModel):
    id: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class StaffInfo(StandardizedModel):
    id: str
    first_name: str
    last_name: str


class VehicleInfo(StandardizedModel):
    id: str
    make: str
    model: str
    year: Optional[int] = None
    license_plate: Optional[str] = None


class BookingServiceInfo(StandardizedModel):
    """One service line with the price and duration captured at booking time."""

    service_id: str
    name: Optional[str] = None
    position: int
    unit_price: Money
    duration_minutes: int


class BookingResponse(StandardizedModel):
    id: str
    organization_id: str
    customer_id: str
    staff_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: BookingStatus
    total_price: Money
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    created_by_id: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    customer: Optional[CustomerInfo] = None
    staff: Optional[StaffInfo] = None
    vehicle: Optional[VehicleInfo] = None
    services: List[BookingServiceInfo] = Field(default_factory=list)

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        """Build the response from a hydrated booking."""
        customer = booking.customer
        staff = booking.staff
        vehicle = booking.vehicle
        return cls(
            id=booking.id,
            organization_id=booking.organization_id,
            customer_id=booking.customer_id,
            staff_id=booking.staff_id,
            vehicle_id=booking.vehicle_id,
            start_time=booking.start_time,
            end_time=booking.end_time,
            duration_minutes=booking.duration_minutes,
            status=booking.status_enum,
            total_price=booking.total_price,
            notes=booking.notes,
            internal_notes=booking.internal_notes,
            created_by_id=booking.created_by_id,
            confirmed_at=booking.confirmed_at,
            started_at=booking.started_at,
            completed_at=booking.completed_at,
            cancelled_at=booking.cancelled_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            customer=(
                CustomerInfo(
                    id=customer.id,
                    first_name=customer.first_name,
                    last_name=customer.last_name,
                    phone=customer.phone,
                    email=customer.email,
                )
                if customer is not None
                else None
            ),
            staff=(
                StaffInfo(id=staff.id, first_name=staff.first_name, last_name=staff.last_name)
                if staff is not None
                else None
            ),
            vehicle=(
                VehicleInfo(
                    id=vehicle.id,
                    make=vehicle.make,
                    model=vehicle.model,
                    year=vehicle.year,
                    license_plate=vehicle.license_plate,
                )
                if vehicle is not None
                else None
            ),
            services=[
                BookingServiceInfo(
                    service_id=line.service_id,
                    name=line.service.name if line.service is not None else None,
                    position=line.position,
                    unit_price=line.unit_price_snapshot,
                    duration_minutes=line.duration_minutes_snapshot,
                )
                for line in booking.service_lines
            ],
        )


class BookingListResponse(StandardizedModel):
    """One page of bookings; pagination keys are camelCase on the wire."""

    items: List[BookingResponse]
    page: int
    page_size: int = Field(..., alias="pageSize")
    total_count: int = Field(..., alias="totalCount")
    total_pages: int = Field(..., alias="totalPages")


class AvailableSlotsResponse(StandardizedModel):
    date: date
    staff_id: Optional[str] = None
    service_ids: List[str]
    duration_minutes: int
    slots: List[datetime]
