"""
Database models for the booking platform.

- Organization and its scheduling configuration
- Catalog entities (customers, vehicles, services, staff)
- Bookings and their ordered service lines
"""

from .booking import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingServiceLine,
    BookingStatus,
)
from .catalog import Customer, Service, Staff, Vehicle
from .organization import BookingSettings, BusinessHours, Organization

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingServiceLine",
    "BookingSettings",
    "BookingStatus",
    "BusinessHours",
    "Customer",
    "Organization",
    "Service",
    "Staff",
    "Vehicle",
]
