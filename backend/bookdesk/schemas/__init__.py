from .base import ApiResponse, ErrorResponse, Money, StandardizedModel
from .booking import (
    AvailableSlotsResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
    NewCustomer,
)
from .organization import (
    BookingSettingsResponse,
    BookingSettingsUpdate,
    BusinessHoursResponse,
    BusinessHoursUpdate,
)

__all__ = [
    "ApiResponse",
    "AvailableSlotsResponse",
    "BookingCreate",
    "BookingListResponse",
    "BookingResponse",
    "BookingSettingsResponse",
    "BookingSettingsUpdate",
    "BookingStatusUpdate",
    "BookingUpdate",
    "BusinessHoursResponse",
    "BusinessHoursUpdate",
    "ErrorResponse",
    "Money",
    "NewCustomer",
    "StandardizedModel",
]
