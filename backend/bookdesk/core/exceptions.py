# backend/bookdesk/core/exceptions.py
"""
Domain-specific exceptions for the booking platform.

Every exception carries a stable ``code`` that clients can branch on and
an HTTP status that the API layer uses when converting it.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from .request_context import get_request_id

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException whose detail the error handlers understand."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input fails schema or constraint validation."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID"


class NotFoundException(DomainException):
    """Raised when a requested resource is not found in the caller's organization."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE
    default_code = "BUSINESS_RULE"


class UnauthorizedException(DomainException):
    """Raised when the request carries no usable credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHENTICATED"

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"WWW-Authenticate": "Bearer"}
        return exc


class ForbiddenException(DomainException):
    """Raised when the caller's role lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class TimeoutException(DomainException):
    """Raised when the request deadline expires before the operation finishes."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_code = "TIMEOUT"


class ServiceException(DomainException):
    """Raised when a service operation fails for reasons the client cannot fix."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "INTERNAL"

    def to_http_exception(self) -> HTTPException:
        # Internal failures never echo driver messages back to the caller.
        details: Dict[str, Any] = {}
        request_id = get_request_id()
        if request_id:
            details["request_id"] = request_id
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": "An error occurred processing your request",
                "code": self.code,
                "details": details,
            },
        )


# Specific business exceptions


class VehicleRequiredException(ValidationException):
    """Raised when a service requires a vehicle but none was supplied."""

    def __init__(self, service_ids: list[str]):
        super().__init__(
            message="A vehicle is required for the selected services",
            code="VEHICLE_REQUIRED",
            details={"service_ids": service_ids},
        )


class VehicleMismatchException(ValidationException):
    """Raised when the vehicle does not belong to the booking's customer."""

    def __init__(self, vehicle_id: str, customer_id: Optional[str]):
        super().__init__(
            message="Vehicle does not belong to the booking customer",
            code="VEHICLE_MISMATCH",
            details={"vehicle_id": vehicle_id, "customer_id": customer_id},
        )


class OutsideHoursException(BusinessRuleException):
    """Raised when a booking interval is not inside the organization's opening hours."""

    def __init__(self, start_time: str, end_time: str):
        super().__init__(
            message="Booking falls outside business hours",
            code="OUTSIDE_HOURS",
            details={"start_time": start_time, "end_time": end_time},
        )


class OutsideBookingWindowException(BusinessRuleException):
    """Raised when a booking starts before the lead time or beyond the horizon."""

    def __init__(self, message: str, details: Dict[str, Any]):
        super().__init__(message=message, code="OUTSIDE_BOOKING_WINDOW", details=details)


class CancellationNotAllowedException(BusinessRuleException):
    """Raised when the organization's cancellation policy refuses a cancellation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="CANCELLATION_NOT_ALLOWED", details=details)


class BookingConflictException(ConflictException):
    """Raised when a booking overlaps another booking for the same staff member."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        conflicting_booking_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if conflicting_booking_id:
            payload["conflicting_booking_id"] = conflicting_booking_id
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=payload,
        )


class InvalidTransitionException(ConflictException):
    """Raised when a status change is not allowed by the booking state machine."""

    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot change booking status from {current} to {requested}",
            code="INVALID_TRANSITION",
            details={"current_status": current, "requested_status": requested},
        )


class ServiceInUseException(ConflictException):
    """Raised when deleting a service that active bookings still reference."""

    def __init__(self, service_id: str, booking_count: int):
        super().__init__(
            message="Service is referenced by active bookings and cannot be deleted",
            code="SERVICE_IN_USE",
            details={"service_id": service_id, "active_booking_count": booking_count},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues,
    query failures, or constraint violations. Services translate it into
    a domain exception.
    """
