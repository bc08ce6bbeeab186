# backend/tests/unit/test_exceptions.py
"""Unit tests for domain exception codes and HTTP conversion."""

import pytest

from bookdesk.core.exceptions import (
    BookingConflictException,
    CancellationNotAllowedException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    OutsideBookingWindowException,
    OutsideHoursException,
    ServiceException,
    ServiceInUseException,
    TimeoutException,
    UnauthorizedException,
    ValidationException,
    VehicleMismatchException,
    VehicleRequiredException,
)
from bookdesk.core.request_context import reset_request_id, set_request_id

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "exc,status_code,code",
    [
        (UnauthorizedException("x"), 401, "UNAUTHENTICATED"),
        (ForbiddenException("x"), 403, "FORBIDDEN"),
        (NotFoundException("x"), 404, "NOT_FOUND"),
        (ValidationException("x"), 400, "INVALID"),
        (VehicleRequiredException(["s1"]), 400, "VEHICLE_REQUIRED"),
        (VehicleMismatchException("v1", "c1"), 400, "VEHICLE_MISMATCH"),
        (OutsideHoursException("a", "b"), 422, "OUTSIDE_HOURS"),
        (OutsideBookingWindowException("x", {}), 422, "OUTSIDE_BOOKING_WINDOW"),
        (CancellationNotAllowedException("x"), 422, "CANCELLATION_NOT_ALLOWED"),
        (BookingConflictException(), 409, "BOOKING_CONFLICT"),
        (InvalidTransitionException("scheduled", "completed"), 409, "INVALID_TRANSITION"),
        (ServiceInUseException("s1", 2), 409, "SERVICE_IN_USE"),
        (TimeoutException("x"), 504, "TIMEOUT"),
        (ServiceException("x"), 500, "INTERNAL"),
    ],
)
def test_status_and_code(exc, status_code, code):
    http_exc = exc.to_http_exception()
    assert http_exc.status_code == status_code
    assert http_exc.detail["code"] == code


def test_conflict_carries_conflicting_booking_id():
    exc = BookingConflictException(conflicting_booking_id="B1", details={"staff_id": "ST1"})
    assert exc.details == {"staff_id": "ST1", "conflicting_booking_id": "B1"}
    assert exc.to_http_exception().detail["details"]["conflicting_booking_id"] == "B1"


def test_unauthorized_sets_bearer_challenge():
    assert UnauthorizedException("x").to_http_exception().headers == {"WWW-Authenticate": "Bearer"}


def test_service_exception_hides_internal_message():
    token = set_request_id("REQ-123")
    try:
        detail = ServiceException("psycopg2 exploded: password=hunter2").to_http_exception().detail
    finally:
        reset_request_id(token)

    assert "hunter2" not in detail["message"]
    assert detail["details"] == {"request_id": "REQ-123"}


def test_validation_exception_keeps_custom_code():
    exc = ValidationException("bad", code="SOMETHING_ELSE", details={"field": "x"})
    assert exc.code == "SOMETHING_ELSE"
    assert exc.to_http_exception().detail == {
        "message": "bad",
        "code": "SOMETHING_ELSE",
        "details": {"field": "x"},
    }
