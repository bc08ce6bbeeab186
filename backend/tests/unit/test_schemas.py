# backend/tests/unit/test_schemas.py
"""Unit tests for request validation and response serialization."""

from datetime import time
from decimal import Decimal

import pytest
from pydantic import ValidationError

from bookdesk.schemas.base import ApiResponse, format_money
from bookdesk.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingServiceInfo,
    BookingUpdate,
)
from bookdesk.schemas.organization import BookingSettingsUpdate, BusinessHoursDayInput

pytestmark = pytest.mark.unit

START = "2030-01-07T09:00:00+10:30"


class TestBookingCreate:
    def test_existing_customer(self):
        data = BookingCreate(customer_id="c1", service_ids=["s1"], start_time=START)
        assert data.start_time.utcoffset().total_seconds() == 37800
        assert data.status is None

    def test_inline_customer_email_is_normalized(self):
        data = BookingCreate(
            new_customer={"first_name": "Ann", "last_name": "Lee", "email": "Ann@Example.COM"},
            service_ids=["s1"],
            start_time=START,
        )
        assert data.new_customer.email == "ann@example.com"

    @pytest.mark.parametrize(
        "customer",
        [
            {},
            {"customer_id": "c1", "new_customer": {"first_name": "A", "last_name": "B"}},
        ],
    )
    def test_exactly_one_customer_form(self, customer):
        with pytest.raises(ValidationError):
            BookingCreate(service_ids=["s1"], start_time=START, **customer)

    def test_naive_start_time_rejected(self):
        with pytest.raises(ValidationError):
            BookingCreate(customer_id="c1", service_ids=["s1"], start_time="2030-01-07T09:00:00")

    def test_empty_service_list_rejected(self):
        with pytest.raises(ValidationError):
            BookingCreate(customer_id="c1", service_ids=[], start_time=START)

    def test_derived_fields_cannot_be_supplied(self):
        with pytest.raises(ValidationError):
            BookingCreate(customer_id="c1", service_ids=["s1"], start_time=START, end_time=START)

    def test_bad_email_rejected(self):
        with pytest.raises(ValidationError):
            BookingCreate(
                new_customer={"first_name": "A", "last_name": "B", "email": "not-an-email"},
                service_ids=["s1"],
                start_time=START,
            )


class TestBookingUpdate:
    def test_explicit_null_is_tracked(self):
        data = BookingUpdate.model_validate({"staff_id": None})
        assert "staff_id" in data.model_fields_set
        assert "vehicle_id" not in data.model_fields_set

    def test_both_customer_forms_rejected(self):
        with pytest.raises(ValidationError):
            BookingUpdate(customer_id="c1", new_customer={"first_name": "A", "last_name": "B"})


class TestMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [(Decimal("85"), "85.00"), ("40.5", "40.50"), (Decimal("0.005"), "0.01"), (0, "0.00")],
    )
    def test_format_money(self, value, expected):
        assert format_money(value) == expected

    def test_money_serializes_as_string(self):
        line = BookingServiceInfo(
            service_id="s1", position=0, unit_price=Decimal("85"), duration_minutes=60
        )
        assert line.model_dump(mode="json")["unit_price"] == "85.00"


class TestEnvelopes:
    def test_success_envelope(self):
        assert ApiResponse[dict](data={"a": 1}).model_dump() == {"success": True, "data": {"a": 1}}

    def test_list_pagination_uses_camel_case(self):
        page = BookingListResponse(items=[], page=1, page_size=20, total_count=0, total_pages=0)
        dumped = page.model_dump(by_alias=True)
        assert dumped == {"items": [], "page": 1, "pageSize": 20, "totalCount": 0, "totalPages": 0}


class TestOrganizationSchemas:
    def test_open_day_needs_ordered_times(self):
        with pytest.raises(ValidationError):
            BusinessHoursDayInput(weekday=0, open_time=time(17), close_time=time(9))

    def test_closed_day_needs_no_times(self):
        assert BusinessHoursDayInput(weekday=6, is_closed=True).is_closed

    def test_weekday_range(self):
        with pytest.raises(ValidationError):
            BusinessHoursDayInput(weekday=7, is_closed=True)

    def test_settings_bounds(self):
        with pytest.raises(ValidationError):
            BookingSettingsUpdate(slot_minutes=0)
        assert BookingSettingsUpdate(slot_minutes=15).model_dump(exclude_unset=True) == {"slot_minutes": 15}
