# backend/tests/integration/test_organization_routes.py
"""Business hours and booking settings endpoints."""

import pytest

from bookdesk.core.enums import RoleName

pytestmark = pytest.mark.integration

HOURS = "/api/v1/organization/business-hours"
SETTINGS = "/api/v1/organization/booking-settings"


class TestBusinessHours:
    def test_read_week(self, client, auth_headers):
        response = client.get(HOURS, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["timezone"] == "Australia/Adelaide"
        assert [day["weekday"] for day in data["days"]] == list(range(7))
        monday, saturday = data["days"][0], data["days"][5]
        assert monday["day_name"] == "monday"
        assert monday["open_time"] == "09:00:00"
        assert monday["close_time"] == "17:00:00"
        assert monday["is_closed"] is False
        assert saturday["is_closed"] is True
        assert saturday["open_time"] is None

    def test_admin_replaces_week(self, client, admin_headers):
        response = client.put(
            HOURS,
            json={"days": [{"weekday": 5, "open_time": "10:00", "close_time": "14:00"}]},
            headers=admin_headers,
        )

        assert response.status_code == 200, response.text
        days = response.json()["data"]["days"]
        assert days[5]["is_closed"] is False
        assert days[5]["open_time"] == "10:00:00"
        assert all(day["is_closed"] for i, day in enumerate(days) if i != 5)

    def test_new_hours_apply_to_bookings(self, client, admin_headers, auth_headers, booking_payload):
        client.put(
            HOURS,
            json={"days": [{"weekday": 0, "open_time": "12:00", "close_time": "17:00"}]},
            headers=admin_headers,
        )

        response = client.post("/api/v1/bookings", json=booking_payload(10), headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "OUTSIDE_HOURS"

    def test_manager_cannot_change_hours(self, client, auth_headers):
        response = client.put(HOURS, json={"days": []}, headers=auth_headers)
        assert response.status_code == 403

    def test_inverted_interval_rejected(self, client, admin_headers):
        response = client.put(
            HOURS,
            json={"days": [{"weekday": 0, "open_time": "17:00", "close_time": "09:00"}]},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_duplicate_weekday_rejected(self, client, admin_headers):
        day = {"weekday": 1, "open_time": "09:00", "close_time": "12:00"}
        response = client.put(HOURS, json={"days": [day, day]}, headers=admin_headers)
        assert response.status_code == 400


class TestBookingSettings:
    def test_read_settings(self, client, auth_headers_for):
        response = client.get(SETTINGS, headers=auth_headers_for(RoleName.VIEWER))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["slot_minutes"] == 30
        assert data["min_lead_minutes"] == 0
        assert data["max_horizon_days"] == 30
        assert data["allow_overlap_per_staff"] is False

    def test_partial_update(self, client, admin_headers):
        response = client.put(SETTINGS, json={"slot_minutes": 15}, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["slot_minutes"] == 15
        assert data["max_horizon_days"] == 30

    def test_slot_grid_follows_settings(self, client, admin_headers, auth_headers, catalog, monday):
        client.put(SETTINGS, json={"slot_minutes": 60}, headers=admin_headers)

        response = client.get(
            "/api/v1/bookings/available-slots",
            params={"date": monday.isoformat(), "service_ids": [catalog.s1.id]},
            headers=auth_headers,
        )

        assert len(response.json()["data"]["slots"]) == 8

    def test_manager_cannot_change_settings(self, client, auth_headers):
        assert client.put(SETTINGS, json={"slot_minutes": 15}, headers=auth_headers).status_code == 403

    @pytest.mark.parametrize("body", [{"slot_minutes": 0}, {"max_horizon_days": -1}, {"colour": "red"}])
    def test_invalid_settings(self, client, admin_headers, body):
        assert client.put(SETTINGS, json=body, headers=admin_headers).status_code == 400
