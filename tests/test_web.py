#!/usr/bin/env python3
"""Tests for the Flask JSON API."""

import json
from datetime import datetime, timedelta

import pytest

from garage import MOTData, MOTError, MOTStatus, MOTTest, Result
from web.app import create_app, status_label

NOW = datetime(2026, 10, 16, 10, 0)

VEHICLE = {
    "make": "Ford",
    "model": "Focus",
    "year": 2018,
    "registration": "ab12cde",
    "mileage": "45000",
    "fuelType": "Diesel",
    "color": "Blue",
    "motDue": "2026-11-01",
}


class FakeMOTClient:
    def __init__(self, result):
        self.result = result

    def check_mot_status(self, registration):
        return self.result


def mot_data():
    test = MOTTest(
        test_result="PASSED",
        completed_date=datetime(2026, 3, 1),
        expiry_date=datetime(2027, 2, 28),
        odometer_value=46123,
        odometer_unit="mi",
    )
    return MOTData(
        registration="AB12CDE",
        make="FORD",
        model="FOCUS",
        primary_colour="Blue",
        manufacture_year=2018,
        fuel_type="Diesel",
        mot_status=MOTStatus.VALID,
        mot_expiry_date=datetime(2027, 2, 28),
        latest_test=test,
        mot_history=[test],
    )


@pytest.fixture
def make_client(store, clock):
    def _make(mot_client=None, data_file_path=None):
        app = create_app(
            store=store, mot_client=mot_client, data_file_path=data_file_path, clock=clock
        )
        app.testing = True
        return app.test_client()

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def vehicle_id(client):
    response = client.post("/api/vehicles", json=VEHICLE)
    assert response.status_code == 201
    return response.get_json()["id"]


def service_type_id(client, name):
    types = client.get("/api/service-types").get_json()
    return next(t["id"] for t in types if t["name"] == name)


def book(client, vehicle_id, when="2026-10-20T09:00:00", name="Brake Service"):
    return client.post(
        "/api/bookings",
        json={
            "vehicleId": vehicle_id,
            "serviceTypeId": service_type_id(client, name),
            "scheduledDate": when,
        },
    )


# =============================================================================
# Vehicles
# =============================================================================


class TestVehicles:
    """Tests for the vehicle endpoints."""

    def test_create(self, client, vehicle_id):
        vehicle = client.get(f"/api/vehicles/{vehicle_id}").get_json()
        assert vehicle["registration"] == "AB12CDE"
        assert vehicle["fuelType"] == "Diesel"
        assert vehicle["displayName"] == "2018 Ford Focus"
        assert vehicle["motStatus"] == "Due Soon"
        assert vehicle["motStatusColor"] == "orange"
        assert vehicle["daysToMot"] == 16
        assert vehicle["serviceStatus"] == "Unknown"

    def test_create_field_errors(self, client):
        response = client.post(
            "/api/vehicles", json=dict(VEHICLE, make="", mileage="lots", year=2030)
        )
        assert response.status_code == 400
        fields = response.get_json()["fields"]
        assert fields["make"] == "Make is required"
        assert fields["mileage"] == "Mileage must be between 0 and 999,999"
        assert fields["year"] == "Year must be between 1900 and 2027"

    def test_duplicate(self, client, vehicle_id):
        response = client.post("/api/vehicles", json=VEHICLE)
        assert response.status_code == 409
        body = response.get_json()
        assert body["error"] == "duplicate-data"
        assert body["suggestion"] == "Please use different values to avoid duplicates."

    def test_body_must_be_object(self, client):
        response = client.post("/api/vehicles", data="nope", content_type="text/plain")
        assert response.status_code == 400
        assert response.get_json()["message"] == (
            "Invalid Input: Request body must be a JSON object"
        )

    def test_not_found(self, client):
        response = client.get("/api/vehicles/missing")
        assert response.status_code == 404
        assert response.get_json()["error"] == "data-not-found"

    def test_list_and_search(self, client, vehicle_id):
        assert [v["id"] for v in client.get("/api/vehicles").get_json()] == [vehicle_id]
        assert client.get("/api/vehicles/search?q=focus").get_json()[0]["id"] == vehicle_id
        assert client.get("/api/vehicles/search?q=").get_json() == []

    def test_update(self, client, vehicle_id):
        response = client.patch(f"/api/vehicles/{vehicle_id}", json={"mileage": 50000})
        assert response.status_code == 200
        assert response.get_json()["mileage"] == 50000

    def test_update_invalid(self, client, vehicle_id):
        response = client.patch(f"/api/vehicles/{vehicle_id}", json={"mileage": "many"})
        assert response.status_code == 400

    def test_create_non_text_fields(self, client):
        response = client.post(
            "/api/vehicles", json=dict(VEHICLE, make=123, registration=["AB12CDE"])
        )
        assert response.status_code == 400
        fields = response.get_json()["fields"]
        assert fields["make"] == "Make must be text"
        assert fields["registration"] == "Registration must be text"

    def test_non_text_date_rejected(self, client):
        response = client.post("/api/vehicles", json=dict(VEHICLE, motDue=20261101))
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid-input"

    def test_update_non_text_field(self, client, vehicle_id):
        response = client.patch(f"/api/vehicles/{vehicle_id}", json={"color": 7})
        assert response.status_code == 400
        assert client.get(f"/api/vehicles/{vehicle_id}").get_json()["color"] == "Blue"

    def test_delete_blocked_then_allowed(self, client, vehicle_id):
        booking = book(client, vehicle_id).get_json()
        assert client.delete(f"/api/vehicles/{vehicle_id}").status_code == 409
        client.post(f"/api/bookings/{booking['id']}/status", json={"status": "Cancelled"})
        assert client.delete(f"/api/vehicles/{vehicle_id}").status_code == 204
        assert client.get("/api/vehicles").get_json() == []

    def test_suggestions(self, client, vehicle_id):
        titles = [r["title"] for r in client.get(f"/api/vehicles/{vehicle_id}/suggestions").get_json()]
        assert titles == ["Brake System Check Due", "MOT Test Due Soon"]


# =============================================================================
# Bookings and reminders
# =============================================================================


class TestBookings:
    """Tests for the booking endpoints."""

    def test_create(self, client, vehicle_id):
        response = book(client, vehicle_id)
        assert response.status_code == 201
        booking = response.get_json()
        assert booking["serviceName"] == "Brake Service"
        assert booking["estimatedCost"] == 88.0
        assert booking["status"] == "Scheduled"
        assert booking["statusColor"] == "blue"

    def test_same_day_conflict(self, client, vehicle_id):
        book(client, vehicle_id)
        response = book(client, vehicle_id, "2026-10-20T15:00:00", "Vehicle Servicing")
        assert response.status_code == 409

    def test_utc_date_stored_naive(self, client, vehicle_id):
        response = book(client, vehicle_id, "2026-11-20T10:00:00Z")
        assert response.status_code == 201
        assert response.get_json()["scheduledDate"] == "2026-11-20T10:00:00"

    def test_offset_date_converted_to_utc(self, client, vehicle_id):
        book(client, vehicle_id, "2026-10-20T09:00:00")
        response = book(client, vehicle_id, "2026-10-22T10:00:00+01:00", "Vehicle Servicing")
        assert response.status_code == 201
        assert response.get_json()["scheduledDate"] == "2026-10-22T09:00:00"
        dates = [b["scheduledDate"] for b in client.get("/api/bookings").get_json()]
        assert dates == ["2026-10-20T09:00:00", "2026-10-22T09:00:00"]

    def test_non_text_reference(self, client, vehicle_id):
        response = client.post(
            "/api/bookings",
            json={"vehicleId": [vehicle_id], "serviceTypeId": "x", "scheduledDate": "2026-10-20"},
        )
        assert response.status_code == 400

    def test_missing_date(self, client, vehicle_id):
        response = client.post("/api/bookings", json={"vehicleId": vehicle_id})
        assert response.status_code == 400

    def test_lifecycle(self, client, vehicle_id):
        booking_id = book(client, vehicle_id).get_json()["id"]
        for status in ("Confirmed", "In Progress"):
            response = client.post(f"/api/bookings/{booking_id}/status", json={"status": status})
            assert response.status_code == 200
        response = client.post(
            f"/api/bookings/{booking_id}/status",
            json={"status": "Completed", "actualCost": "110.50"},
        )
        assert response.get_json()["actualCost"] == 110.5
        vehicle = client.get(f"/api/vehicles/{vehicle_id}").get_json()
        assert vehicle["serviceStatus"] == "Up To Date"
        assert client.delete(f"/api/bookings/{booking_id}").status_code == 204

    def test_invalid_transition(self, client, vehicle_id):
        booking_id = book(client, vehicle_id).get_json()["id"]
        response = client.post(f"/api/bookings/{booking_id}/status", json={"status": "Completed"})
        assert response.status_code == 409
        assert "Invalid status transition" in response.get_json()["message"]

    def test_unknown_status(self, client, vehicle_id):
        booking_id = book(client, vehicle_id).get_json()["id"]
        response = client.post(f"/api/bookings/{booking_id}/status", json={"status": "Lost"})
        assert response.status_code == 400

    def test_filters(self, client, vehicle_id):
        book(client, vehicle_id)
        assert len(client.get("/api/bookings?active=true").get_json()) == 1
        assert client.get("/api/bookings?vehicleId=other").get_json() == []


class TestReminders:
    """Tests for the reminder endpoints."""

    def test_create_complete_delete(self, client, vehicle_id):
        response = client.post(
            "/api/reminders",
            json={
                "vehicleId": vehicle_id,
                "title": "Road tax",
                "description": "Renew road tax",
                "dueDate": "2026-10-25",
                "type": "Road Tax",
            },
        )
        assert response.status_code == 201
        reminder_id = response.get_json()["id"]

        assert len(client.get("/api/reminders?days=30").get_json()) == 1
        response = client.post(f"/api/reminders/{reminder_id}/complete")
        assert response.get_json()["isCompleted"] is True
        assert client.get("/api/reminders").get_json() == []
        assert len(client.get("/api/reminders?all=1").get_json()) == 1
        assert client.delete(f"/api/reminders/{reminder_id}").status_code == 204
        assert client.delete(f"/api/reminders/{reminder_id}").status_code == 404

    def test_unknown_type(self, client, vehicle_id):
        response = client.post(
            "/api/reminders",
            json={"vehicleId": vehicle_id, "title": "x", "description": "y",
                  "dueDate": "2026-10-25", "type": "Valeting"},
        )
        assert response.status_code == 400


# =============================================================================
# MOT
# =============================================================================


class TestMOT:
    """Tests for the MOT endpoints."""

    def test_not_configured(self, make_client, monkeypatch):
        for name in ("MOT_CLIENT_ID", "MOT_CLIENT_SECRET", "MOT_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        response = make_client().get("/api/mot/AB12CDE")
        assert response.status_code == 502
        body = response.get_json()
        assert body["error"] == "authentication-error"
        assert body["manualEntry"] is True

    def test_lookup(self, make_client):
        client = make_client(FakeMOTClient(Result.success(mot_data())))
        body = client.get("/api/mot/AB12CDE").get_json()
        assert body["motStatus"] == "Valid"
        assert body["motTests"][0]["odometerValue"] == 46123
        assert body["vehicleFields"]["fuel_type"] == "Diesel"
        assert body["vehicleFields"]["mileage"] == 46123

    @pytest.mark.parametrize(
        "error, status",
        [
            (MOTError.vehicle_not_found(), 404),
            (MOTError.rate_limit_exceeded(), 429),
            (MOTError.server_error(), 503),
            (MOTError.network_error("timed out"), 502),
        ],
    )
    def test_lookup_errors(self, make_client, error, status):
        client = make_client(FakeMOTClient(Result.failure(error)))
        response = client.get("/api/mot/AB12CDE")
        assert response.status_code == status
        assert response.get_json()["retryable"] == error.is_retryable

    def test_refresh_vehicle(self, make_client):
        client = make_client(FakeMOTClient(Result.success(mot_data())))
        vehicle_id = client.post("/api/vehicles", json=VEHICLE).get_json()["id"]
        body = client.post(f"/api/vehicles/{vehicle_id}/mot").get_json()
        assert body["vehicle"]["motDue"] == "2027-02-28T00:00:00"
        assert body["vehicle"]["mileage"] == 46123
        assert body["vehicle"]["motStatus"] == "Valid"


# =============================================================================
# Dashboard, backup and persistence
# =============================================================================


class TestMisc:
    """Tests for dashboard, backup, contact and data file persistence."""

    def test_dashboard(self, client, vehicle_id):
        book(client, vehicle_id)
        body = client.get("/api/dashboard").get_json()
        assert body["counts"]["vehicles"] == 1
        assert [v["id"] for v in body["dueVehicles"]] == [vehicle_id]
        assert len(body["activeBookings"]) == 1

    def test_backup_download(self, client, vehicle_id):
        response = client.get("/api/backup")
        assert response.headers["Content-Disposition"] == (
            "attachment; filename=BVM_Backup_16-10-2026.json"
        )
        assert response.get_json()["version"] == "1.0"

    def test_contact(self, client):
        body = client.get("/api/contact").get_json()
        assert body["phoneLink"] == "tel:+441304732747"

    def test_changes_written_to_data_file(self, make_client, tmp_path):
        path = tmp_path / "garage.json"
        client = make_client(data_file_path=str(path))
        client.post("/api/vehicles", json=VEHICLE)
        saved = json.loads(path.read_text())
        assert saved["vehicles"][0]["registration"] == "AB12CDE"

    def test_app_opens_data_file(self, tmp_path, clock):
        path = tmp_path / "garage.json"
        app = create_app(data_file_path=str(path), clock=clock)
        client = app.test_client()
        client.post("/api/vehicles", json=VEHICLE)
        reopened = create_app(data_file_path=str(path), clock=clock).test_client()
        assert len(reopened.get("/api/vehicles").get_json()) == 1


class TestStatusLabel:
    """Tests for status_label."""

    def test_labels(self):
        assert status_label(MOTStatus.DUE_SOON) == "Due Soon"
        assert status_label(MOTStatus.VALID) == "Valid"
