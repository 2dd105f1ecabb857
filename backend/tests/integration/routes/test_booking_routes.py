"""HTTP-level tests for the v1 booking, availability and ops endpoints."""

from datetime import time
from decimal import Decimal

from tests.conftest import MONDAY

STAFF_HEADERS = {"X-Actor-Id": "01HSTAFF00000000000000000A", "X-Actor-Role": "staff"}
CLIENT_HEADERS = {"X-Actor-Id": "01HCLIENT0000000000000000A", "X-Actor-Role": "client"}


def _booking_payload(resource_id, **overrides):
    payload = {
        "resource_id": resource_id,
        "booking_date": MONDAY.isoformat(),
        "start_time": "18:00",
        "duration_minutes": 60,
        "client_name": "Lucia Perez",
    }
    payload.update(overrides)
    return payload


class TestCreateBookingRoute:
    def test_created(self, client, court):
        response = client.post("/api/v1/bookings", json=_booking_payload(court.id), headers=CLIENT_HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["start_time"] == "18:00:00"
        assert body["end_time"] == "19:00:00"
        assert Decimal(body["total_amount"]) == Decimal("10000")
        assert body["check_in_code"]

    def test_overlap_is_409(self, client, court, make_booking):
        make_booking(start=time(18, 30), end=time(19, 30))

        response = client.post("/api/v1/bookings", json=_booking_payload(court.id), headers=CLIENT_HEADERS)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "BOOKING_CONFLICT"

    def test_unknown_resource_is_404(self, client, establishment):
        response = client.post(
            "/api/v1/bookings", json=_booking_payload("01JNOPE0000000000000000000"), headers=CLIENT_HEADERS
        )
        assert response.status_code == 404

    def test_outside_hours_is_422(self, client, court):
        response = client.post(
            "/api/v1/bookings",
            json=_booking_payload(court.id, start_time="21:30"),
            headers=CLIENT_HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "OUTSIDE_OPENING_HOURS"

    def test_malformed_date_is_rejected(self, client, court):
        response = client.post(
            "/api/v1/bookings",
            json=_booking_payload(court.id, booking_date="2025-03-03T18:00:00"),
            headers=CLIENT_HEADERS,
        )
        assert response.status_code == 422

    def test_unknown_field_is_rejected(self, client, court):
        response = client.post(
            "/api/v1/bookings",
            json=_booking_payload(court.id, court_number=3),
            headers=CLIENT_HEADERS,
        )
        assert response.status_code == 422

    def test_unknown_role_is_400(self, client, court):
        response = client.post(
            "/api/v1/bookings",
            json=_booking_payload(court.id),
            headers={"X-Actor-Id": "someone", "X-Actor-Role": "superuser"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_ACTOR_ROLE"


class TestBookingLifecycleRoutes:
    def test_get_booking(self, client, make_booking):
        booking = make_booking()

        response = client.get(f"/api/v1/bookings/{booking.id}")

        assert response.status_code == 200
        assert response.json()["id"] == booking.id

    def test_get_missing_booking(self, client, establishment):
        response = client.get("/api/v1/bookings/01JNOPE0000000000000000000")
        assert response.status_code == 404

    def test_status_transition(self, client, make_booking):
        booking = make_booking(status="confirmed")

        response = client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "in_progress"},
            headers=STAFF_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"
        assert response.json()["started_at"] is not None

    def test_invalid_transition_is_422(self, client, make_booking):
        booking = make_booking(status="pending")

        response = client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "completed"},
            headers=STAFF_HEADERS,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    def test_cancel_reports_refund_estimate(self, client, make_booking):
        booking = make_booking(deposit_amount=Decimal("4000"))

        response = client.post(
            f"/api/v1/bookings/{booking.id}/cancel",
            json={"reason": "Rain"},
            headers=CLIENT_HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["booking"]["status"] == "cancelled"
        assert body["booking"]["cancellation_reason"] == "Rain"
        assert body["refund_estimate"]["policy"] == "partial_refund"
        assert Decimal(body["refund_estimate"]["amount"]) == Decimal("2000")

    def test_move_booking(self, client, court, make_booking):
        booking = make_booking()

        response = client.patch(
            f"/api/v1/bookings/{booking.id}/move",
            json={"start_time": "20:00"},
            headers=STAFF_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["start_time"] == "20:00:00"
        assert response.json()["end_time"] == "21:00:00"


class TestPaymentRoute:
    def test_client_is_forbidden(self, client, make_booking):
        booking = make_booking(status="pending")

        response = client.post(
            f"/api/v1/bookings/{booking.id}/payments",
            json={"amount": "5000", "method": "cash"},
            headers=CLIENT_HEADERS,
        )

        assert response.status_code == 403

    def test_staff_registers_payment(self, client, make_booking):
        booking = make_booking(status="pending")

        response = client.post(
            f"/api/v1/bookings/{booking.id}/payments",
            json={"amount": "5000", "method": "cash"},
            headers=STAFF_HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["payment_status"] == "partial"
        assert Decimal(response.json()["deposit_amount"]) == Decimal("5000")


class TestAvailabilityRoute:
    def test_slot_grid(self, client, court, make_booking):
        make_booking(start=time(18, 0), end=time(19, 0))

        response = client.get(
            f"/api/v1/resources/{court.id}/availability",
            params={"date": MONDAY.isoformat(), "duration_minutes": 60},
        )

        assert response.status_code == 200
        slots = response.json()["slots"]
        assert slots[0]["start"] == "08:00"
        assert slots[-1]["end"] == "22:00"
        booked = [s["start"] for s in slots if s["is_booked"]]
        assert booked == ["17:30", "18:00", "18:30"]

    def test_unknown_resource(self, client, establishment):
        response = client.get(
            "/api/v1/resources/01JNOPE0000000000000000000/availability",
            params={"date": MONDAY.isoformat()},
        )
        assert response.status_code == 404


class TestOpsRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics_exposes_booking_counters(self, client, court):
        client.post("/api/v1/bookings", json=_booking_payload(court.id), headers=CLIENT_HEADERS)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "courtbook_service_operations_total" in response.text
