"""Tests for the booking lifecycle endpoints."""

from datetime import timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from tests.conftest import CUSTOMER, NOW, OTHER_CUSTOMER, PROFESSIONAL
from tests.fakes import FixedClock, InMemoryPaymentProcessor, RecordingEmitter
from tests.unit.api.conftest import auth

START = NOW + timedelta(days=3)


def _create_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "professional_ref": PROFESSIONAL,
        "scheduled_start": START.isoformat(),
        "duration_minutes": 240,
        "amount": 100_000,
        "service_name": "Deep cleaning",
        "payment_method_ref": "pm_card_visa",
    }
    body.update(overrides)
    return body


def _create(client: TestClient) -> dict[str, Any]:
    response = client.post("/api/bookings", json=_create_body(), headers=auth(CUSTOMER))
    assert response.status_code == 201
    return response.json()["booking"]


def _confirm(client: TestClient) -> dict[str, Any]:
    booking = _create(client)
    response = client.post(
        f"/api/bookings/{booking['booking_id']}/confirm", headers=auth(PROFESSIONAL)
    )
    assert response.status_code == 200
    return response.json()["booking"]


# === Create ===


class TestCreateBooking:
    def test_created_and_authorized(self, client: TestClient, emitter: RecordingEmitter) -> None:
        response = client.post("/api/bookings", json=_create_body(), headers=auth(CUSTOMER))

        assert response.status_code == 201
        data = response.json()
        assert data["booking"]["status"] == "authorized"
        assert data["booking"]["customer_ref"] == CUSTOMER
        assert data["booking"]["amount_authorized"] == 100_000
        assert data["events"][0]["event_type"] == "booking.created"
        # Events were handed to the emitter before responding
        assert len(emitter.batches) == 1

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.post("/api/bookings", json=_create_body())

        assert response.status_code == 401

    def test_naive_start_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/api/bookings",
            json=_create_body(scheduled_start="2026-03-06T12:00:00"),
            headers=auth(CUSTOMER),
        )

        assert response.status_code == 422

    def test_past_start(self, client: TestClient) -> None:
        response = client.post(
            "/api/bookings",
            json=_create_body(scheduled_start=(NOW - timedelta(hours=1)).isoformat()),
            headers=auth(CUSTOMER),
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "ERR_004"

    def test_card_declined(self, client: TestClient, processor: InMemoryPaymentProcessor) -> None:
        processor.decline_code = "insufficient_funds"

        response = client.post("/api/bookings", json=_create_body(), headers=auth(CUSTOMER))

        assert response.status_code == 402
        body = response.json()
        assert body["error_code"] == "ERR_PAY_001"
        assert body["details"]["processor_code"] == "insufficient_funds"


# === Read and access ===


class TestGetBooking:
    def test_party_reads_booking(self, client: TestClient) -> None:
        booking = _create(client)

        response = client.get(f"/api/bookings/{booking['booking_id']}", headers=auth(PROFESSIONAL))

        assert response.status_code == 200
        assert response.json()["booking_id"] == booking["booking_id"]

    def test_stranger_forbidden(self, client: TestClient) -> None:
        booking = _create(client)

        response = client.get(
            f"/api/bookings/{booking['booking_id']}", headers=auth(OTHER_CUSTOMER)
        )

        assert response.status_code == 403

    def test_unknown_booking(self, client: TestClient) -> None:
        response = client.get("/api/bookings/does-not-exist", headers=auth(CUSTOMER))

        assert response.status_code == 404
        assert response.json()["error_code"] == "ERR_006"


# === Professional actions ===


class TestConfirmAndDecline:
    def test_professional_confirms(self, client: TestClient) -> None:
        booking = _confirm(client)

        assert booking["status"] == "confirmed"
        assert booking["confirmed_at"] is not None

    def test_customer_cannot_confirm(self, client: TestClient) -> None:
        booking = _create(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/confirm", headers=auth(CUSTOMER)
        )

        assert response.status_code == 403

    def test_confirm_twice_conflicts(self, client: TestClient) -> None:
        booking = _confirm(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/confirm", headers=auth(PROFESSIONAL)
        )

        assert response.status_code == 409

    def test_decline_with_reason(
        self, client: TestClient, processor: InMemoryPaymentProcessor
    ) -> None:
        booking = _create(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/decline",
            json={"reason": "Fully booked"},
            headers=auth(PROFESSIONAL),
        )

        assert response.status_code == 200
        declined = response.json()["booking"]
        assert declined["status"] == "declined"
        assert declined["declined_reason"] == "Fully booked"
        assert processor.holds[booking["hold_id"]].status.value == "voided"

    def test_decline_without_body(self, client: TestClient) -> None:
        booking = _create(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/decline", headers=auth(PROFESSIONAL)
        )

        assert response.status_code == 200


# === Cancellation ===


class TestCancellation:
    def test_preview(self, client: TestClient, clock: FixedClock) -> None:
        booking = _confirm(client)
        clock.advance(hours=42)

        response = client.get(
            f"/api/bookings/{booking['booking_id']}/cancellation-preview", headers=auth(CUSTOMER)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["policy"]["refund_percentage"] == 50
        assert data["refund_amount"] == 50_000
        assert data["policy_description"].startswith("Cancellation Policy:")

    def test_cancel(self, client: TestClient, clock: FixedClock, emitter: RecordingEmitter) -> None:
        booking = _confirm(client)
        clock.advance(hours=42)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/cancel",
            json={"reason": "Change of plans"},
            headers=auth(CUSTOMER),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["booking"]["status"] == "canceled"
        assert data["refund_percentage"] == 50
        assert data["refund_amount"] == 50_000
        assert data["action"] == "voided"
        assert emitter.batches[-1][0].recipient_ref == PROFESSIONAL

    def test_cancel_after_start_blocked(self, client: TestClient, clock: FixedClock) -> None:
        booking = _confirm(client)
        clock.advance(hours=80)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/cancel", headers=auth(CUSTOMER)
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "ERR_001"
        assert body["details"]["refund_percentage"] == 0
        assert body["details"]["refund_amount"] == 0


# === Reschedule ===


class TestReschedule:
    def test_reschedule_requires_reconfirmation(self, client: TestClient) -> None:
        booking = _confirm(client)
        new_start = NOW + timedelta(days=6)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/reschedule",
            json={"new_start": new_start.isoformat(), "new_duration_minutes": 120},
            headers=auth(CUSTOMER),
        )

        assert response.status_code == 200
        data = response.json()["booking"]
        assert data["status"] == "authorized"
        assert data["duration_minutes"] == 120
        assert data["confirmed_at"] is None

    def test_reschedule_into_past(self, client: TestClient) -> None:
        booking = _confirm(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/reschedule",
            json={"new_start": NOW.isoformat()},
            headers=auth(CUSTOMER),
        )

        assert response.status_code == 422
        assert response.json()["details"]["field"] == "new_start"


# === Completion ===


class TestCompletion:
    def test_check_in_and_complete(self, client: TestClient) -> None:
        booking = _confirm(client)
        booking_id = booking["booking_id"]

        check_in = client.post(f"/api/bookings/{booking_id}/check-in", headers=auth(PROFESSIONAL))
        response = client.post(
            f"/api/bookings/{booking_id}/complete",
            json={"final_amount": 90_000},
            headers=auth(PROFESSIONAL),
        )

        assert check_in.json()["booking"]["status"] == "in_progress"
        assert response.status_code == 200
        data = response.json()
        assert data["booking"]["status"] == "completed"
        assert data["amount_captured"] == 90_000
        assert data["recurrence"] is None

    def test_complete_before_check_in(self, client: TestClient) -> None:
        booking = _confirm(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/complete", headers=auth(PROFESSIONAL)
        )

        assert response.status_code == 409

    def test_customer_cannot_check_in(self, client: TestClient) -> None:
        booking = _confirm(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/check-in", headers=auth(CUSTOMER)
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "ERR_007"

    def test_customer_cannot_set_final_amount(
        self, client: TestClient, processor: InMemoryPaymentProcessor
    ) -> None:
        booking_id = _confirm(client)["booking_id"]
        client.post(f"/api/bookings/{booking_id}/check-in", headers=auth(PROFESSIONAL))

        response = client.post(
            f"/api/bookings/{booking_id}/complete",
            json={"final_amount": 1},
            headers=auth(CUSTOMER),
        )

        assert response.status_code == 403
        assert processor.operations("capture") == []
        current = client.get(f"/api/bookings/{booking_id}", headers=auth(CUSTOMER)).json()
        assert current["status"] == "in_progress"

    @pytest.mark.parametrize("path", ["check-in", "complete", "reconcile", "authorize"])
    def test_stranger_forbidden(self, client: TestClient, path: str) -> None:
        booking = _create(client)

        response = client.post(
            f"/api/bookings/{booking['booking_id']}/{path}", headers=auth(OTHER_CUSTOMER)
        )

        assert response.status_code == 403
