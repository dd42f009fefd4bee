"""Tests for the public reservation and availability endpoints.

Covers:
- POST /reservations (201, 409 DatesUnavailable, 400 validation, Idempotency-Key)
- PATCH /reservations/{id}/cancel (200, 403, 404, 409)
- GET /reservations?role=guest|host and GET /reservations/{id}
- GET /availability
- No auth (401)
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from staybook.api.auth import get_current_principal
from staybook.api.dependencies import get_availability_service
from staybook.api.factory import create_app
from staybook.domain.models import Principal

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def caller():
    """Mutable holder so a test can switch principal between requests."""
    return {"principal": Principal(id="guest-1")}


@pytest.fixture
def client(service, caller):
    app = create_app(role="public")
    app.dependency_overrides[get_current_principal] = lambda: caller["principal"]
    app.dependency_overrides[get_availability_service] = lambda: service
    return TestClient(app)


def _body(**overrides):
    body = {
        "listing": "listing-x",
        "checkIn": "2024-03-01",
        "checkOut": "2024-03-04",
        "guests": 2,
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# POST /reservations
# ---------------------------------------------------------------------------


class TestCreateReservation:
    def test_created(self, client):
        response = client.post("/reservations", json=_body())

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["totalPrice"] == 329
        assert data["listing"] == "listing-x"
        assert data["checkIn"] == "2024-03-01"
        assert data["checkOut"] == "2024-03-04"
        assert data["guests"] == 2
        assert data["id"]
        assert "guestId" not in data

    def test_overlap_is_409_with_dates(self, client, caller):
        client.post("/reservations", json=_body())
        caller["principal"] = Principal(id="guest-2")

        response = client.post("/reservations", json=_body(checkIn="2024-03-03", checkOut="2024-03-05"))

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "DatesUnavailable"
        assert data["checkIn"] == "2024-03-03"
        assert data["checkOut"] == "2024-03-05"
        assert data["conflictCount"] == 1

    def test_adjacent_is_201(self, client):
        client.post("/reservations", json=_body())
        response = client.post("/reservations", json=_body(checkIn="2024-03-04", checkOut="2024-03-06"))
        assert response.status_code == 201

    def test_equal_dates_is_400_invalid_range(self, client):
        response = client.post("/reservations", json=_body(checkOut="2024-03-01"))

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRange"
        assert response.json()["field"] == "check_out"

    def test_too_many_guests_is_400(self, client):
        response = client.post("/reservations", json=_body(guests=9))

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequest"
        assert response.json()["field"] == "guests"

    def test_missing_field_is_400(self, client):
        body = _body()
        del body["guests"]

        response = client.post("/reservations", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequest"
        assert response.json()["field"] == "guests"

    @pytest.mark.parametrize("guests", [True, "2", 2.0])
    def test_non_integer_guests_is_400(self, client, guests):
        response = client.post("/reservations", json=_body(guests=guests))

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequest"
        assert response.json()["field"] == "guests"

    def test_malformed_date_is_400(self, client):
        response = client.post("/reservations", json=_body(checkIn="03/01/2024"))
        assert response.status_code == 400
        assert response.json()["field"] == "checkIn"

    def test_unknown_field_rejected(self, client):
        response = client.post("/reservations", json=_body(totalPrice=1))
        assert response.status_code == 400

    def test_idempotency_key_replays(self, client):
        headers = {"Idempotency-Key": "req-abc"}
        first = client.post("/reservations", json=_body(), headers=headers)
        second = client.post("/reservations", json=_body(), headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["id"] == first.json()["id"]

    def test_idempotency_key_mismatch_is_400(self, client):
        headers = {"Idempotency-Key": "req-abc"}
        client.post("/reservations", json=_body(), headers=headers)

        response = client.post(
            "/reservations",
            json=_body(checkIn="2024-04-01", checkOut="2024-04-02"),
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["field"] == "idempotency_key"


# ---------------------------------------------------------------------------
# PATCH /reservations/{id}/cancel
# ---------------------------------------------------------------------------


class TestCancelReservation:
    def test_guest_cancels(self, client):
        reservation_id = client.post("/reservations", json=_body()).json()["id"]

        response = client.patch(f"/reservations/{reservation_id}/cancel")

        assert response.status_code == 200
        assert response.json()["id"] == reservation_id
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancelReason"] == "guest"

    def test_cancel_frees_dates(self, client, caller):
        reservation_id = client.post("/reservations", json=_body()).json()["id"]
        client.patch(f"/reservations/{reservation_id}/cancel")
        caller["principal"] = Principal(id="guest-2")

        assert client.post("/reservations", json=_body()).status_code == 201

    def test_other_principal_is_403_and_opaque(self, client, caller, store):
        reservation_id = client.post("/reservations", json=_body()).json()["id"]
        caller["principal"] = Principal(id="guest-2")

        response = client.patch(f"/reservations/{reservation_id}/cancel")

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden", "detail": "not allowed"}
        assert store.get(reservation_id).status.value == "pending"

    def test_unknown_is_404(self, client):
        response = client.patch("/reservations/does-not-exist/cancel")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_double_cancel_is_409(self, client):
        reservation_id = client.post("/reservations", json=_body()).json()["id"]
        client.patch(f"/reservations/{reservation_id}/cancel")

        response = client.patch(f"/reservations/{reservation_id}/cancel")

        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyCancelled"


# ---------------------------------------------------------------------------
# GET /reservations
# ---------------------------------------------------------------------------


class TestListReservations:
    def test_guest_role_is_default(self, client):
        client.post("/reservations", json=_body())

        response = client.get("/reservations")

        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_host_role(self, client, caller, clock):
        client.post("/reservations", json=_body())
        clock.advance(minutes=1)
        client.post("/reservations", json=_body(listing="listing-y", guests=1))
        clock.advance(minutes=1)
        client.post("/reservations", json=_body(listing="listing-z"))
        caller["principal"] = Principal(id="host-1")

        response = client.get("/reservations", params={"role": "host"})

        assert response.status_code == 200
        assert [r["listing"] for r in response.json()] == ["listing-y", "listing-x"]

    def test_host_sees_nothing_as_guest(self, client, caller):
        client.post("/reservations", json=_body())
        caller["principal"] = Principal(id="host-1")

        assert client.get("/reservations", params={"role": "guest"}).json() == []

    def test_invalid_role_is_400(self, client):
        response = client.get("/reservations", params={"role": "admin"})
        assert response.status_code == 400
        assert response.json()["field"] == "role"

    def test_get_one(self, client, caller):
        reservation_id = client.post("/reservations", json=_body()).json()["id"]

        assert client.get(f"/reservations/{reservation_id}").status_code == 200
        caller["principal"] = Principal(id="host-1")
        assert client.get(f"/reservations/{reservation_id}").status_code == 200
        caller["principal"] = Principal(id="guest-2")
        assert client.get(f"/reservations/{reservation_id}").status_code == 403


# ---------------------------------------------------------------------------
# GET /availability
# ---------------------------------------------------------------------------


class TestAvailability:
    def _query(self, client, check_in, check_out, listing="listing-x"):
        return client.get(
            "/availability",
            params={"listing": listing, "checkIn": check_in, "checkOut": check_out},
        )

    def test_available(self, client):
        response = self._query(client, "2024-03-01", "2024-03-04")
        assert response.status_code == 200
        assert response.json() == {"available": True, "conflictCount": 0}

    def test_unavailable(self, client):
        client.post("/reservations", json=_body())
        response = self._query(client, "2024-03-02", "2024-03-03")
        assert response.json() == {"available": False, "conflictCount": 1}

    def test_invalid_range(self, client):
        response = self._query(client, "2024-03-04", "2024-03-01")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRange"

    def test_unknown_listing(self, client):
        response = self._query(client, "2024-03-01", "2024-03-04", listing="nope")
        assert response.status_code == 404

    def test_inactive_listing_unavailable(self, client):
        response = self._query(client, "2024-03-01", "2024-03-04", listing="listing-off")
        assert response.status_code == 200
        assert response.json() == {"available": False, "conflictCount": 0}

    def test_missing_param(self, client):
        response = client.get("/availability", params={"listing": "listing-x"})
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestNoAuth:
    @pytest.fixture
    def anon_client(self, service):
        app = create_app(role="public")
        app.dependency_overrides[get_availability_service] = lambda: service
        return TestClient(app)

    def test_create_without_token_is_401(self, anon_client, store):
        response = anon_client.post("/reservations", json=_body())
        assert response.status_code == 401
        assert store.list_for_guest("guest-1") == []

    def test_list_without_token_is_401(self, anon_client):
        assert anon_client.get("/reservations").status_code == 401

    def test_availability_is_public(self, anon_client):
        response = anon_client.get(
            "/availability",
            params={"listing": "listing-x", "checkIn": "2024-03-01", "checkOut": "2024-03-02"},
        )
        assert response.status_code == 200
