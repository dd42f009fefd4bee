"""Tests for OIDC JWT authentication."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
import requests
from fastapi import HTTPException
from fastapi.testclient import TestClient

from staybook.api.auth import verify_token
from staybook.api.dependencies import get_availability_service
from staybook.api.factory import create_app

from .helpers import (
    AUDIENCE,
    ISSUER,
    JWKS_URL,
    create_jwks,
    create_token,
    generate_rsa_keypair,
)


@pytest.fixture
def rsa_keypair():
    return generate_rsa_keypair()


@pytest.fixture
def jwks(rsa_keypair):
    _, public_key = rsa_keypair
    return create_jwks(public_key)


@pytest.fixture
def oidc_env(monkeypatch):
    monkeypatch.setenv("OIDC_ISSUER", ISSUER)
    monkeypatch.setenv("OIDC_AUDIENCE", AUDIENCE)
    monkeypatch.setenv("OIDC_JWKS_URL", JWKS_URL)


@pytest.fixture
def mock_jwks_fetch(jwks):
    with patch("staybook.api.auth._fetch_jwks") as mock:
        mock.return_value = jwks
        yield mock


@pytest.fixture
def client(service):
    app = create_app(role="public")
    app.dependency_overrides[get_availability_service] = lambda: service
    return TestClient(app)


class TestVerifyToken:
    def test_valid_token_returns_subject(self, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        assert verify_token(create_token(private_key, sub="guest-42")) == "guest-42"

    def test_expired_token(self, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(private_key, exp=int(time.time()) - 60)

        with pytest.raises(HTTPException) as exc_info:
            verify_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired"

    def test_wrong_audience(self, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        with pytest.raises(HTTPException) as exc_info:
            verify_token(create_token(private_key, aud="someone-else"))
        assert exc_info.value.status_code == 401

    def test_wrong_issuer(self, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        with pytest.raises(HTTPException) as exc_info:
            verify_token(create_token(private_key, iss="https://evil.example"))
        assert exc_info.value.status_code == 401

    def test_signed_by_other_key(self, oidc_env, mock_jwks_fetch):
        other_private, _ = generate_rsa_keypair()
        with pytest.raises(HTTPException) as exc_info:
            verify_token(create_token(other_private))
        assert exc_info.value.status_code == 401

    def test_garbage_token(self, oidc_env, mock_jwks_fetch):
        with pytest.raises(HTTPException) as exc_info:
            verify_token("not-a-jwt")
        assert exc_info.value.status_code == 401

    def test_not_configured_fails_closed(self, rsa_keypair, monkeypatch, mock_jwks_fetch):
        for name in ("OIDC_ISSUER", "OIDC_AUDIENCE", "OIDC_JWKS_URL"):
            monkeypatch.delenv(name, raising=False)
        private_key, _ = rsa_keypair

        with pytest.raises(HTTPException) as exc_info:
            verify_token(create_token(private_key))

        assert exc_info.value.status_code == 401
        mock_jwks_fetch.assert_not_called()

    def test_jwks_cached_between_calls(self, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        verify_token(create_token(private_key))
        verify_token(create_token(private_key, sub="guest-2"))
        assert mock_jwks_fetch.call_count == 1

    def test_unknown_kid_forces_refresh(self, oidc_env, jwks):
        rotated_private, rotated_public = generate_rsa_keypair()
        rotated = create_jwks(rotated_public, kid="rotated-key")

        with patch("staybook.api.auth._fetch_jwks", side_effect=[jwks, rotated]) as mock:
            sub = verify_token(create_token(rotated_private, kid="rotated-key"))

        assert sub == "guest-1"
        assert mock.call_count == 2

    def test_jwks_unreachable_is_503(self, rsa_keypair, oidc_env):
        private_key, _ = rsa_keypair
        with patch(
            "staybook.api.auth._fetch_jwks",
            side_effect=requests.ConnectionError("down"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                verify_token(create_token(private_key))
        assert exc_info.value.status_code == 503


class TestProtectedEndpoint:
    def test_valid_token_reaches_handler(self, client, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(private_key)

        response = client.get("/reservations", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == []

    def test_subject_becomes_guest(self, client, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        headers = {"Authorization": f"Bearer {create_token(private_key, sub='guest-7')}"}
        body = {"listing": "listing-x", "checkIn": "2024-03-01", "checkOut": "2024-03-02", "guests": 1}

        created = client.post("/reservations", json=body, headers=headers)
        listed = client.get("/reservations", headers=headers)

        assert created.status_code == 201
        assert [r["id"] for r in listed.json()] == [created.json()["id"]]

    def test_missing_header(self, client, oidc_env):
        response = client.get("/reservations")
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authorization header"

    def test_non_bearer_scheme(self, client, oidc_env):
        response = client.get("/reservations", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_expired_token(self, client, rsa_keypair, oidc_env, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(private_key, exp=int(time.time()) - 60)

        response = client.get("/reservations", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
