"""Shared test helpers (plain functions and small fakes, not fixtures)."""

from __future__ import annotations

import base64
import time
from datetime import date, datetime, timedelta, timezone

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from staybook.domain.models import Reservation, ReservationStatus

# "Now" for every service test: comfortably before the scenario dates.
NOW = datetime(2024, 2, 15, 10, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def d(value: str) -> date:
    return date.fromisoformat(value)


def make_reservation(
    *,
    id: str = "res-1",
    listing_id: str = "listing-x",
    guest_id: str = "guest-1",
    check_in: str = "2024-03-01",
    check_out: str = "2024-03-04",
    guest_count: int = 2,
    total_price_cents: int = 329,
    status: ReservationStatus = ReservationStatus.PENDING,
    created_at: datetime = NOW,
    idempotency_key: str | None = None,
) -> Reservation:
    return Reservation(
        id=id,
        listing_id=listing_id,
        guest_id=guest_id,
        check_in=d(check_in),
        check_out=d(check_out),
        guest_count=guest_count,
        total_price_cents=total_price_cents,
        status=status,
        created_at=created_at,
        updated_at=created_at,
        idempotency_key=idempotency_key,
    )


def assert_pairwise_disjoint(reservations: list[Reservation]) -> None:
    """Fail if two active reservations on the same listing overlap."""
    active = [r for r in reservations if r.is_active]
    for i, a in enumerate(active):
        for b in active[i + 1:]:
            if a.listing_id != b.listing_id:
                continue
            assert not (a.check_in < b.check_out and b.check_in < a.check_out), (
                f"{a.id} {a.interval} overlaps {b.id} {b.interval}"
            )


# --- OIDC token helpers ------------------------------------------------------

ISSUER = "https://id.staybook.test"
AUDIENCE = "staybook-api"
JWKS_URL = "https://id.staybook.test/.well-known/jwks.json"


def generate_rsa_keypair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key, private_key.public_key()


def create_jwks(public_key, kid: str = "test-key-1") -> dict:
    numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        length = (n.bit_length() + 7) // 8
        return base64.urlsafe_b64encode(n.to_bytes(length, "big")).rstrip(b"=").decode()

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(numbers.n),
                "e": int_to_base64(numbers.e),
            }
        ]
    }


def create_token(
    private_key,
    *,
    kid: str = "test-key-1",
    sub: str = "guest-1",
    iss: str = ISSUER,
    aud: str = AUDIENCE,
    exp: int | None = None,
) -> str:
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})
