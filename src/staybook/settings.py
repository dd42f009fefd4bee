"""Runtime settings loaded from environment variables.

All configuration comes from the process environment; there are no config
files. Settings are read once per call to get_settings() so tests can
monkeypatch the environment freely.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

StoreBackend = Literal["memory", "postgres"]

DEFAULT_SERVICE_FEE_CENTS = 29
DEFAULT_HOLD_TTL_MINUTES = 15

_BACKENDS = ("memory", "postgres")


@dataclass(frozen=True)
class Settings:
    """Application settings."""

    store_backend: StoreBackend
    database_url: str | None
    service_fee_cents: int
    hold_ttl_minutes: int
    listings_seed_file: str | None = None


def _int_env(name: str, default: int, *, minimum: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_settings() -> Settings:
    """Load settings from the environment.

    Returns:
        Settings instance.

    Raises:
        ValueError: If a variable holds an invalid value.
    """
    backend = os.environ.get("RESERVATION_STORE_BACKEND", "memory").strip().lower()
    if backend not in _BACKENDS:
        raise ValueError(
            f"RESERVATION_STORE_BACKEND must be one of {_BACKENDS}, got {backend!r}"
        )

    return Settings(
        store_backend=backend,  # type: ignore[arg-type]
        database_url=os.environ.get("DATABASE_URL") or None,
        service_fee_cents=_int_env(
            "SERVICE_FEE_CENTS", DEFAULT_SERVICE_FEE_CENTS, minimum=0
        ),
        hold_ttl_minutes=_int_env(
            "HOLD_TTL_MINUTES", DEFAULT_HOLD_TTL_MINUTES, minimum=1
        ),
        listings_seed_file=os.environ.get("LISTINGS_SEED_FILE") or None,
    )
