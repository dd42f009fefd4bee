"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an alembic context.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse

_DRIVER_SCHEME = "postgresql+psycopg2"


def normalize_database_url(url: str, password: str | None = None) -> str:
    """Return a SQLAlchemy URL using the psycopg2 driver.

    Accepts postgres://, postgresql:// and postgresql+psycopg2:// URLs.
    If password is given and the URL has none, it is injected.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("postgres", "postgresql", _DRIVER_SCHEME):
        raise ValueError(f"unsupported database URL scheme: {parsed.scheme!r}")

    netloc = parsed.netloc
    if password and parsed.username and not parsed.password:
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        netloc = f"{quote_plus(parsed.username)}:{quote_plus(password)}@{host}"

    return urlunparse(parsed._replace(scheme=_DRIVER_SCHEME, netloc=netloc))


def get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    return normalize_database_url(url, os.environ.get("DB_PASSWORD") or None)
