"""Listing catalog adapter - read-only view of the external listing catalog.

The reservation engine only needs a listing's owner, nightly price,
capacity and active flag. Catalog CRUD and search live elsewhere.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterable, Protocol

import psycopg2
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    TypeAdapter,
    ValidationError,
)

from staybook.domain.errors import StorageUnavailableError
from staybook.domain.models import Listing
from staybook.infra.db import fetchall, fetchone, txn
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context
from staybook.settings import Settings, get_settings

logger = get_logger(__name__)


class ListingCatalog(Protocol):
    def get_listing(self, listing_id: str) -> Listing | None: ...

    def listing_ids_owned_by(self, owner_id: str) -> list[str]: ...


class InMemoryListingCatalog:
    """Listing catalog held in a dict (dev and tests)."""

    def __init__(self, listings: Iterable[Listing] = ()) -> None:
        self._lock = threading.Lock()
        self._listings: dict[str, Listing] = {}
        for listing in listings:
            self.put(listing)

    def put(self, listing: Listing) -> None:
        if listing.nightly_price_cents <= 0:
            raise ValueError("nightly_price_cents must be positive")
        if listing.max_guests <= 0:
            raise ValueError("max_guests must be positive")
        with self._lock:
            self._listings[listing.id] = listing

    def get_listing(self, listing_id: str) -> Listing | None:
        with self._lock:
            return self._listings.get(listing_id)

    def listing_ids_owned_by(self, owner_id: str) -> list[str]:
        with self._lock:
            return sorted(l.id for l in self._listings.values() if l.owner_id == owner_id)


class PgListingCatalog:
    """Listing catalog reading the listings table."""

    def __init__(self, dsn: str | None = None) -> None:
        self._dsn = dsn

    def get_listing(self, listing_id: str) -> Listing | None:
        try:
            with txn(dsn=self._dsn) as cur:
                row = fetchone(
                    cur,
                    """
                    SELECT id, owner_id, nightly_price_cents, max_guests, is_active
                    FROM listings
                    WHERE id = %s
                    """,
                    (listing_id,),
                )
        except psycopg2.Error as exc:
            raise StorageUnavailableError("listing catalog unavailable") from exc

        if row is None:
            return None
        return Listing(
            id=row[0],
            owner_id=row[1],
            nightly_price_cents=row[2],
            max_guests=row[3],
            is_active=row[4],
        )

    def listing_ids_owned_by(self, owner_id: str) -> list[str]:
        try:
            with txn(dsn=self._dsn) as cur:
                rows = fetchall(
                    cur,
                    "SELECT id FROM listings WHERE owner_id = %s ORDER BY id",
                    (owner_id,),
                )
        except psycopg2.Error as exc:
            raise StorageUnavailableError("listing catalog unavailable") from exc
        return [row[0] for row in rows]


class SeedListing(BaseModel):
    """One entry of a LISTINGS_SEED_FILE (a JSON array of these objects)."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    owner_id: str = Field(alias="ownerId", min_length=1)
    nightly_price_cents: StrictInt = Field(alias="nightlyPrice", gt=0)
    max_guests: StrictInt = Field(alias="maxGuests", gt=0)
    is_active: StrictBool = Field(default=True, alias="isActive")

    def to_listing(self) -> Listing:
        return Listing(
            id=self.id,
            owner_id=self.owner_id,
            nightly_price_cents=self.nightly_price_cents,
            max_guests=self.max_guests,
            is_active=self.is_active,
        )


_SEED_ADAPTER = TypeAdapter(list[SeedListing])


def load_seed_listings(path: str | Path) -> list[Listing]:
    """Read listings for the in-memory catalog from a JSON file.

    Raises:
        ValueError: If the file cannot be read or an entry is malformed.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"LISTINGS_SEED_FILE {path} cannot be read: {exc}") from exc
    try:
        entries = _SEED_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise ValueError(f"LISTINGS_SEED_FILE {path} is invalid: {exc}") from exc
    return [entry.to_listing() for entry in entries]


def build_listing_catalog(settings: Settings) -> ListingCatalog:
    if settings.store_backend == "postgres":
        return PgListingCatalog(dsn=settings.database_url)

    listings = []
    if settings.listings_seed_file:
        listings = load_seed_listings(settings.listings_seed_file)
    if not listings:
        # Every create answers 400 until listings are put into the catalog
        logger.warning(
            "in-memory listing catalog is empty",
            extra={"extra_fields": safe_log_context(seed_file=settings.listings_seed_file)},
        )
    else:
        logger.info(
            "in-memory listing catalog seeded",
            extra={"extra_fields": safe_log_context(listing_count=len(listings))},
        )
    return InMemoryListingCatalog(listings)


_catalog: ListingCatalog | None = None
_catalog_lock = threading.Lock()


def get_listing_catalog() -> ListingCatalog:
    """Process-wide catalog singleton (created on first use)."""
    global _catalog

    with _catalog_lock:
        if _catalog is None:
            _catalog = build_listing_catalog(get_settings())
        return _catalog


def reset_listing_catalog() -> None:
    global _catalog

    with _catalog_lock:
        _catalog = None
