"""Shared pytest fixtures for Staybook tests."""

import sys

sys.dont_write_bytecode = True

import pytest  # noqa: E402

from staybook.domain.availability import AvailabilityService  # noqa: E402
from staybook.domain.models import Listing  # noqa: E402
from staybook.infra.repositories.listings_repository import InMemoryListingCatalog  # noqa: E402
from staybook.infra.repositories.memory_reservation_store import (  # noqa: E402
    InMemoryReservationStore,
)

from .helpers import FixedClock  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Module-level caches and singletons must not leak between tests."""
    import staybook.api.auth as auth_module
    from staybook.api.dependencies import reset_availability_service
    from staybook.infra.repositories.listings_repository import reset_listing_catalog
    from staybook.infra.repositories.reservation_store import reset_reservation_store

    def _reset():
        auth_module._jwks_cache = None
        auth_module._jwks_cache_time = 0
        reset_availability_service()
        reset_listing_catalog()
        reset_reservation_store()

    _reset()
    yield
    _reset()


@pytest.fixture
def listing() -> Listing:
    """Listing X: price 100, up to 4 guests, owned by host-1."""
    return Listing(
        id="listing-x",
        owner_id="host-1",
        nightly_price_cents=100,
        max_guests=4,
    )


@pytest.fixture
def catalog(listing) -> InMemoryListingCatalog:
    return InMemoryListingCatalog(
        [
            listing,
            Listing(id="listing-y", owner_id="host-1", nightly_price_cents=250, max_guests=2),
            Listing(id="listing-z", owner_id="host-2", nightly_price_cents=80, max_guests=6),
            Listing(
                id="listing-off",
                owner_id="host-2",
                nightly_price_cents=90,
                max_guests=2,
                is_active=False,
            ),
        ]
    )


@pytest.fixture
def store() -> InMemoryReservationStore:
    return InMemoryReservationStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def service(store, catalog, clock) -> AvailabilityService:
    return AvailabilityService(store, catalog, service_fee_cents=29, clock=clock)
