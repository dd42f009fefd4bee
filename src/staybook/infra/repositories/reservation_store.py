"""Reservation store contract and backend selection.

The store is the single shared mutable resource of the engine. Only two
entry points mutate it:

- insert_if_available(): atomic per-listing read-check-write
- transition_status(): compare-and-swap on a reservation's status

Backends (RESERVATION_STORE_BACKEND):
- memory (default): in-process, per-listing locks; single node only
- postgres: advisory lock per listing + GiST exclusion constraint
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Protocol

from staybook.domain.intervals import StayInterval
from staybook.domain.models import CancelReason, Reservation, ReservationStatus
from staybook.settings import Settings, get_settings


class ReservationStore(Protocol):
    """Durable, queryable collection of reservations keyed by listing."""

    def find_active_for_listing(self, listing_id: str) -> list[Reservation]:
        """Snapshot of pending/confirmed reservations. Advisory only."""
        ...

    def insert_if_available(
        self,
        listing_id: str,
        interval: StayInterval,
        draft: Reservation,
    ) -> tuple[Reservation, bool]:
        """Persist draft iff no active reservation on listing_id overlaps interval.

        Returns:
            (reservation, created). created is False when draft carries an
            idempotency key already used by the same guest; the earlier
            reservation is returned unchanged.

        Raises:
            ConflictError: With the ids of the overlapping reservations.
            InvalidRequestError: The idempotency key was already used by this
                guest for a different listing, stay or guest count.
            StorageUnavailableError: On infrastructure failure (no write made).
        """
        ...

    def transition_status(
        self,
        reservation_id: str,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        *,
        at: datetime,
        cancel_reason: CancelReason | None = None,
    ) -> Reservation:
        """Move a reservation from from_status to to_status.

        Raises:
            IllegalTransitionError: If the edge is not in the state machine.
            ReservationNotFoundError: If the id is unknown.
            StaleStateError: If the current status is not from_status.
        """
        ...

    def get(self, reservation_id: str) -> Reservation | None: ...

    def find_by_idempotency_key(self, guest_id: str, key: str) -> Reservation | None: ...

    def list_for_guest(self, guest_id: str) -> list[Reservation]:
        """Reservations booked by guest_id, newest first."""
        ...

    def list_for_listings(self, listing_ids: list[str]) -> list[Reservation]:
        """Reservations on any of listing_ids, newest first."""
        ...

    def find_pending_created_before(self, cutoff: datetime) -> list[Reservation]:
        """Pending reservations created strictly before cutoff, oldest first."""
        ...


_store: ReservationStore | None = None
_store_lock = threading.Lock()


def build_reservation_store(settings: Settings) -> ReservationStore:
    """Create a store for the configured backend."""
    if settings.store_backend == "postgres":
        from staybook.infra.repositories.pg_reservation_store import PgReservationStore

        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for the postgres store")
        return PgReservationStore(dsn=settings.database_url)

    from staybook.infra.repositories.memory_reservation_store import (
        InMemoryReservationStore,
    )

    return InMemoryReservationStore()


def get_reservation_store() -> ReservationStore:
    """Process-wide store singleton (created on first use)."""
    global _store

    with _store_lock:
        if _store is None:
            _store = build_reservation_store(get_settings())
        return _store


def reset_reservation_store() -> None:
    """Drop the singleton (tests)."""
    global _store

    with _store_lock:
        _store = None
