"""In-process reservation store with per-listing serialization.

Each listing gets its own lock; insert_if_available() and
transition_status() hold it across the whole read-check-write, so
conflict detection is linearizable per listing while different listings
proceed in parallel. A second, short-lived lock guards the shared maps
and is never held across a conflict check.

Only viable for a single process. Multi-node deployments use the
postgres backend.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime

from staybook.domain.errors import ConflictError, ReservationNotFoundError, StaleStateError
from staybook.domain.intervals import StayInterval, overlaps
from staybook.domain.models import (
    CancelReason,
    Reservation,
    ReservationStatus,
    assert_transition_allowed,
    ensure_same_request,
)
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)


def _replayed(existing: Reservation, draft: Reservation) -> Reservation:
    return ensure_same_request(existing, draft.listing_id, draft.interval, draft.guest_count)


def _newest_first(reservations: list[Reservation]) -> list[Reservation]:
    return sorted(reservations, key=lambda r: (r.created_at, r.id), reverse=True)


class InMemoryReservationStore:
    """Reservation store backed by dicts and per-listing locks."""

    def __init__(self) -> None:
        self._records: dict[str, Reservation] = {}
        self._by_listing: dict[str, list[str]] = defaultdict(list)
        self._by_key: dict[tuple[str, str], str] = {}
        self._index_lock = threading.Lock()
        self._listing_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _listing_lock(self, listing_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._listing_locks.get(listing_id)
            if lock is None:
                lock = threading.Lock()
                self._listing_locks[listing_id] = lock
            return lock

    def _active_on(self, listing_id: str) -> list[Reservation]:
        with self._index_lock:
            ids = list(self._by_listing.get(listing_id, ()))
            records = [self._records[rid] for rid in ids]
        return [r for r in records if r.is_active]

    def _lookup_key(self, guest_id: str, key: str) -> Reservation | None:
        with self._index_lock:
            rid = self._by_key.get((guest_id, key))
            return self._records.get(rid) if rid is not None else None

    # --- reads --------------------------------------------------------------

    def find_active_for_listing(self, listing_id: str) -> list[Reservation]:
        return sorted(self._active_on(listing_id), key=lambda r: r.check_in)

    def get(self, reservation_id: str) -> Reservation | None:
        with self._index_lock:
            return self._records.get(reservation_id)

    def find_by_idempotency_key(self, guest_id: str, key: str) -> Reservation | None:
        return self._lookup_key(guest_id, key)

    def list_for_guest(self, guest_id: str) -> list[Reservation]:
        with self._index_lock:
            found = [r for r in self._records.values() if r.guest_id == guest_id]
        return _newest_first(found)

    def list_for_listings(self, listing_ids: list[str]) -> list[Reservation]:
        wanted = set(listing_ids)
        with self._index_lock:
            found = [r for r in self._records.values() if r.listing_id in wanted]
        return _newest_first(found)

    def find_pending_created_before(self, cutoff: datetime) -> list[Reservation]:
        with self._index_lock:
            found = [
                r
                for r in self._records.values()
                if r.status is ReservationStatus.PENDING and r.created_at < cutoff
            ]
        return sorted(found, key=lambda r: r.created_at)

    # --- writes -------------------------------------------------------------

    def insert_if_available(
        self,
        listing_id: str,
        interval: StayInterval,
        draft: Reservation,
    ) -> tuple[Reservation, bool]:
        if draft.listing_id != listing_id or draft.interval != interval:
            raise ValueError("draft does not match listing_id/interval")
        if draft.status is not ReservationStatus.PENDING:
            raise ValueError("draft must be pending")

        key = draft.idempotency_key
        with self._listing_lock(listing_id):
            if key is not None:
                existing = self._lookup_key(draft.guest_id, key)
                if existing is not None:
                    return _replayed(existing, draft), False

            conflicting = [
                r.id for r in self._active_on(listing_id) if overlaps(r.interval, interval)
            ]
            if conflicting:
                raise ConflictError(listing_id, conflicting)

            with self._index_lock:
                if key is not None:
                    # Same key used concurrently on another listing
                    prior = self._by_key.get((draft.guest_id, key))
                    if prior is not None:
                        return _replayed(self._records[prior], draft), False
                    self._by_key[(draft.guest_id, key)] = draft.id
                self._records[draft.id] = draft
                self._by_listing[listing_id].append(draft.id)

        logger.debug(
            "reservation stored",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=draft.id,
                    listing_id=listing_id,
                    check_in=interval.check_in,
                    check_out=interval.check_out,
                )
            },
        )
        return draft, True

    def transition_status(
        self,
        reservation_id: str,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        *,
        at: datetime,
        cancel_reason: CancelReason | None = None,
    ) -> Reservation:
        assert_transition_allowed(from_status, to_status)

        current = self.get(reservation_id)
        if current is None:
            raise ReservationNotFoundError(reservation_id)

        with self._listing_lock(current.listing_id):
            with self._index_lock:
                current = self._records[reservation_id]
                if current.status is not from_status:
                    raise StaleStateError(
                        reservation_id, from_status.value, current.status.value
                    )
                updated = current.with_status(
                    to_status, at=at, cancel_reason=cancel_reason
                )
                self._records[reservation_id] = updated

        return updated
