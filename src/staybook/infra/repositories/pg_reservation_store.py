"""Postgres reservation store.

Uses raw SQL with psycopg2 (no ORM).

Per-listing serialization: every write transaction first takes
pg_advisory_xact_lock(hashtext(listing_id)), then re-reads the active
reservations and inserts or updates. The no_active_overlap exclusion
constraint (migration 002) is the second, absolute layer: even a writer
that bypasses this module cannot persist two overlapping active stays.

Overlap formula:  existing.check_in < new.check_out AND existing.check_out > new.check_in

Every psycopg2 error is converted into the engine's error taxonomy before
it leaves this module.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import psycopg2
from psycopg2 import errors as pg_errors

from staybook.domain.errors import (
    ConflictError,
    ReservationNotFoundError,
    StaleStateError,
    StorageUnavailableError,
)
from staybook.domain.intervals import StayInterval
from staybook.domain.models import (
    ACTIVE_STATUSES,
    CancelReason,
    Reservation,
    ReservationStatus,
    assert_transition_allowed,
    ensure_same_request,
)
from staybook.infra.db import advisory_xact_lock, fetchall, txn
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)

_COLUMNS = """
    id, listing_id, guest_id, check_in, check_out, guest_count,
    total_price_cents, status, created_at, updated_at,
    idempotency_key, cancel_reason
"""

_ACTIVE = sorted(s.value for s in ACTIVE_STATUSES)


def _row_to_reservation(row: tuple[Any, ...]) -> Reservation:
    return Reservation(
        id=str(row[0]),
        listing_id=row[1],
        guest_id=row[2],
        check_in=row[3],
        check_out=row[4],
        guest_count=row[5],
        total_price_cents=row[6],
        status=ReservationStatus(row[7]),
        created_at=row[8],
        updated_at=row[9],
        idempotency_key=row[10],
        cancel_reason=CancelReason(row[11]) if row[11] else None,
    )


def _replayed(existing: Reservation, draft: Reservation) -> Reservation:
    """Idempotent replay; the stored reservation must match the draft's request."""
    return ensure_same_request(existing, draft.listing_id, draft.interval, draft.guest_count)


class PgReservationStore:
    """Reservation store backed by the reservations table."""

    def __init__(self, dsn: str | None = None) -> None:
        self._dsn = dsn

    def _storage_failure(self, op: str, exc: psycopg2.Error) -> StorageUnavailableError:
        logger.error(
            "reservation store failure",
            extra={
                "extra_fields": safe_log_context(
                    operation=op,
                    pgcode=getattr(exc, "pgcode", None),
                    error_type=type(exc).__name__,
                )
            },
        )
        return StorageUnavailableError(f"reservation storage unavailable during {op}")

    def _select_many(self, op: str, where: str, params: tuple, order: str) -> list[Reservation]:
        try:
            with txn(dsn=self._dsn) as cur:
                rows = fetchall(
                    cur,
                    f"SELECT {_COLUMNS} FROM reservations WHERE {where} ORDER BY {order}",
                    params,
                )
        except psycopg2.Error as exc:
            raise self._storage_failure(op, exc) from exc
        return [_row_to_reservation(row) for row in rows]

    # --- reads --------------------------------------------------------------

    def find_active_for_listing(self, listing_id: str) -> list[Reservation]:
        return self._select_many(
            "find_active_for_listing",
            "listing_id = %s AND status = ANY(%s)",
            (listing_id, _ACTIVE),
            "check_in",
        )

    def get(self, reservation_id: str) -> Reservation | None:
        found = self._select_many("get", "id = %s", (reservation_id,), "id")
        return found[0] if found else None

    def find_by_idempotency_key(self, guest_id: str, key: str) -> Reservation | None:
        found = self._select_many(
            "find_by_idempotency_key",
            "guest_id = %s AND idempotency_key = %s",
            (guest_id, key),
            "id",
        )
        return found[0] if found else None

    def list_for_guest(self, guest_id: str) -> list[Reservation]:
        return self._select_many(
            "list_for_guest", "guest_id = %s", (guest_id,), "created_at DESC, id DESC"
        )

    def list_for_listings(self, listing_ids: list[str]) -> list[Reservation]:
        if not listing_ids:
            return []
        return self._select_many(
            "list_for_listings",
            "listing_id = ANY(%s)",
            (list(listing_ids),),
            "created_at DESC, id DESC",
        )

    def find_pending_created_before(self, cutoff: datetime) -> list[Reservation]:
        return self._select_many(
            "find_pending_created_before",
            "status = %s AND created_at < %s",
            (ReservationStatus.PENDING.value, cutoff),
            "created_at",
        )

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

        try:
            with txn(dsn=self._dsn) as cur:
                advisory_xact_lock(cur, listing_id)

                if draft.idempotency_key is not None:
                    cur.execute(
                        f"SELECT {_COLUMNS} FROM reservations "
                        "WHERE guest_id = %s AND idempotency_key = %s",
                        (draft.guest_id, draft.idempotency_key),
                    )
                    row = cur.fetchone()
                    if row is not None:
                        return _replayed(_row_to_reservation(row), draft), False

                cur.execute(
                    """
                    SELECT id FROM reservations
                    WHERE listing_id = %s
                      AND status = ANY(%s)
                      AND check_in < %s
                      AND check_out > %s
                    ORDER BY check_in
                    """,
                    (listing_id, _ACTIVE, interval.check_out, interval.check_in),
                )
                conflicting = [str(r[0]) for r in cur.fetchall()]
                if conflicting:
                    raise ConflictError(listing_id, conflicting)

                cur.execute(
                    f"""
                    INSERT INTO reservations (
                        id, listing_id, guest_id, check_in, check_out,
                        guest_count, total_price_cents, status,
                        created_at, updated_at, idempotency_key
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_COLUMNS}
                    """,
                    (
                        draft.id,
                        listing_id,
                        draft.guest_id,
                        interval.check_in,
                        interval.check_out,
                        draft.guest_count,
                        draft.total_price_cents,
                        draft.status.value,
                        draft.created_at,
                        draft.updated_at,
                        draft.idempotency_key,
                    ),
                )
                return _row_to_reservation(cur.fetchone()), True

        except pg_errors.ExclusionViolation as exc:
            # Constraint caught a writer that skipped the advisory lock
            raise ConflictError(listing_id, []) from exc
        except pg_errors.UniqueViolation as exc:
            # Same idempotency key raced in on another listing
            if draft.idempotency_key is None:
                raise self._storage_failure("insert_if_available", exc) from exc
            existing = self.find_by_idempotency_key(draft.guest_id, draft.idempotency_key)
            if existing is None:
                raise self._storage_failure("insert_if_available", exc) from exc
            return _replayed(existing, draft), False
        except psycopg2.Error as exc:
            raise self._storage_failure("insert_if_available", exc) from exc

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
        reason = cancel_reason.value if cancel_reason else None

        try:
            with txn(dsn=self._dsn) as cur:
                cur.execute(
                    "SELECT listing_id FROM reservations WHERE id = %s",
                    (reservation_id,),
                )
                row = cur.fetchone()
                if row is None:
                    raise ReservationNotFoundError(reservation_id)

                advisory_xact_lock(cur, row[0])

                cur.execute(
                    f"""
                    UPDATE reservations
                    SET status = %s, cancel_reason = %s, updated_at = %s
                    WHERE id = %s AND status = %s
                    RETURNING {_COLUMNS}
                    """,
                    (to_status.value, reason, at, reservation_id, from_status.value),
                )
                updated = cur.fetchone()
                if updated is None:
                    cur.execute(
                        "SELECT status FROM reservations WHERE id = %s",
                        (reservation_id,),
                    )
                    current = cur.fetchone()
                    raise StaleStateError(
                        reservation_id,
                        from_status.value,
                        current[0] if current else None,
                    )
                return _row_to_reservation(updated)

        except psycopg2.Error as exc:
            raise self._storage_failure("transition_status", exc) from exc
