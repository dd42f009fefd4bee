"""Reservation lifecycle - guarded status transitions.

State machine:

    pending --confirm--> confirmed
    pending --cancel---> cancelled
    confirmed --cancel-> cancelled
    pending --expire---> cancelled (reason "expired")

cancelled is terminal. Every transition goes through the store's
compare-and-swap transition_status(); this module adds authorization and
turns lost races into the caller-facing state errors. Cancelling only
shrinks the active set, so the non-overlap invariant is never re-checked
here.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from staybook.domain.errors import (
    AlreadyCancelledError,
    ForbiddenError,
    NotPendingError,
    ReservationNotFoundError,
    StaleStateError,
)
from staybook.domain.models import (
    CancelReason,
    Principal,
    Reservation,
    ReservationStatus,
)
from staybook.infra.repositories.reservation_store import ReservationStore
from staybook.infra.time import utc_now
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)

# A cancel can race a confirm at most once per edge
_MAX_CANCEL_ATTEMPTS = 3


class ReservationLifecycle:
    """Authorizes and applies status transitions for single reservations."""

    def __init__(
        self,
        store: ReservationStore,
        *,
        hold_ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._hold_ttl = hold_ttl
        self._clock = clock

    def _load(self, reservation_id: str) -> Reservation:
        reservation = self._store.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        return reservation

    def confirm(self, reservation_id: str) -> Reservation:
        """Move a hold to confirmed after the external payment step succeeded.

        Only the system (payment callback) may call this; the API layer
        restricts it to authenticated worker requests.

        Raises:
            ReservationNotFoundError: Unknown id.
            NotPendingError: The reservation is not (or no longer) pending.
        """
        reservation = self._load(reservation_id)
        if reservation.status is not ReservationStatus.PENDING:
            raise NotPendingError(reservation_id, reservation.status.value)

        try:
            confirmed = self._store.transition_status(
                reservation_id,
                ReservationStatus.PENDING,
                ReservationStatus.CONFIRMED,
                at=self._clock(),
            )
        except StaleStateError as exc:
            # Lost to a concurrent cancel or expiry
            raise NotPendingError(reservation_id, exc.actual or "unknown") from exc

        logger.info(
            "reservation confirmed",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation_id,
                    listing_id=confirmed.listing_id,
                )
            },
        )
        return confirmed

    def cancel(self, principal: Principal, reservation_id: str) -> Reservation:
        """Cancel a pending or confirmed reservation on behalf of its guest.

        Authorization is checked before state so a stranger learns nothing
        about the reservation.

        Raises:
            ReservationNotFoundError: Unknown id.
            ForbiddenError: Caller is not the reservation's guest.
            AlreadyCancelledError: Reservation is already cancelled.
        """
        reservation = self._load(reservation_id)
        if reservation.guest_id != principal.id:
            logger.warning(
                "cancel forbidden",
                extra={
                    "extra_fields": safe_log_context(
                        reservation_id=reservation_id,
                        caller_id=principal.id,
                    )
                },
            )
            raise ForbiddenError()

        for _ in range(_MAX_CANCEL_ATTEMPTS):
            if reservation.status is ReservationStatus.CANCELLED:
                raise AlreadyCancelledError(reservation_id)
            try:
                cancelled = self._store.transition_status(
                    reservation_id,
                    reservation.status,
                    ReservationStatus.CANCELLED,
                    at=self._clock(),
                    cancel_reason=CancelReason.GUEST,
                )
            except StaleStateError:
                reservation = self._load(reservation_id)
                continue

            logger.info(
                "reservation cancelled",
                extra={
                    "extra_fields": safe_log_context(
                        reservation_id=reservation_id,
                        listing_id=cancelled.listing_id,
                        previous_status=reservation.status.value,
                    )
                },
            )
            return cancelled

        raise StaleStateError(
            reservation_id, reservation.status.value, reservation.status.value
        )

    def expire_stale_holds(self, now: datetime | None = None) -> list[Reservation]:
        """Cancel every pending hold older than the hold TTL.

        A hold confirmed or cancelled while this runs is skipped; the
        compare-and-swap decides who wins.

        Args:
            now: Reference time (defaults to the clock).

        Returns:
            The reservations that were expired by this call.
        """
        now = now or self._clock()
        cutoff = now - self._hold_ttl
        expired: list[Reservation] = []

        for hold in self._store.find_pending_created_before(cutoff):
            try:
                expired.append(
                    self._store.transition_status(
                        hold.id,
                        ReservationStatus.PENDING,
                        ReservationStatus.CANCELLED,
                        at=now,
                        cancel_reason=CancelReason.EXPIRED,
                    )
                )
            except StaleStateError:
                continue

        logger.info(
            "stale holds expired",
            extra={
                "extra_fields": safe_log_context(
                    cutoff=cutoff,
                    expired_count=len(expired),
                )
            },
        )
        return expired
