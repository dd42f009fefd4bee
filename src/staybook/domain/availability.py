"""Availability service - the public operations of the reservation engine.

check_availability() is advisory: it reads without locking and can be
stale the moment it returns. create_reservation() re-validates atomically
through the store, so a DatesUnavailableError after a positive check is a
normal outcome of the gap between the two calls, not a defect.

Principals are passed explicitly into every call; there is no ambient
session state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

from staybook.domain.errors import (
    ConflictError,
    DatesUnavailableError,
    ForbiddenError,
    InvalidRequestError,
    ListingNotFoundError,
    ReservationNotFoundError,
)
from staybook.domain.intervals import StayInterval, overlaps
from staybook.domain.lifecycle import ReservationLifecycle
from staybook.domain.models import (
    Listing,
    Principal,
    Reservation,
    ReservationStatus,
    Role,
    ensure_same_request,
)
from staybook.domain.pricing import quote_stay
from staybook.infra.repositories.listings_repository import ListingCatalog
from staybook.infra.repositories.reservation_store import ReservationStore
from staybook.infra.time import utc_now
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context
from staybook.settings import DEFAULT_SERVICE_FEE_CENTS

logger = get_logger(__name__)


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflict_count: int


def _new_reservation_id() -> str:
    return str(uuid.uuid4())


class AvailabilityService:
    """Validates, prices and books stays; delegates transitions to the lifecycle."""

    def __init__(
        self,
        store: ReservationStore,
        listings: ListingCatalog,
        *,
        service_fee_cents: int = DEFAULT_SERVICE_FEE_CENTS,
        hold_ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_reservation_id,
    ) -> None:
        self._store = store
        self._listings = listings
        self._service_fee_cents = service_fee_cents
        self._clock = clock
        self._id_factory = id_factory
        self.lifecycle = ReservationLifecycle(store, hold_ttl=hold_ttl, clock=clock)

    # --- queries ------------------------------------------------------------

    def check_availability(
        self, listing_id: str, check_in: date, check_out: date
    ) -> AvailabilityResult:
        """Best-effort availability check. Takes no lock and reserves nothing.

        An inactive listing is never available, whatever its calendar says.

        Raises:
            InvalidRangeError: If check_out <= check_in.
            ListingNotFoundError: If the listing is unknown.
        """
        interval = StayInterval(check_in, check_out)
        listing = self._listings.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)

        conflicts = [
            r
            for r in self._store.find_active_for_listing(listing_id)
            if overlaps(r.interval, interval)
        ]
        return AvailabilityResult(
            available=listing.is_active and not conflicts,
            conflict_count=len(conflicts),
        )

    def list_reservations_for(self, principal: Principal, role: Role | str) -> list[Reservation]:
        """Reservations visible to principal in role, newest first.

        guest: reservations the principal booked.
        host: reservations on listings the principal owns.
        """
        try:
            role = Role(role)
        except ValueError:
            raise InvalidRequestError(
                f"role must be one of {[r.value for r in Role]}", field="role"
            ) from None

        if role is Role.GUEST:
            return self._store.list_for_guest(principal.id)

        listing_ids = self._listings.listing_ids_owned_by(principal.id)
        return self._store.list_for_listings(listing_ids)

    def get_reservation(self, principal: Principal, reservation_id: str) -> Reservation:
        """Fetch one reservation; visible to its guest and the listing's host.

        Raises:
            ReservationNotFoundError: Unknown id.
            ForbiddenError: Caller is neither the guest nor the host.
        """
        reservation = self._store.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        if reservation.guest_id == principal.id:
            return reservation

        listing = self._listings.get_listing(reservation.listing_id)
        if listing is not None and listing.owner_id == principal.id:
            return reservation
        raise ForbiddenError()

    # --- commands -----------------------------------------------------------

    def _validate(
        self,
        listing_id: str,
        interval: StayInterval,
        guest_count: int,
    ) -> Listing:
        today = self._clock().date()
        if interval.check_in < today:
            raise InvalidRequestError(
                f"check-in {interval.check_in.isoformat()} is in the past",
                field="check_in",
            )

        listing = self._listings.get_listing(listing_id)
        if listing is None or not listing.is_active:
            raise InvalidRequestError(
                f"listing {listing_id} is not available for booking",
                field="listing_id",
            )

        if isinstance(guest_count, bool) or not isinstance(guest_count, int):
            raise InvalidRequestError("guests must be an integer", field="guests")
        if guest_count < 1 or guest_count > listing.max_guests:
            raise InvalidRequestError(
                f"guests must be between 1 and {listing.max_guests}",
                field="guests",
            )
        return listing

    def _replay(
        self,
        principal: Principal,
        key: str,
        listing_id: str,
        interval: StayInterval,
        guest_count: int,
    ) -> Reservation | None:
        prior = self._store.find_by_idempotency_key(principal.id, key)
        if prior is None:
            return None
        return ensure_same_request(prior, listing_id, interval, guest_count)

    def create_reservation(
        self,
        principal: Principal,
        listing_id: str,
        check_in: date,
        check_out: date,
        guest_count: int,
        *,
        idempotency_key: str | None = None,
    ) -> Reservation:
        """Place a pending hold on a listing for [check_in, check_out).

        Exactly one reservation is written on success and none on any
        failure. With an idempotency key, a repeat of the same request by
        the same principal returns the original reservation.

        Raises:
            InvalidRangeError: check_out <= check_in.
            InvalidRequestError: Past check-in, bad guest count, inactive or
                unknown listing, or a reused idempotency key.
            DatesUnavailableError: An active reservation overlaps the stay.
            StorageUnavailableError: Storage failed; nothing was written.
        """
        interval = StayInterval(check_in, check_out)

        if idempotency_key is not None:
            prior = self._replay(principal, idempotency_key, listing_id, interval, guest_count)
            if prior is not None:
                return prior

        listing = self._validate(listing_id, interval, guest_count)
        quote = quote_stay(listing, interval, service_fee_cents=self._service_fee_cents)

        now = self._clock()
        draft = Reservation(
            id=self._id_factory(),
            listing_id=listing_id,
            guest_id=principal.id,
            check_in=interval.check_in,
            check_out=interval.check_out,
            guest_count=guest_count,
            total_price_cents=quote.total_cents,
            status=ReservationStatus.PENDING,
            created_at=now,
            updated_at=now,
            idempotency_key=idempotency_key,
        )

        try:
            reservation, created = self._store.insert_if_available(listing_id, interval, draft)
        except ConflictError as exc:
            # The exclusion constraint path reports no ids
            conflict_count = len(exc.conflicting_ids) or 1
            logger.info(
                "dates unavailable",
                extra={
                    "extra_fields": safe_log_context(
                        listing_id=listing_id,
                        check_in=interval.check_in,
                        check_out=interval.check_out,
                        conflict_count=conflict_count,
                    )
                },
            )
            raise DatesUnavailableError(
                listing_id,
                interval.check_in,
                interval.check_out,
                conflict_count=conflict_count,
            ) from exc

        logger.info(
            "reservation created" if created else "reservation replayed",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    listing_id=listing_id,
                    guest_id=principal.id,
                    nights=quote.nights,
                    total_price_cents=reservation.total_price_cents,
                )
            },
        )
        return reservation

    def cancel_reservation(self, principal: Principal, reservation_id: str) -> Reservation:
        """Cancel on behalf of the reservation's guest. See ReservationLifecycle.cancel."""
        return self.lifecycle.cancel(principal, reservation_id)

    def confirm_reservation(self, reservation_id: str) -> Reservation:
        """Payment callback: move a hold to confirmed."""
        return self.lifecycle.confirm(reservation_id)

    def expire_stale_holds(self, now: datetime | None = None) -> list[Reservation]:
        return self.lifecycle.expire_stale_holds(now)
