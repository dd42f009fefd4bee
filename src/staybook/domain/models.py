"""Core entities: listings, principals and reservations."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import date, datetime

from staybook.domain.errors import IllegalTransitionError, InvalidRequestError
from staybook.domain.intervals import StayInterval


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})

# The only legal edges; cancelled is terminal.
ALLOWED_TRANSITIONS: frozenset[tuple[ReservationStatus, ReservationStatus]] = frozenset(
    {
        (ReservationStatus.PENDING, ReservationStatus.CONFIRMED),
        (ReservationStatus.PENDING, ReservationStatus.CANCELLED),
        (ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED),
    }
)


def assert_transition_allowed(
    from_status: ReservationStatus, to_status: ReservationStatus
) -> None:
    """Raise IllegalTransitionError unless from_status -> to_status is a legal edge."""
    if (from_status, to_status) not in ALLOWED_TRANSITIONS:
        raise IllegalTransitionError(from_status.value, to_status.value)


class CancelReason(str, enum.Enum):
    GUEST = "guest"
    EXPIRED = "expired"


class Role(str, enum.Enum):
    GUEST = "guest"
    HOST = "host"


@dataclass(frozen=True)
class Principal:
    """The authenticated actor making a request."""

    id: str


@dataclass(frozen=True)
class Listing:
    """Read-only view of a catalog listing.

    Attributes:
        id: Listing identifier.
        owner_id: Principal id of the host.
        nightly_price_cents: Positive nightly price in minor currency units.
        max_guests: Positive guest capacity.
        is_active: Only active listings accept new reservations.
    """

    id: str
    owner_id: str
    nightly_price_cents: int
    max_guests: int
    is_active: bool = True


@dataclass(frozen=True)
class Reservation:
    """A stay on a listing. Never deleted; cancellation is a status change."""

    id: str
    listing_id: str
    guest_id: str
    check_in: date
    check_out: date
    guest_count: int
    total_price_cents: int
    status: ReservationStatus
    created_at: datetime
    updated_at: datetime
    idempotency_key: str | None = None
    cancel_reason: CancelReason | None = None

    @property
    def interval(self) -> StayInterval:
        return StayInterval(self.check_in, self.check_out)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def with_status(
        self,
        status: ReservationStatus,
        *,
        at: datetime,
        cancel_reason: CancelReason | None = None,
    ) -> Reservation:
        """Return a copy moved to status, stamped at the given time."""
        return replace(self, status=status, updated_at=at, cancel_reason=cancel_reason)

    def to_dict(self) -> dict:
        """Public representation (no guest identity)."""
        return {
            "id": self.id,
            "listing": self.listing_id,
            "checkIn": self.check_in.isoformat(),
            "checkOut": self.check_out.isoformat(),
            "guests": self.guest_count,
            "totalPrice": self.total_price_cents,
            "status": self.status.value,
            "cancelReason": self.cancel_reason.value if self.cancel_reason else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


def ensure_same_request(
    prior: Reservation,
    listing_id: str,
    interval: StayInterval,
    guest_count: int,
) -> Reservation:
    """Return prior if it was created by the same request, else raise.

    Raises:
        InvalidRequestError: The idempotency key was already used for a
            different listing, stay or guest count.
    """
    if (
        prior.listing_id != listing_id
        or prior.interval != interval
        or prior.guest_count != guest_count
    ):
        raise InvalidRequestError(
            "idempotency key was already used for a different reservation",
            field="idempotency_key",
        )
    return prior
