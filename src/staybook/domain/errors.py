"""Error taxonomy for the reservation engine.

Every error the store, lifecycle manager and availability service raise
derives from ReservationError. Storage-driver errors never escape the
store; they are converted into one of these classes.
"""

from __future__ import annotations

from datetime import date


class ReservationError(Exception):
    """Base class for all reservation engine errors."""

    code = "ReservationError"


# --- Validation -----------------------------------------------------------


class InvalidRequestError(ReservationError):
    """The request is malformed or violates a booking rule."""

    code = "InvalidRequest"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidRangeError(InvalidRequestError):
    """The stay's check-out is not strictly after its check-in."""

    code = "InvalidRange"

    def __init__(self, check_in: date, check_out: date) -> None:
        self.check_in = check_in
        self.check_out = check_out
        super().__init__(
            f"check-out {check_out.isoformat()} must be after "
            f"check-in {check_in.isoformat()}",
            field="check_out",
        )


# --- Conflicts ------------------------------------------------------------


class ConflictError(ReservationError):
    """Store-level: the requested interval overlaps active reservations."""

    code = "Conflict"

    def __init__(self, listing_id: str, conflicting_ids: list[str]) -> None:
        self.listing_id = listing_id
        self.conflicting_ids = list(conflicting_ids)
        super().__init__(
            f"listing {listing_id} has {len(self.conflicting_ids)} "
            "overlapping active reservation(s)"
        )


class DatesUnavailableError(ReservationError):
    """The requested dates are already held or booked."""

    code = "DatesUnavailable"

    def __init__(
        self,
        listing_id: str,
        check_in: date,
        check_out: date,
        conflict_count: int,
    ) -> None:
        self.listing_id = listing_id
        self.check_in = check_in
        self.check_out = check_out
        self.conflict_count = conflict_count
        super().__init__(
            f"dates {check_in.isoformat()} to {check_out.isoformat()} "
            "are not available for this listing"
        )


# --- Authorization --------------------------------------------------------


class ForbiddenError(ReservationError):
    """The caller has no rights over the target. Message stays opaque."""

    code = "Forbidden"

    def __init__(self) -> None:
        super().__init__("not allowed")


# --- Lookup ---------------------------------------------------------------


class NotFoundError(ReservationError):
    code = "NotFound"


class ReservationNotFoundError(NotFoundError):
    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(f"reservation {reservation_id} not found")


class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        self.listing_id = listing_id
        super().__init__(f"listing {listing_id} not found")


# --- State ----------------------------------------------------------------


class StateError(ReservationError):
    """The record changed between read and write. Safe to retry after re-read."""

    code = "StateError"


class StaleStateError(StateError):
    """Compare-and-swap failed: current status differs from the expected one."""

    code = "StaleState"

    def __init__(self, reservation_id: str, expected: str, actual: str | None) -> None:
        self.reservation_id = reservation_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"reservation {reservation_id} is {actual}, expected {expected}"
        )


class AlreadyCancelledError(StateError):
    code = "AlreadyCancelled"

    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(f"reservation {reservation_id} is already cancelled")


class NotPendingError(StateError):
    code = "NotPending"

    def __init__(self, reservation_id: str, status: str) -> None:
        self.reservation_id = reservation_id
        self.status = status
        super().__init__(f"reservation {reservation_id} is {status}, not pending")


class IllegalTransitionError(StateError):
    """The requested edge is not part of the status state machine."""

    code = "IllegalTransition"

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"illegal status transition {from_status} -> {to_status}")


# --- Infrastructure -------------------------------------------------------


class StorageUnavailableError(ReservationError):
    """Durable storage failed. No partial write was made."""

    code = "StorageUnavailable"
