"""Half-open stay intervals and the overlap predicate.

A stay [check_in, check_out) includes the check-in night and excludes the
check-out day, so one guest may check out on the day the next checks in.

Overlap formula:  (a.check_in < b.check_out) AND (b.check_in < a.check_out)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from staybook.domain.errors import InvalidRangeError


@dataclass(frozen=True)
class StayInterval:
    """A non-empty half-open date range [check_in, check_out)."""

    check_in: date
    check_out: date

    def __post_init__(self) -> None:
        if self.check_out <= self.check_in:
            raise InvalidRangeError(self.check_in, self.check_out)

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def overlaps(self, other: StayInterval) -> bool:
        return overlaps(self, other)

    def __str__(self) -> str:
        return f"[{self.check_in.isoformat()}, {self.check_out.isoformat()})"


def overlaps(a: StayInterval, b: StayInterval) -> bool:
    """Return True if the two half-open intervals share at least one night.

    Symmetric, and reflexive for any non-empty interval. Touching intervals
    (a.check_out == b.check_in) do not overlap.
    """
    return a.check_in < b.check_out and b.check_in < a.check_out


def nights(check_in: date, check_out: date) -> int:
    """Number of nights between two calendar dates.

    Args:
        check_in: Arrival date (inclusive).
        check_out: Departure date (exclusive).

    Returns:
        Strictly positive number of nights.

    Raises:
        InvalidRangeError: If check_out <= check_in.
    """
    if check_out <= check_in:
        raise InvalidRangeError(check_in, check_out)
    return (check_out - check_in).days
