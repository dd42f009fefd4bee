"""Advisory availability check.

The answer may be stale by the time a reservation is attempted; only
POST /reservations decides.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from staybook.api.dependencies import get_availability_service
from staybook.domain.availability import AvailabilityService

router = APIRouter(tags=["availability"])


@router.get("/availability")
def get_availability(
    listing_id: str = Query(..., alias="listing", min_length=1),
    check_in: date = Query(..., alias="checkIn"),
    check_out: date = Query(..., alias="checkOut"),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict:
    result = service.check_availability(listing_id, check_in, check_out)
    return {"available": result.available, "conflictCount": result.conflict_count}
