"""Worker endpoints: payment confirmation callback and hold expiry."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from staybook.api.dependencies import get_availability_service
from staybook.api.task_auth import require_task_auth
from staybook.domain.availability import AvailabilityService
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(require_task_auth)])

logger = get_logger(__name__)


@router.post("/holds/expire")
def expire_holds(service: AvailabilityService = Depends(get_availability_service)) -> dict:
    """Cancel every pending hold older than HOLD_TTL_MINUTES.

    Safe to run repeatedly and concurrently; each hold is expired at most once.
    """
    expired = service.expire_stale_holds()
    return {
        "ok": True,
        "expired": len(expired),
        "reservationIds": [r.id for r in expired],
    }


@router.post("/reservations/{reservation_id}/confirm")
def confirm_reservation(
    reservation_id: str = Path(..., min_length=1),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict:
    """Payment succeeded: move the hold to confirmed (409 NotPending otherwise)."""
    logger.info(
        "confirm task received",
        extra={"extra_fields": safe_log_context(reservation_id=reservation_id)},
    )
    return service.confirm_reservation(reservation_id).to_dict()
