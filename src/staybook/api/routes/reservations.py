"""Reservation endpoints for guests and hosts.

POST   /reservations               create a pending hold (201 | 400 | 409)
GET    /reservations?role=...      reservations visible to the caller, newest first
GET    /reservations/{id}          one reservation (guest or host only)
PATCH  /reservations/{id}/cancel   guest cancellation (200 | 403 | 404 | 409)
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Header, Path, Query
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from staybook.api.auth import get_current_principal
from staybook.api.dependencies import get_availability_service
from staybook.domain.availability import AvailabilityService
from staybook.domain.models import Principal, Role


class CreateReservationRequest(BaseModel):
    """Request body for POST /reservations."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    listing_id: str = Field(alias="listing", min_length=1)
    check_in: date = Field(alias="checkIn")
    check_out: date = Field(alias="checkOut")
    guests: StrictInt


router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("", status_code=201)
def create_reservation(
    body: CreateReservationRequest,
    principal: Principal = Depends(get_current_principal),
    service: AvailabilityService = Depends(get_availability_service),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=255),
) -> dict:
    reservation = service.create_reservation(
        principal,
        body.listing_id,
        body.check_in,
        body.check_out,
        body.guests,
        idempotency_key=idempotency_key or None,
    )
    return reservation.to_dict()


@router.get("")
def list_reservations(
    role: Role = Query(default=Role.GUEST),
    principal: Principal = Depends(get_current_principal),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[dict]:
    return [r.to_dict() for r in service.list_reservations_for(principal, role)]


@router.get("/{reservation_id}")
def get_reservation(
    reservation_id: str = Path(..., min_length=1),
    principal: Principal = Depends(get_current_principal),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict:
    return service.get_reservation(principal, reservation_id).to_dict()


@router.patch("/{reservation_id}/cancel")
def cancel_reservation(
    reservation_id: str = Path(..., min_length=1),
    principal: Principal = Depends(get_current_principal),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict:
    return service.cancel_reservation(principal, reservation_id).to_dict()
