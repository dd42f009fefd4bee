"""Public-facing routes (APP_ROLE=public)."""

from fastapi import APIRouter

from staybook.api.routes import availability, reservations

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


router.include_router(availability.router)
router.include_router(reservations.router)
