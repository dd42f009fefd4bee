"""Service wiring for the HTTP layer.

The service is a process-wide singleton built from settings on first use.
Tests replace it with app.dependency_overrides[get_availability_service].
"""

from __future__ import annotations

import threading
from datetime import timedelta

from staybook.domain.availability import AvailabilityService
from staybook.infra.repositories.listings_repository import get_listing_catalog
from staybook.infra.repositories.reservation_store import get_reservation_store
from staybook.settings import get_settings

_service: AvailabilityService | None = None
_service_lock = threading.Lock()


def get_availability_service() -> AvailabilityService:
    global _service

    with _service_lock:
        if _service is None:
            settings = get_settings()
            _service = AvailabilityService(
                get_reservation_store(),
                get_listing_catalog(),
                service_fee_cents=settings.service_fee_cents,
                hold_ttl=timedelta(minutes=settings.hold_ttl_minutes),
            )
        return _service


def reset_availability_service() -> None:
    global _service

    with _service_lock:
        _service = None
