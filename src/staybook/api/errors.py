"""Mapping of engine errors onto HTTP responses.

Body shape: {"error": <ErrorName>, "detail": <message>, ...}. Validation and
conflict errors carry enough detail to re-prompt the user; authorization
errors stay opaque.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from staybook.domain.errors import (
    DatesUnavailableError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    ReservationError,
    StateError,
    StorageUnavailableError,
)
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)

_STATUS_BY_TYPE: list[tuple[type[ReservationError], int]] = [
    (InvalidRequestError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (DatesUnavailableError, 409),
    (StateError, 409),
    (StorageUnavailableError, 503),
]


def status_for(exc: ReservationError) -> int:
    for exc_type, status in _STATUS_BY_TYPE:
        if isinstance(exc, exc_type):
            return status
    return 500


def error_body(exc: ReservationError) -> dict:
    body: dict = {"error": exc.code, "detail": str(exc)}
    if isinstance(exc, InvalidRequestError) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, DatesUnavailableError):
        body["checkIn"] = exc.check_in.isoformat()
        body["checkOut"] = exc.check_out.isoformat()
        body["conflictCount"] = exc.conflict_count
    return body


async def _reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(
            "request failed",
            extra={
                "extra_fields": safe_log_context(
                    path=request.url.path, error=exc.code, status=status
                )
            },
        )
    return JSONResponse(status_code=status, content=error_body(exc))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    return JSONResponse(
        status_code=400,
        content={
            "error": InvalidRequestError.code,
            "detail": first.get("msg", "invalid request"),
            "field": ".".join(loc) or None,
        },
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationError, _reservation_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
