"""Correlation ID propagation for request tracing."""

import uuid
from contextvars import ContextVar, Token

# Survives await points and thread handoff via contextvars.copy_context()
correlation_id_var: ContextVar[str] = ContextVar("staybook_correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Return the correlation ID bound to the current context, or ''."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)
