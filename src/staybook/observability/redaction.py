"""Helpers that keep guest identity out of log lines.

Principal ids are reduced to a short prefix; free text is scrubbed of
emails and phone numbers; containers are summarised, never dumped.
"""

import re
from datetime import date, datetime
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"
_PRINCIPAL_PREFIX_LEN = 6

# Keys whose values identify a person
_PRINCIPAL_KEYS = frozenset({"principal_id", "guest_id", "owner_id", "caller_id"})


def redact_string(value: str) -> str:
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    return _EMAIL_PATTERN.sub(_REDACTED, result)


def mask_principal(principal_id: str | None) -> str:
    """Shorten a principal id to a non-identifying prefix."""
    if not principal_id:
        return "null"
    if len(principal_id) <= _PRINCIPAL_PREFIX_LEN:
        return "*" * len(principal_id)
    return principal_id[:_PRINCIPAL_PREFIX_LEN] + "…"


def redact_value(value: Any) -> Any:
    """Return a log-safe rendition of value."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={sorted(value.keys())})"
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, Any]:
    """Build an extra_fields dict that is safe to log."""
    context: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key in _PRINCIPAL_KEYS:
            context[key] = mask_principal(value)
        else:
            context[key] = redact_value(value)
    return context
