"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts personal numbers,
start tokens, pairing secrets and signature material from request and
response structures before they are written to log files.  Only the
shape of the data is preserved.
"""

from __future__ import annotations

import re
from typing import Any

# Wire fields that carry secrets or signed material
_SECRET_FIELDS = frozenset(
    {
        "autoStartToken",
        "qrStartToken",
        "qrStartSecret",
        "signature",
        "ocspResponse",
        "userNonVisibleData",
        "userVisibleData",
    }
)

_PERSONAL_NUMBER_FIELDS = frozenset({"personalNumber"})

# 12-digit personal numbers embedded in free text
_PERSONAL_NUMBER_RE = re.compile(r"(?<!\d)(\d{8})(\d{4})(?!\d)")


def mask_personal_number(value: str) -> str:
    """Keep the birth date of a personal number, mask the last four digits."""
    if len(value) <= 4:  # noqa: PLR2004
        return "****"
    return value[:-4] + "****"


def _mask_text(value: str) -> str:
    return _PERSONAL_NUMBER_RE.sub(lambda m: m.group(1) + "****", value)


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize sensitive material in *data*.

    Handles dicts keyed by wire field names, lists, and plain strings.
    Non-sensitive data passes through unchanged.
    """
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if key in _SECRET_FIELDS and value:
                result[key] = "[REDACTED]"
            elif key in _PERSONAL_NUMBER_FIELDS and isinstance(value, str):
                result[key] = mask_personal_number(value)
            else:
                result[key] = sanitize_for_logs(value)
        return result

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, str):
        return _mask_text(data)

    return data
