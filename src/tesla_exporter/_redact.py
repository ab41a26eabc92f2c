"""Helpers for safe debug logging.

Refresh tokens and bearer tokens travel in request bodies, streaming
subscribe messages and headers.  :func:`redact_for_log` masks them before
a payload reaches a DEBUG log line.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "access_token",
        "refresh_token",
        "id_token",
        "token",
        "authorization",
        "password",
        "cookie",
    }
)

_MAX_DEPTH = 20


def mask_secret(secret: Any) -> str:
    """Hide a secret, keeping only enough of its tail to tell tokens apart."""
    text = str(secret)
    if len(text) <= 8:
        return "<redacted>"
    return f"<redacted …{text[-4:]}>"


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* with secrets masked and long strings cut."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if value.startswith("Bearer "):
            return f"Bearer {mask_secret(value[7:])}"
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(key): (
                mask_secret(item)
                if str(key).lower() in _SENSITIVE_KEYS
                else redact_for_log(item, max_string=max_string, _depth=_depth + 1)
            )
            for key, item in value.items()
        }

    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]

    return repr(value)
