"""Shared helpers for owner API endpoint modules.

This module centralizes the most repeated patterns:
- running a GET through the retry policy
- unwrapping the ``{"response": ..., "count": ...}`` envelope

It is internal to tesla_exporter and may change at any time.
"""

from __future__ import annotations

from typing import Any

from tesla_exporter._retry import RetryPolicy, call_with_retry
from tesla_exporter._transport import Transport
from tesla_exporter.exceptions import TeslaApiError
from tesla_exporter.models.token import AccessToken


def unwrap_response(body: Any, *, endpoint: str) -> Any:
    """Return the ``response`` member of an owner API body.

    Raises
    ------
    TeslaApiError
        If the body is not an object or carries no ``response``.
    """
    if not isinstance(body, dict):
        raise TeslaApiError(
            f"{endpoint} returned {type(body).__name__}, expected an object",
            code="invalid_body",
            endpoint=endpoint,
        )
    response = body.get("response")
    if response is None:
        error = body.get("error") or "missing 'response' field"
        raise TeslaApiError(
            f"{endpoint} failed: {error}",
            code="missing_response",
            endpoint=endpoint,
        )
    return response


async def get_response(
    *,
    url: str,
    endpoint: str,
    transport: Transport,
    token: AccessToken,
    retry: RetryPolicy,
) -> Any:
    """GET *url* with bearer auth and retries; return the unwrapped response."""
    body = await call_with_retry(
        lambda: transport.get_json(url, token=token),
        retry,
        operation=f"GET {endpoint}",
    )
    return unwrap_response(body, endpoint=endpoint)
