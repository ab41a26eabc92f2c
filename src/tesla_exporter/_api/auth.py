"""Refresh-token exchange.

Endpoint:
  - https://auth.tesla.com/oauth2/v3/token
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from tesla_exporter._retry import RetryPolicy, call_with_retry
from tesla_exporter._transport import Transport
from tesla_exporter.config import ExporterConfig
from tesla_exporter.exceptions import TeslaApiError, TeslaAuthenticationError
from tesla_exporter.models.token import AccessToken

_logger = logging.getLogger(__name__)


def build_token_request(config: ExporterConfig) -> dict[str, str]:
    """Build the refresh-token grant body."""
    return {
        "grant_type": "refresh_token",
        "scope": config.scope,
        "client_id": config.client_id,
        "refresh_token": config.refresh_token,
    }


def parse_token_response(body: Any) -> AccessToken:
    """Parse the token endpoint response.

    Raises
    ------
    TeslaAuthenticationError
        If the body is not an object or carries no access token.
    """
    if not isinstance(body, dict):
        raise TeslaAuthenticationError("Token response is not an object", endpoint="oauth2/v3/token")
    if body.get("error"):
        raise TeslaAuthenticationError(
            f"Token exchange failed: {body.get('error')} {body.get('error_description', '')}".strip(),
            code=str(body.get("error")),
            endpoint="oauth2/v3/token",
        )
    try:
        return AccessToken.model_validate(body)
    except ValidationError as exc:
        raise TeslaAuthenticationError(
            "Token response missing access_token",
            endpoint="oauth2/v3/token",
        ) from exc


async def fetch_access_token(
    config: ExporterConfig,
    transport: Transport,
    retry: RetryPolicy | None = None,
) -> AccessToken:
    """Exchange the configured refresh token for a bearer token.

    Any failure, including exhausted retries, surfaces as
    :class:`TeslaAuthenticationError`.
    """
    _logger.info("Fetching access token...")
    payload = build_token_request(config)
    try:
        body = await call_with_retry(
            lambda: transport.post_json(config.auth_url, payload),
            retry or config.retry,
            operation="token exchange",
        )
    except TeslaAuthenticationError:
        raise
    except TeslaApiError as exc:
        raise TeslaAuthenticationError(
            f"Token exchange failed: {exc}",
            code=exc.code,
            endpoint=config.auth_url,
        ) from exc
    return parse_token_response(body)
