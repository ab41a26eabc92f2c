"""JSON-over-HTTPS transport for the auth and owner API endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from tesla_exporter._constants import USER_AGENT
from tesla_exporter._redact import redact_for_log
from tesla_exporter.exceptions import TeslaApiError, TeslaTransportError
from tesla_exporter.models.token import AccessToken

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Endpoint modules only depend on this protocol so tests can pass plain
    fake objects; :class:`HttpTransport` is the aiohttp implementation.
    """

    async def get_json(self, url: str, *, token: AccessToken) -> Any:
        ...

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        ...


class HttpTransport:
    """aiohttp transport raising :class:`TeslaTransportError` on failure."""

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float = 30.0) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_json(self, url: str, *, token: AccessToken) -> Any:
        headers = {
            "accept": "application/json",
            "authorization": token.authorization,
            "user-agent": USER_AGENT,
        }
        _logger.debug("GET %s", url)
        return await self._request("GET", url, headers=headers)

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        _logger.debug("POST %s body=%s", url, redact_for_log(payload))
        return await self._request("POST", url, headers=headers, body=json.dumps(dict(payload)))

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        body: str | None = None,
    ) -> Any:
        try:
            async with self._http.request(
                method,
                url,
                data=body,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise TeslaTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except TeslaTransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TeslaTransportError(
                f"{method} {url} failed: {exc!r}",
                endpoint=url,
            ) from exc

        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TeslaApiError(
                f"Invalid JSON from {url}: {text[:200]}",
                code="invalid_json",
                endpoint=url,
            ) from exc

        _logger.debug("Response from %s: %s", url, redact_for_log(decoded))
        return decoded
