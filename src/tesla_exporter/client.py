"""High-level async client for the Tesla owner and streaming APIs."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import aiohttp

from tesla_exporter._api import auth as _auth_api
from tesla_exporter._api import vehicles as _vehicles_api
from tesla_exporter._retry import RetryPolicy, call_with_retry
from tesla_exporter._streaming import probe_vehicle
from tesla_exporter._transport import HttpTransport, Transport
from tesla_exporter.config import ExporterConfig
from tesla_exporter.exceptions import TeslaError
from tesla_exporter.models.streaming import StreamingSample, StreamingSchema
from tesla_exporter.models.token import AccessToken
from tesla_exporter.models.vehicle import ChargeState, Vehicle, VehicleData

_logger = logging.getLogger(__name__)


class TeslaClient:
    """Async client for the Tesla owner API.

    Usage::

        async with TeslaClient(config) as client:
            token = await client.get_access_token()
            vehicles = await client.get_vehicles(token)
    """

    def __init__(
        self,
        config: ExporterConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._external_transport = transport is not None
        self._clock = clock

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TeslaClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._transport is None:
            self._transport = HttpTransport(self._http_session, timeout=self._config.http_timeout)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    @property
    def config(self) -> ExporterConfig:
        return self._config

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise TeslaError("Client not initialized. Use 'async with TeslaClient(...) as client:'")
        return self._transport

    def _require_http_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise TeslaError("Client not initialized. Use 'async with TeslaClient(...) as client:'")
        return self._http_session

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def get_access_token(self) -> AccessToken:
        """Exchange the refresh token for a bearer token valid for this cycle."""
        return await _auth_api.fetch_access_token(self._config, self._require_transport())

    # ------------------------------------------------------------------
    # Read endpoints
    # ------------------------------------------------------------------

    async def get_vehicles(self, token: AccessToken) -> list[Vehicle]:
        """Fetch all vehicles associated with the account."""
        return await _vehicles_api.fetch_vehicle_list(self._config, self._require_transport(), token)

    async def get_vehicle(self, token: AccessToken, vehicle_id: str) -> Vehicle:
        """Fetch one vehicle's summary and state."""
        return await _vehicles_api.fetch_vehicle(self._config, self._require_transport(), token, vehicle_id)

    async def get_vehicle_data(self, token: AccessToken, vehicle: Vehicle) -> VehicleData:
        """Fetch full vehicle data.  May keep the vehicle awake."""
        return await _vehicles_api.fetch_vehicle_data(self._config, self._require_transport(), token, vehicle)

    async def get_charge_state(self, token: AccessToken, vehicle: Vehicle) -> ChargeState:
        """Fetch the charge state section.  May keep the vehicle awake."""
        return await _vehicles_api.fetch_charge_state(self._config, self._require_transport(), token, vehicle)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def get_streaming_data(
        self,
        token: AccessToken,
        vehicle: Vehicle,
        *,
        schema: StreamingSchema | None = None,
        timeout: float | None = None,
        retry: RetryPolicy | None = None,
    ) -> StreamingSample:
        """Probe the streaming API for one sample, retrying failed probes.

        Raises the last :class:`~tesla_exporter.exceptions.TeslaStreamingError`
        once the retry policy is exhausted.
        """
        http_session = self._require_http_session()
        effective_schema = schema or self._config.schema
        effective_timeout = timeout if timeout is not None else self._config.probe_timeout
        return await call_with_retry(
            lambda: probe_vehicle(
                http_session,
                self._config.streaming_url,
                token,
                vehicle,
                effective_schema,
                timeout=effective_timeout,
                clock=self._clock,
            ),
            retry or self._config.retry,
            operation=f"streaming probe for {vehicle.name}",
        )
