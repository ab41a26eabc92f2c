"""Measurement reconciliation engine.

One call to :meth:`TeslaExporter.get_measurements` is one cycle: fetch a
token, resolve the vehicles, then per vehicle decide how much to ask the
car based on its state::

    in service / offline / asleep  -> carry everything forward
    awake                          -> streaming probe
        probe failed               -> treated as asleep
        driving/charging activity  -> vehicle_data for charge values
        otherwise                  -> carry energy forward

Vehicles are measured concurrently; they share only the read-only
previous measurements and geofences.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable, Sequence
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, TypeVar

import aiohttp

from tesla_exporter.client import TeslaClient
from tesla_exporter.config import ExporterConfig
from tesla_exporter.exceptions import TeslaApiError, TeslaStreamingError
from tesla_exporter.geofence import location_for
from tesla_exporter.models.measurement import Measurement
from tesla_exporter.models.streaming import StreamingSample
from tesla_exporter.models.token import AccessToken
from tesla_exporter.models.vehicle import Vehicle, VehicleData
from tesla_exporter.reconcile import (
    Availability,
    LastValues,
    VehicleReading,
    build_measurement,
    carry_forward,
    classify,
    needs_vehicle_data,
    reconcile_awake,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class VehicleApi(Protocol):
    """Calls the engine makes; implemented by :class:`TeslaClient`."""

    async def get_access_token(self) -> AccessToken:
        ...

    async def get_vehicles(self, token: AccessToken) -> list[Vehicle]:
        ...

    async def get_vehicle(self, token: AccessToken, vehicle_id: str) -> Vehicle:
        ...

    async def get_vehicle_data(self, token: AccessToken, vehicle: Vehicle) -> VehicleData:
        ...

    async def get_streaming_data(self, token: AccessToken, vehicle: Vehicle) -> StreamingSample:
        ...


ClientFactory = Callable[[ExporterConfig], AbstractAsyncContextManager[VehicleApi]]


async def _run_all(coros: Iterable[Coroutine[Any, Any, T]]) -> list[T]:
    """Await *coros* concurrently, in order.

    The first failure cancels the remaining calls and is re-raised as is,
    so no call outlives the client it runs on.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except BaseExceptionGroup as group_error:
        raise group_error.exceptions[0] from None
    return [task.result() for task in tasks]


class MeasurementStore(Protocol):
    """Source of previous measurements, updated after each cycle."""

    async def get_last_measurements(self) -> Sequence[Measurement] | None:
        ...

    async def store_measurements(self, measurements: Sequence[Measurement]) -> None:
        ...


class MeasurementSink(Protocol):
    """Receives every completed measurement."""

    async def publish(self, measurement: Measurement) -> None:
        ...


class TeslaExporter:
    """Produces one measurement per configured vehicle per cycle.

    Parameters
    ----------
    session : aiohttp.ClientSession, optional
        Shared HTTP session; a new one is opened per cycle when omitted.
    client_factory : callable, optional
        Builds the API client for a cycle's configuration.
    """

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._session = session
        self._client_factory = client_factory or self._default_client

    def _default_client(self, config: ExporterConfig) -> AbstractAsyncContextManager[VehicleApi]:
        return TeslaClient(config, session=self._session)

    async def get_measurements(
        self,
        config: ExporterConfig,
        last_measurements: Sequence[Measurement] | None = None,
    ) -> list[Measurement]:
        """Run one reconciliation cycle.

        Raises
        ------
        TeslaAuthenticationError
            If no access token could be obtained; nothing is measured.
        TeslaApiError
            If the vehicle directory could not be read.
        """
        async with self._client_factory(config) as client:
            token = await client.get_access_token()
            vehicles = await self._resolve_vehicles(client, config, token)
            return await _run_all(
                self._measure_vehicle(client, config, token, vehicle, last_measurements) for vehicle in vehicles
            )

    async def _resolve_vehicles(
        self,
        client: VehicleApi,
        config: ExporterConfig,
        token: AccessToken,
    ) -> list[Vehicle]:
        if not config.vehicle_ids:
            return await client.get_vehicles(token)
        return await _run_all(client.get_vehicle(token, vid) for vid in config.vehicle_ids)

    async def _measure_vehicle(
        self,
        client: VehicleApi,
        config: ExporterConfig,
        token: AccessToken,
        vehicle: Vehicle,
        last_measurements: Sequence[Measurement] | None,
    ) -> Measurement:
        _logger.debug("State for vehicle %s: %s (in service: %s)", vehicle.id, vehicle.state_raw, vehicle.in_service)
        last = LastValues.from_measurements(last_measurements, vehicle.name)
        availability = classify(vehicle)

        if availability is Availability.AWAKE:
            _logger.info("Vehicle %s is awake", vehicle.name)
            reading = await self._measure_awake(client, config, token, vehicle, last)
        else:
            _logger.info("Vehicle %s is asleep, offline or in service (%s)", vehicle.name, availability.name.lower())
            reading = carry_forward(last, availability)

        measurement = build_measurement(vehicle.name, reading)
        _logger.debug("measurement: %s", measurement.to_json())
        return measurement

    async def _measure_awake(
        self,
        client: VehicleApi,
        config: ExporterConfig,
        token: AccessToken,
        vehicle: Vehicle,
        last: LastValues,
    ) -> VehicleReading:
        try:
            sample = await client.get_streaming_data(token, vehicle)
        except TeslaStreamingError as exc:
            _logger.warning("Stream for %s returned error: %s", vehicle.name, exc)
            _logger.info("Vehicle %s doesn't seem awake, handling like it's asleep", vehicle.name)
            return carry_forward(last, Availability.ASLEEP)

        _logger.debug("vehicle_streaming_data: %s", sample)
        location = location_for(sample.latitude, sample.longitude, config.geofences)
        _logger.info("Vehicle %s is at location %s", vehicle.name, location)

        vehicle_data: VehicleData | None = None
        if needs_vehicle_data(sample, last):
            # Only when driving, charging or just done charging; vehicle_data keeps the car awake.
            try:
                vehicle_data = await client.get_vehicle_data(token, vehicle)
            except TeslaApiError as exc:
                _logger.warning("Fetching vehicle data for %s failed, keeping last values: %s", vehicle.name, exc)
            else:
                _logger.debug("vehicle_data charge_state: %s", vehicle_data.charge_state)

        return reconcile_awake(last, sample, location, vehicle_data)


async def run_cycle(
    exporter: TeslaExporter,
    config: ExporterConfig,
    store: MeasurementStore,
    sink: MeasurementSink,
) -> list[Measurement]:
    """Read previous measurements, reconcile, publish and store the result.

    Measurements are only published and stored after every vehicle was
    measured; a failing cycle leaves the store untouched.
    """
    last_measurements = await store.get_last_measurements()
    measurements = await exporter.get_measurements(config, last_measurements)
    for measurement in measurements:
        await sink.publish(measurement)
    await store.store_measurements(measurements)
    return measurements
