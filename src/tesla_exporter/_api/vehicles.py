"""Vehicle directory and telemetry endpoints.

Endpoints:
  - /api/1/vehicles
  - /api/1/vehicles/{id}
  - /api/1/vehicles/{id}/vehicle_data
  - /api/1/vehicles/{id}/data_request/charge_state

``vehicle_data`` and ``charge_state`` talk to the car itself and may keep
it awake; callers only use them when the streaming probe shows activity.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from tesla_exporter._api._common import get_response
from tesla_exporter._retry import RetryPolicy
from tesla_exporter._transport import Transport
from tesla_exporter.config import ExporterConfig
from tesla_exporter.exceptions import TeslaApiError
from tesla_exporter.models.token import AccessToken
from tesla_exporter.models.vehicle import ChargeState, Vehicle, VehicleData

_logger = logging.getLogger(__name__)

_VEHICLES_ENDPOINT = "/api/1/vehicles"


def _validate(model: type[BaseModel], item: Any, endpoint: str) -> Any:
    try:
        return model.model_validate(item)
    except ValidationError as exc:
        raise TeslaApiError(
            f"{endpoint} returned an unexpected {model.__name__} payload: {exc}",
            code="invalid_body",
            endpoint=endpoint,
        ) from exc


async def fetch_vehicle_list(
    config: ExporterConfig,
    transport: Transport,
    token: AccessToken,
    retry: RetryPolicy | None = None,
) -> list[Vehicle]:
    """Fetch all vehicles associated with the account."""
    _logger.info("Fetching vehicles...")
    response = await get_response(
        url=f"{config.api_base_url}{_VEHICLES_ENDPOINT}",
        endpoint=_VEHICLES_ENDPOINT,
        transport=transport,
        token=token,
        retry=retry or config.retry,
    )
    if not isinstance(response, list):
        raise TeslaApiError(
            f"{_VEHICLES_ENDPOINT} response is not a list",
            code="invalid_body",
            endpoint=_VEHICLES_ENDPOINT,
        )
    return [_validate(Vehicle, item, _VEHICLES_ENDPOINT) for item in response]


async def fetch_vehicle(
    config: ExporterConfig,
    transport: Transport,
    token: AccessToken,
    vehicle_id: str,
    retry: RetryPolicy | None = None,
) -> Vehicle:
    """Fetch the summary of a single vehicle, including its state."""
    endpoint = f"{_VEHICLES_ENDPOINT}/{vehicle_id}"
    _logger.info("Fetching vehicle %s...", vehicle_id)
    response = await get_response(
        url=f"{config.api_base_url}{endpoint}",
        endpoint=endpoint,
        transport=transport,
        token=token,
        retry=retry or config.retry,
    )
    vehicle: Vehicle = _validate(Vehicle, response, endpoint)
    return vehicle


async def fetch_vehicle_data(
    config: ExporterConfig,
    transport: Transport,
    token: AccessToken,
    vehicle: Vehicle,
    retry: RetryPolicy | None = None,
) -> VehicleData:
    """Fetch full vehicle data (charge and drive state)."""
    endpoint = f"{_VEHICLES_ENDPOINT}/{vehicle.id}/vehicle_data"
    _logger.info("Fetching vehicle data for %s...", vehicle.name)
    response = await get_response(
        url=f"{config.api_base_url}{endpoint}",
        endpoint=endpoint,
        transport=transport,
        token=token,
        retry=retry or config.retry,
    )
    data: VehicleData = _validate(VehicleData, response, endpoint)
    return data


async def fetch_charge_state(
    config: ExporterConfig,
    transport: Transport,
    token: AccessToken,
    vehicle: Vehicle,
    retry: RetryPolicy | None = None,
) -> ChargeState:
    """Fetch only the charge state section."""
    endpoint = f"{_VEHICLES_ENDPOINT}/{vehicle.id}/data_request/charge_state"
    _logger.info("Fetching charge state for %s...", vehicle.name)
    response = await get_response(
        url=f"{config.api_base_url}{endpoint}",
        endpoint=endpoint,
        transport=transport,
        token=token,
        retry=retry or config.retry,
    )
    state: ChargeState = _validate(ChargeState, response, endpoint)
    return state
