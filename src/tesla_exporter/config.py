"""Exporter configuration."""

from __future__ import annotations

import dataclasses
import json
import os
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from tesla_exporter._constants import API_BASE_URL, AUTH_URL, CLIENT_ID, SCOPE, STREAMING_URL
from tesla_exporter._retry import RetryPolicy
from tesla_exporter.exceptions import TeslaConfigError
from tesla_exporter.models.geofence import GeofenceRegion
from tesla_exporter.models.streaming import STREAMING_SCHEMAS, StreamingSchema


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _parse_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise TeslaConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise TeslaConfigError(f"{name} must be a number, got {value!r}") from exc


def parse_geofences(items: Iterable[Any]) -> tuple[GeofenceRegion, ...]:
    """Validate geofence entries, keeping their order.

    Raises
    ------
    TeslaConfigError
        If an entry is not a mapping or misses a required key.
    """
    regions: list[GeofenceRegion] = []
    for index, item in enumerate(items):
        if isinstance(item, GeofenceRegion):
            regions.append(item)
            continue
        if not isinstance(item, Mapping):
            raise TeslaConfigError(f"geofence #{index} must be an object, got {type(item).__name__}")
        try:
            regions.append(GeofenceRegion.model_validate(dict(item)))
        except ValidationError as exc:
            raise TeslaConfigError(f"geofence #{index} is invalid: {exc}") from exc
    return tuple(regions)


@dataclasses.dataclass(frozen=True)
class ExporterConfig:
    """Exporter configuration.

    Parameters
    ----------
    refresh_token : str
        Long-lived refresh token exchanged for an access token each cycle.
    geofences : tuple[GeofenceRegion, ...]
        Ordered regions; the first region containing the vehicle wins.
    vehicle_ids : tuple[str, ...]
        Vehicles to measure.  Empty means every vehicle on the account.
    streaming_schema : str
        ``"full"`` (13 values, 30 s deadline) or ``"minimal"``
        (4 values, 300 s deadline).
    streaming_timeout : float or None
        Probe deadline override in seconds.
    http_timeout : float
        Total timeout for a single REST request in seconds.
    auth_url, api_base_url, streaming_url : str
        Service endpoints.
    client_id, scope : str
        Values sent with the refresh-token grant.
    retry : RetryPolicy
        Backoff schedule for every network call.
    """

    refresh_token: str
    geofences: tuple[GeofenceRegion, ...] = ()
    vehicle_ids: tuple[str, ...] = ()
    streaming_schema: str = "full"
    streaming_timeout: float | None = None
    http_timeout: float = 30.0
    auth_url: str = AUTH_URL
    api_base_url: str = API_BASE_URL
    streaming_url: str = STREAMING_URL
    client_id: str = CLIENT_ID
    scope: str = SCOPE
    retry: RetryPolicy = dataclasses.field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if not self.refresh_token:
            raise TeslaConfigError("refresh_token is required")
        if self.streaming_schema not in STREAMING_SCHEMAS:
            raise TeslaConfigError(
                f"streaming_schema must be one of {sorted(STREAMING_SCHEMAS)}, got {self.streaming_schema!r}"
            )
        if self.streaming_timeout is not None:
            streaming_timeout = _parse_float("streaming_timeout", self.streaming_timeout)
            if not streaming_timeout > 0:
                raise TeslaConfigError("streaming_timeout must be positive")
            object.__setattr__(self, "streaming_timeout", streaming_timeout)
        http_timeout = _parse_float("http_timeout", self.http_timeout)
        if not http_timeout > 0:
            raise TeslaConfigError("http_timeout must be positive")
        object.__setattr__(self, "http_timeout", http_timeout)
        # Accept lists from callers; the dataclass itself stays hashable.
        object.__setattr__(self, "geofences", parse_geofences(self.geofences))
        object.__setattr__(self, "vehicle_ids", tuple(str(v) for v in self.vehicle_ids))

    @property
    def schema(self) -> StreamingSchema:
        return STREAMING_SCHEMAS[self.streaming_schema]

    @property
    def probe_timeout(self) -> float:
        """Effective streaming deadline in seconds."""
        if self.streaming_timeout is not None:
            return self.streaming_timeout
        return self.schema.timeout

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], **overrides: Any) -> ExporterConfig:
        """Create configuration from a camelCase configuration document.

        Besides the ``geofences`` list, the older single-region shape with
        top-level ``location``, ``latitude``, ``longitude`` and
        ``geofenceRadiusMeters`` keys is accepted.
        """
        kwargs: dict[str, Any] = {}
        key_map = {
            "refreshToken": "refresh_token",
            "streamingSchema": "streaming_schema",
            "streamingTimeout": "streaming_timeout",
            "httpTimeout": "http_timeout",
            "apiBaseUrl": "api_base_url",
        }
        for key, field_name in key_map.items():
            if key in data:
                kwargs[field_name] = data[key]

        geofences = data.get("geofences")
        if geofences is None and "location" in data:
            geofences = [data]
        if geofences is not None:
            if not isinstance(geofences, list):
                raise TeslaConfigError("geofences must be a list")
            kwargs["geofences"] = parse_geofences(geofences)

        vehicle_ids = data.get("vehicleIds")
        if vehicle_ids is not None:
            if not isinstance(vehicle_ids, list):
                raise TeslaConfigError("vehicleIds must be a list")
            kwargs["vehicle_ids"] = tuple(str(v) for v in vehicle_ids)

        kwargs.update(overrides)
        if "refresh_token" not in kwargs:
            raise TeslaConfigError("refreshToken is required")
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> ExporterConfig:
        """Create configuration from environment variables.

        Reads ``TESLA_REFRESH_TOKEN`` and optional ``TESLA_*`` variables.
        ``TESLA_GEOFENCES`` holds a JSON list of geofence objects and
        ``TESLA_VEHICLE_IDS`` a comma-separated id list.  Explicit keyword
        arguments override environment values.
        """
        env = os.environ
        kwargs: dict[str, Any] = {}

        token = env.get("TESLA_REFRESH_TOKEN")
        if token is not None:
            kwargs["refresh_token"] = token.strip()

        geofences_env = env.get("TESLA_GEOFENCES")
        if geofences_env and "geofences" not in overrides:
            try:
                decoded = json.loads(geofences_env)
            except json.JSONDecodeError as exc:
                raise TeslaConfigError(f"TESLA_GEOFENCES is not valid JSON: {exc}") from exc
            if not isinstance(decoded, list):
                raise TeslaConfigError("TESLA_GEOFENCES must be a JSON list")
            kwargs["geofences"] = parse_geofences(decoded)

        if "vehicle_ids" not in overrides:
            kwargs["vehicle_ids"] = _split_csv(env.get("TESLA_VEHICLE_IDS"))

        _ENV_STR_MAP = {
            "TESLA_STREAMING_SCHEMA": "streaming_schema",
            "TESLA_AUTH_URL": "auth_url",
            "TESLA_API_BASE_URL": "api_base_url",
            "TESLA_STREAMING_URL": "streaming_url",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                kwargs[field_name] = val.strip()

        timeout_env = env.get("TESLA_STREAMING_TIMEOUT")
        if timeout_env and "streaming_timeout" not in overrides:
            kwargs["streaming_timeout"] = _parse_float("TESLA_STREAMING_TIMEOUT", timeout_env)

        http_timeout_env = env.get("TESLA_HTTP_TIMEOUT")
        if http_timeout_env and "http_timeout" not in overrides:
            kwargs["http_timeout"] = _parse_float("TESLA_HTTP_TIMEOUT", http_timeout_env)

        kwargs.update(overrides)
        if not kwargs.get("refresh_token"):
            raise TeslaConfigError("TESLA_REFRESH_TOKEN is not set")
        return cls(**kwargs)


@dataclasses.dataclass(frozen=True)
class IdleSampleConfig:
    """Constant power draw of one kind of always-on device."""

    sample_name: str
    value_watt: float
    instance_count: int | None = None

    @property
    def total_watt(self) -> float:
        count = self.instance_count if self.instance_count is not None else 1
        return self.value_watt * count


@dataclasses.dataclass(frozen=True)
class IdleConfig:
    """Configuration of the idle measurement client.

    Parameters
    ----------
    location : str
        Location written on every measurement.
    interval_seconds : float
        Cycle length used to accumulate the energy counter.
    sample_configs : tuple[IdleSampleConfig, ...]
        Devices to report.
    """

    location: str
    interval_seconds: float
    sample_configs: tuple[IdleSampleConfig, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> IdleConfig:
        try:
            samples = tuple(
                IdleSampleConfig(
                    sample_name=str(item["sampleName"]),
                    value_watt=float(item["valueWatt"]),
                    instance_count=int(item["instanceCount"]) if item.get("instanceCount") is not None else None,
                )
                for item in data.get("sampleConfigs", [])
            )
            return cls(
                location=str(data["location"]),
                interval_seconds=float(data["intervalSeconds"]),
                sample_configs=samples,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TeslaConfigError(f"invalid idle configuration: {exc}") from exc
