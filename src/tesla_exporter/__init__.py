"""tesla_exporter - Async Tesla electricity, distance and location exporter."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tesla-exporter")
except PackageNotFoundError:
    __version__ = "0+local"
from tesla_exporter._retry import RetryPolicy
from tesla_exporter.client import TeslaClient
from tesla_exporter.config import ExporterConfig, IdleConfig, IdleSampleConfig
from tesla_exporter.exceptions import (
    TeslaApiError,
    TeslaAuthenticationError,
    TeslaConfigError,
    TeslaError,
    TeslaParseError,
    TeslaStreamingError,
    TeslaStreamingTimeoutError,
    TeslaTransportError,
)
from tesla_exporter.exporter import MeasurementSink, MeasurementStore, TeslaExporter, run_cycle
from tesla_exporter.geofence import location_for, match_geofence
from tesla_exporter.idle import IdleClient
from tesla_exporter.models import (
    AccessToken,
    ChargeState,
    EntityType,
    GeofenceRegion,
    Measurement,
    MetricType,
    Sample,
    SampleType,
    StreamingSample,
    Vehicle,
    VehicleData,
    VehicleState,
)

__all__ = [
    "__version__",
    "AccessToken",
    "ChargeState",
    "EntityType",
    "ExporterConfig",
    "GeofenceRegion",
    "IdleClient",
    "IdleConfig",
    "IdleSampleConfig",
    "Measurement",
    "MeasurementSink",
    "MeasurementStore",
    "MetricType",
    "RetryPolicy",
    "Sample",
    "SampleType",
    "StreamingSample",
    "TeslaApiError",
    "TeslaAuthenticationError",
    "TeslaClient",
    "TeslaConfigError",
    "TeslaError",
    "TeslaExporter",
    "TeslaParseError",
    "TeslaStreamingError",
    "TeslaStreamingTimeoutError",
    "TeslaTransportError",
    "Vehicle",
    "VehicleData",
    "VehicleState",
    "location_for",
    "match_geofence",
    "run_cycle",
]
