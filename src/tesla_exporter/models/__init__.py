"""Data models for the Tesla owner API and exported measurements."""

from tesla_exporter.models._base import TeslaBaseModel, TeslaStrEnum
from tesla_exporter.models.geofence import GeofenceRegion
from tesla_exporter.models.measurement import EntityType, Measurement, MetricType, Sample, SampleType
from tesla_exporter.models.streaming import (
    FULL_SCHEMA,
    MINIMAL_SCHEMA,
    STREAMING_SCHEMAS,
    StreamingMessage,
    StreamingSample,
    StreamingSchema,
)
from tesla_exporter.models.token import AccessToken
from tesla_exporter.models.vehicle import ChargeState, DriveState, Vehicle, VehicleData, VehicleState

__all__ = [
    "AccessToken",
    "ChargeState",
    "DriveState",
    "EntityType",
    "FULL_SCHEMA",
    "GeofenceRegion",
    "MINIMAL_SCHEMA",
    "Measurement",
    "MetricType",
    "STREAMING_SCHEMAS",
    "Sample",
    "SampleType",
    "StreamingMessage",
    "StreamingSample",
    "StreamingSchema",
    "TeslaBaseModel",
    "TeslaStrEnum",
    "Vehicle",
    "VehicleData",
    "VehicleState",
]
