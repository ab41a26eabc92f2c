"""Measurement and sample models.

Measurements are the unit handed to the publishing side.  They serialise
with camelCase keys (``measuredAtTime``, ``sampleType``…) via
:meth:`Measurement.to_json`.
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tesla_exporter._constants import SOURCE


class EntityType(enum.StrEnum):
    DEVICE = "Device"


class SampleType(enum.StrEnum):
    ELECTRICITY_CONSUMPTION = "ElectricityConsumption"
    DISTANCE_TRAVELED = "DistanceTraveled"
    AVAILABILITY = "Availability"


class MetricType(enum.StrEnum):
    GAUGE = "Gauge"
    COUNTER = "Counter"


_MODEL_CONFIG = ConfigDict(
    frozen=True,
    extra="ignore",
    populate_by_name=True,
    alias_generator=to_camel,
)


class Sample(BaseModel):
    """A single gauge or counter value for one named device."""

    model_config = _MODEL_CONFIG

    entity_type: EntityType = EntityType.DEVICE
    entity_name: str = SOURCE
    sample_type: SampleType
    sample_name: str
    metric_type: MetricType
    value: float


class Measurement(BaseModel):
    """Immutable set of samples taken at one location and time."""

    model_config = _MODEL_CONFIG

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: str = SOURCE
    location: str
    samples: tuple[Sample, ...] = ()
    measured_at_time: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def has_sample_name(self, sample_name: str) -> bool:
        return any(s.sample_name == sample_name for s in self.samples)

    def find_sample(
        self,
        sample_name: str,
        sample_type: SampleType,
        metric_type: MetricType,
        entity_type: EntityType = EntityType.DEVICE,
    ) -> Sample | None:
        """Return the first sample matching all keys, ``None`` if absent."""
        for sample in self.samples:
            if (
                sample.entity_type == entity_type
                and sample.sample_type == sample_type
                and sample.sample_name == sample_name
                and sample.metric_type == metric_type
            ):
                return sample
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
