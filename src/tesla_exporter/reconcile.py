"""Counter reconciliation.

Pure functions turning the previous measurement, the vehicle's state and
whatever fresh telemetry was obtained into the values of the next
measurement.  Nothing here performs I/O.

Counters (charge energy added, odometer) are carried forward from the
previous measurement whenever the current cycle has no authoritative
value, so they never drop because a vehicle was asleep or unreachable.
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Iterable
from datetime import datetime

from tesla_exporter._constants import (
    LOCATION_OTHER,
    SOURCE,
    kilowatt_hours_to_watt_seconds,
    kilowatts_to_watts,
    miles_to_meters,
)
from tesla_exporter.models.measurement import EntityType, Measurement, MetricType, Sample, SampleType
from tesla_exporter.models.streaming import StreamingSample
from tesla_exporter.models.vehicle import Vehicle, VehicleData, VehicleState


class Availability(enum.IntEnum):
    """Value of the availability gauge."""

    IN_SERVICE = -2
    OFFLINE = -1
    ASLEEP = 0
    AWAKE = 1


def classify(vehicle: Vehicle) -> Availability:
    """Map a vehicle snapshot to the branch of the decision table.

    Every state other than asleep/offline, including unknown ones, counts
    as awake and gets a streaming probe.
    """
    if vehicle.in_service:
        return Availability.IN_SERVICE
    if vehicle.state == VehicleState.OFFLINE:
        return Availability.OFFLINE
    if vehicle.state == VehicleState.ASLEEP:
        return Availability.ASLEEP
    return Availability.AWAKE


@dataclasses.dataclass(frozen=True)
class LastValues:
    """Values carried over from the previous measurement of a vehicle.

    Power is in W, energy in Ws and odometer in m.
    """

    location: str = LOCATION_OTHER
    charger_power: float = 0.0
    charge_energy_added: float = 0.0
    odometer: float = 0.0

    @classmethod
    def from_measurement(cls, measurement: Measurement | None, sample_name: str) -> LastValues:
        if measurement is None:
            return cls()

        def value(sample_type: SampleType, metric_type: MetricType) -> float:
            sample = measurement.find_sample(sample_name, sample_type, metric_type)
            return sample.value if sample is not None else 0.0

        return cls(
            location=measurement.location,
            charger_power=value(SampleType.ELECTRICITY_CONSUMPTION, MetricType.GAUGE),
            charge_energy_added=value(SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER),
            odometer=value(SampleType.DISTANCE_TRAVELED, MetricType.COUNTER),
        )

    @classmethod
    def from_measurements(cls, measurements: Iterable[Measurement] | None, sample_name: str) -> LastValues:
        """Seed from the first measurement carrying samples for *sample_name*."""
        return cls.from_measurement(find_last_measurement(measurements, sample_name), sample_name)


def find_last_measurement(measurements: Iterable[Measurement] | None, sample_name: str) -> Measurement | None:
    if measurements is None:
        return None
    for measurement in measurements:
        if measurement.has_sample_name(sample_name):
            return measurement
    return None


@dataclasses.dataclass(frozen=True)
class VehicleReading:
    """Reconciled values of one vehicle for one cycle."""

    location: str
    charger_power: float
    charge_energy_added: float
    odometer: float
    availability: Availability


def carry_forward(last: LastValues, availability: Availability) -> VehicleReading:
    """Reading for a vehicle that was not (or could not be) queried."""
    return VehicleReading(
        location=last.location,
        charger_power=0.0,
        charge_energy_added=last.charge_energy_added,
        odometer=last.odometer,
        availability=availability,
    )


def current_odometer(sample: StreamingSample, last: LastValues) -> float:
    """Streamed odometer in meters, or the carried value if not streamed."""
    if sample.odometer is None:
        return last.odometer
    return miles_to_meters(sample.odometer)


def needs_vehicle_data(sample: StreamingSample, last: LastValues) -> bool:
    """Whether the vehicle is driving, charging or has just stopped charging.

    Only then is ``vehicle_data`` worth fetching, since that call keeps
    the vehicle awake.
    """
    return (
        sample.power > 0
        or (sample.speed or 0.0) > 0
        or current_odometer(sample, last) - last.odometer > 0
        or last.charger_power > 0
    )


def charge_values(vehicle_data: VehicleData | None, last: LastValues) -> tuple[float, float]:
    """Return ``(charge_energy_added_ws, charger_power_w)``.

    ``None`` means vehicle data was not fetched.  The vehicle reports
    energy added per charging session, so an unlatched charge port yields
    zero for both values.
    """
    if vehicle_data is None or vehicle_data.charge_state is None:
        return last.charge_energy_added, 0.0
    charge = vehicle_data.charge_state
    if not charge.is_port_engaged:
        return 0.0, 0.0
    return (
        kilowatt_hours_to_watt_seconds(charge.charge_energy_added),
        kilowatts_to_watts(charge.charger_power),
    )


def reconcile_awake(
    last: LastValues,
    sample: StreamingSample,
    location: str,
    vehicle_data: VehicleData | None,
) -> VehicleReading:
    """Reading for a vehicle that answered the streaming probe."""
    charge_energy_added, charger_power = charge_values(vehicle_data, last)
    return VehicleReading(
        location=location,
        charger_power=charger_power,
        charge_energy_added=charge_energy_added,
        odometer=current_odometer(sample, last),
        availability=Availability.AWAKE,
    )


def build_samples(sample_name: str, reading: VehicleReading, *, entity_name: str = SOURCE) -> tuple[Sample, ...]:
    """One gauge and one counter per sample type, never more."""

    def sample(sample_type: SampleType, metric_type: MetricType, value: float) -> Sample:
        return Sample(
            entity_type=EntityType.DEVICE,
            entity_name=entity_name,
            sample_type=sample_type,
            sample_name=sample_name,
            metric_type=metric_type,
            value=float(value),
        )

    return (
        # gauge for timeline graphs
        sample(SampleType.ELECTRICITY_CONSUMPTION, MetricType.GAUGE, reading.charger_power),
        # counter for totals
        sample(SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER, reading.charge_energy_added),
        sample(SampleType.DISTANCE_TRAVELED, MetricType.COUNTER, reading.odometer),
        sample(SampleType.AVAILABILITY, MetricType.GAUGE, float(reading.availability)),
    )


def build_measurement(
    sample_name: str,
    reading: VehicleReading,
    *,
    source: str = SOURCE,
    measured_at: datetime | None = None,
) -> Measurement:
    extra = {"measured_at_time": measured_at} if measured_at is not None else {}
    return Measurement(
        source=source,
        location=reading.location,
        samples=build_samples(sample_name, reading, entity_name=source),
        **extra,
    )
