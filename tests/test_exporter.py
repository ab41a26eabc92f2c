from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from tesla_exporter._constants import miles_to_meters
from tesla_exporter.config import ExporterConfig
from tesla_exporter.exceptions import (
    TeslaApiError,
    TeslaAuthenticationError,
    TeslaStreamingTimeoutError,
    TeslaTransportError,
)
from tesla_exporter.exporter import TeslaExporter, run_cycle
from tesla_exporter.models import (
    AccessToken,
    ChargeState,
    Measurement,
    MetricType,
    SampleType,
    StreamingSample,
    Vehicle,
    VehicleData,
)
from tesla_exporter.reconcile import Availability, VehicleReading, build_measurement
from tesla_exporter.sinks import InMemoryMeasurementStore

ODOMETER_MILES = 12_000.0
ODOMETER_METERS = miles_to_meters(ODOMETER_MILES)


class _FakeClient:
    def __init__(
        self,
        vehicles: list[Vehicle],
        *,
        samples: dict[int, StreamingSample | Exception] | None = None,
        vehicle_data: dict[int, VehicleData | Exception] | None = None,
        token_error: Exception | None = None,
    ) -> None:
        self._vehicles = {str(v.id): v for v in vehicles}
        self._samples = samples or {}
        self._vehicle_data = vehicle_data or {}
        self._token_error = token_error
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    async def __aenter__(self) -> _FakeClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.closed = True

    async def get_access_token(self) -> AccessToken:
        self.calls.append(("token", None))
        if self._token_error is not None:
            raise self._token_error
        return AccessToken(access_token="tok")

    async def get_vehicles(self, token: AccessToken) -> list[Vehicle]:
        self.calls.append(("vehicles", None))
        return list(self._vehicles.values())

    async def get_vehicle(self, token: AccessToken, vehicle_id: str) -> Vehicle:
        self.calls.append(("vehicle", vehicle_id))
        return self._vehicles[vehicle_id]

    async def get_vehicle_data(self, token: AccessToken, vehicle: Vehicle) -> VehicleData:
        self.calls.append(("vehicle_data", vehicle.id))
        result = self._vehicle_data[vehicle.id]
        if isinstance(result, Exception):
            raise result
        return result

    async def get_streaming_data(self, token: AccessToken, vehicle: Vehicle) -> StreamingSample:
        self.calls.append(("streaming", vehicle.id))
        result = self._samples[vehicle.id]
        if isinstance(result, Exception):
            raise result
        return result


def _config(**kwargs: Any) -> ExporterConfig:
    return ExporterConfig(
        refresh_token="refresh",
        geofences=[{"name": "Home", "latitude": 52.0, "longitude": 13.0, "radius_meters": 100}],
        **kwargs,
    )


def _vehicle(vid: int, name: str, state: str = "online", in_service: bool = False) -> Vehicle:
    return Vehicle(id=vid, vehicle_id=vid * 10, display_name=name, state=state, in_service=in_service)


def _previous(name: str, *, energy: float = 5000.0, location: str = "Home") -> Measurement:
    return build_measurement(
        name,
        VehicleReading(
            location=location,
            charger_power=0.0,
            charge_energy_added=energy,
            odometer=ODOMETER_METERS,
            availability=Availability.AWAKE,
        ),
    )


def _value(measurement: Measurement, name: str, sample_type: SampleType, metric_type: MetricType) -> float:
    sample = measurement.find_sample(name, sample_type, metric_type)
    assert sample is not None
    return sample.value


def _at_home(power: float = 0.0, speed: float = 0.0) -> StreamingSample:
    return StreamingSample(latitude=52.0, longitude=13.0, power=power, speed=speed, odometer=ODOMETER_MILES)


def _exporter(client: _FakeClient) -> TeslaExporter:
    return TeslaExporter(client_factory=lambda config: client)


@pytest.mark.asyncio
async def test_unavailable_vehicles_are_not_contacted() -> None:
    vehicles = [
        _vehicle(1, "Asleep", state="asleep"),
        _vehicle(2, "Offline", state="offline"),
        _vehicle(3, "Service", state="online", in_service=True),
    ]
    client = _FakeClient(vehicles)
    previous = [_previous("Asleep"), _previous("Offline"), _previous("Service")]

    measurements = await _exporter(client).get_measurements(_config(), previous)

    assert client.calls == [("token", None), ("vehicles", None)]
    assert client.closed
    for measurement, (name, availability) in zip(
        measurements, [("Asleep", 0.0), ("Offline", -1.0), ("Service", -2.0)], strict=True
    ):
        assert measurement.location == "Home"
        assert _value(measurement, name, SampleType.AVAILABILITY, MetricType.GAUGE) == availability
        assert _value(measurement, name, SampleType.ELECTRICITY_CONSUMPTION, MetricType.GAUGE) == 0.0
        assert _value(measurement, name, SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER) == 5000.0
        assert _value(measurement, name, SampleType.DISTANCE_TRAVELED, MetricType.COUNTER) == ODOMETER_METERS


@pytest.mark.asyncio
async def test_failed_probe_is_handled_like_asleep(caplog: pytest.LogCaptureFixture) -> None:
    client = _FakeClient(
        [_vehicle(1, "Model 3")],
        samples={1: TeslaStreamingTimeoutError("Timed out after 30 seconds")},
    )

    with caplog.at_level(logging.WARNING, logger="tesla_exporter.exporter"):
        measurements = await _exporter(client).get_measurements(_config(), [_previous("Model 3")])

    (measurement,) = measurements
    assert _value(measurement, "Model 3", SampleType.AVAILABILITY, MetricType.GAUGE) == 0.0
    assert _value(measurement, "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER) == 5000.0
    assert ("vehicle_data", 1) not in client.calls
    assert any("Timed out" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_parked_awake_vehicle_skips_vehicle_data() -> None:
    client = _FakeClient([_vehicle(1, "Model 3")], samples={1: _at_home()})

    (measurement,) = await _exporter(client).get_measurements(_config(), [_previous("Model 3")])

    assert ("vehicle_data", 1) not in client.calls
    assert measurement.location == "Home"
    assert _value(measurement, "Model 3", SampleType.AVAILABILITY, MetricType.GAUGE) == 1.0
    assert _value(measurement, "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER) == 5000.0
    assert _value(measurement, "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.GAUGE) == 0.0


@pytest.mark.asyncio
async def test_charging_vehicle_reports_charge_state() -> None:
    data = VehicleData(
        id=1,
        vehicle_id=10,
        state="online",
        charge_state=ChargeState(charge_port_latch="Engaged", charge_energy_added=2.0, charger_power=7.0),
    )
    client = _FakeClient([_vehicle(1, "Model 3")], samples={1: _at_home(power=7.0)}, vehicle_data={1: data})

    (measurement,) = await _exporter(client).get_measurements(_config(), [_previous("Model 3")])

    assert ("vehicle_data", 1) in client.calls
    assert _value(measurement, "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER) == pytest.approx(
        7_200_000.0
    )
    assert _value(measurement, "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.GAUGE) == pytest.approx(
        7000.0
    )


@pytest.mark.asyncio
async def test_vehicle_data_failure_keeps_last_values() -> None:
    client = _FakeClient(
        [_vehicle(1, "Model 3")],
        samples={1: _at_home(speed=30.0)},
        vehicle_data={1: TeslaTransportError("HTTP 408", status_code=408)},
    )

    (measurement,) = await _exporter(client).get_measurements(_config(), [_previous("Model 3")])

    assert _value(measurement, "Model 3", SampleType.AVAILABILITY, MetricType.GAUGE) == 1.0
    assert _value(measurement, "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER) == 5000.0
    assert _value(measurement, "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.GAUGE) == 0.0


@pytest.mark.asyncio
async def test_vehicle_outside_geofences_is_other() -> None:
    sample = StreamingSample(latitude=48.0, longitude=11.0, power=0.0, speed=0.0, odometer=ODOMETER_MILES)
    client = _FakeClient([_vehicle(1, "Model 3")], samples={1: sample})

    (measurement,) = await _exporter(client).get_measurements(_config(), [_previous("Model 3")])

    assert measurement.location == "Other"


@pytest.mark.asyncio
async def test_authentication_failure_aborts_the_cycle() -> None:
    client = _FakeClient([_vehicle(1, "Model 3")], token_error=TeslaAuthenticationError("invalid_grant"))

    with pytest.raises(TeslaAuthenticationError):
        await _exporter(client).get_measurements(_config())

    assert client.calls == [("token", None)]


@pytest.mark.asyncio
async def test_configured_vehicle_ids_are_fetched_individually() -> None:
    client = _FakeClient(
        [_vehicle(1, "Model 3", state="asleep"), _vehicle(2, "Model Y", state="asleep")],
    )

    measurements = await _exporter(client).get_measurements(_config(vehicle_ids=("2",)))

    assert ("vehicles", None) not in client.calls
    assert ("vehicle", "2") in client.calls
    assert [m.samples[0].sample_name for m in measurements] == ["Model Y"]


@pytest.mark.asyncio
async def test_run_cycle_publishes_and_stores() -> None:
    client = _FakeClient([_vehicle(1, "Model 3", state="asleep")])
    store = InMemoryMeasurementStore([_previous("Model 3", energy=42.0)])
    sink = InMemoryMeasurementStore()

    measurements = await run_cycle(_exporter(client), _config(), store, sink)

    assert sink.published == measurements
    assert await store.get_last_measurements() == measurements
    assert _value(measurements[0], "Model 3", SampleType.ELECTRICITY_CONSUMPTION, MetricType.COUNTER) == 42.0


@pytest.mark.asyncio
async def test_failed_cycle_leaves_store_untouched() -> None:
    client = _FakeClient([], token_error=TeslaAuthenticationError("invalid_grant"))
    previous = [_previous("Model 3")]
    store = InMemoryMeasurementStore(previous)
    sink = InMemoryMeasurementStore()

    with pytest.raises(TeslaAuthenticationError):
        await run_cycle(_exporter(client), _config(), store, sink)

    assert sink.published == []
    assert await store.get_last_measurements() == previous


class _SlowDirectoryClient(_FakeClient):
    """Vehicle "1" cannot be fetched; every other fetch takes a while."""

    def __init__(self, vehicles: list[Vehicle]) -> None:
        super().__init__(vehicles)
        self.cancelled: list[str] = []
        self.finished: list[str] = []

    async def get_vehicle(self, token: AccessToken, vehicle_id: str) -> Vehicle:
        if vehicle_id == "1":
            await asyncio.sleep(0)
            raise TeslaApiError("vehicle unavailable", endpoint="/api/1/vehicles/1")
        try:
            await asyncio.sleep(0.05)
        except asyncio.CancelledError:
            self.cancelled.append(vehicle_id)
            raise
        self.finished.append(vehicle_id)
        return await super().get_vehicle(token, vehicle_id)


@pytest.mark.asyncio
async def test_failed_vehicle_fetch_cancels_the_other_fetches() -> None:
    client = _SlowDirectoryClient([_vehicle(1, "Model 3"), _vehicle(2, "Model Y")])

    with pytest.raises(TeslaApiError, match="vehicle unavailable"):
        await _exporter(client).get_measurements(_config(vehicle_ids=("1", "2")))

    assert client.closed
    assert client.cancelled == ["2"]
    await asyncio.sleep(0.1)
    assert client.finished == []
