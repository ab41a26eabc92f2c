"""Vehicle, vehicle data and charge state models.

Fields are mapped from the owner API ``/api/1/vehicles`` and
``/api/1/vehicles/{id}/vehicle_data`` responses.
"""

from __future__ import annotations

from typing import Any

from pydantic import field_validator, model_validator

from tesla_exporter._constants import CHARGE_PORT_ENGAGED, DEFAULT_DISPLAY_NAME
from tesla_exporter.models._base import TeslaBaseModel, TeslaStrEnum


class VehicleState(TeslaStrEnum):
    """Connectivity state reported by the owner API.

    The API set is open-ended; unknown strings map to ``OTHER`` while the
    original value stays available as :attr:`Vehicle.state_raw`.
    """

    ONLINE = "online"
    ASLEEP = "asleep"
    CHARGING = "charging"
    DRIVING = "driving"
    UPDATING = "updating"
    OFFLINE = "offline"
    OTHER = "other"


class Vehicle(TeslaBaseModel):
    """A vehicle associated with the account.

    ``id`` addresses REST endpoints, ``vehicle_id`` is the tag used to
    subscribe to the streaming channel.
    """

    id: int
    vehicle_id: int
    vin: str = ""
    display_name: str | None = None
    state: VehicleState = VehicleState.OTHER
    state_raw: str = ""
    """State string exactly as sent by the API."""
    in_service: bool = False

    @model_validator(mode="after")
    def _keep_raw_state(self) -> Vehicle:
        raw_state = self.raw.get("state")
        if not self.state_raw and isinstance(raw_state, str):
            object.__setattr__(self, "state_raw", raw_state)
        return self

    @field_validator("state", mode="before")
    @classmethod
    def _coerce_state(cls, value: Any) -> VehicleState:
        if isinstance(value, VehicleState):
            return value
        return VehicleState(str(value))

    @field_validator("display_name", mode="before")
    @classmethod
    def _blank_display_name(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @property
    def name(self) -> str:
        """Display name used as sample name, ``"Unknown"`` when unset."""
        return self.display_name or DEFAULT_DISPLAY_NAME

    @property
    def channel_tag(self) -> str:
        """Streaming subscription tag."""
        return str(self.vehicle_id)


class ChargeState(TeslaBaseModel):
    """Charging section of the vehicle data response.

    Energy is in kWh and power in kW, as sent by the API.
    """

    charge_energy_added: float = 0.0
    charger_power: float = 0.0
    charge_port_latch: str = ""
    charging_state: str = ""
    battery_level: float | None = None
    charge_amps: float | None = None
    charge_rate: float | None = None
    charger_actual_current: float | None = None
    charger_phases: float | None = None
    charger_voltage: float | None = None
    timestamp: int | None = None

    @property
    def is_port_engaged(self) -> bool:
        """Whether a charge cable is plugged in and latched."""
        return self.charge_port_latch == CHARGE_PORT_ENGAGED


class DriveState(TeslaBaseModel):
    """Drive section of the vehicle data response."""

    latitude: float | None = None
    longitude: float | None = None
    heading: float | None = None
    speed: float | None = None
    power: float | None = None
    shift_state: str | None = None
    gps_as_of: int | None = None
    timestamp: int | None = None


class VehicleData(Vehicle):
    """Full vehicle data: vehicle summary plus state sections."""

    charge_state: ChargeState | None = None
    drive_state: DriveState | None = None
