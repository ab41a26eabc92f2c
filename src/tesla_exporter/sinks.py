"""Measurement stores and sinks used around the reconciliation engine."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, cast

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from tesla_exporter.exceptions import TeslaConfigError, TeslaError
from tesla_exporter.models.measurement import Measurement

_logger = logging.getLogger(__name__)


class InMemoryMeasurementStore:
    """Keeps the measurements of the latest cycle; also usable as a sink."""

    def __init__(self, measurements: Sequence[Measurement] | None = None) -> None:
        self._measurements: list[Measurement] = list(measurements or [])
        self.published: list[Measurement] = []

    async def get_last_measurements(self) -> list[Measurement] | None:
        return list(self._measurements) if self._measurements else None

    async def store_measurements(self, measurements: Sequence[Measurement]) -> None:
        self._measurements = list(measurements)

    async def publish(self, measurement: Measurement) -> None:
        self.published.append(measurement)


class JsonFileMeasurementStore:
    """Persists the latest cycle's measurements as a camelCase JSON list."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def get_last_measurements(self) -> list[Measurement] | None:
        if not self._path.exists():
            return None
        text = await asyncio.to_thread(self._path.read_text, "utf-8")
        try:
            items = json.loads(text)
            if not isinstance(items, list):
                raise TeslaError(f"{self._path} does not hold a JSON list")
            return [Measurement.model_validate(item) for item in items]
        except (json.JSONDecodeError, ValidationError) as exc:
            raise TeslaError(f"{self._path} holds invalid measurements: {exc}") from exc

    async def store_measurements(self, measurements: Sequence[Measurement]) -> None:
        payload = json.dumps([m.model_dump(mode="json", by_alias=True) for m in measurements], indent=2)
        await asyncio.to_thread(self._path.write_text, payload, "utf-8")


@dataclasses.dataclass(frozen=True)
class MqttSinkConfig:
    """Broker connection for :class:`MqttMeasurementSink`."""

    host: str
    topic: str
    port: int = 1883
    username: str | None = None
    password: str | None = None
    client_id: str = "tesla-exporter"
    qos: int = 1
    keepalive: int = 60
    tls: bool = False
    publish_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not self.host:
            raise TeslaConfigError("MQTT host is required")
        if not self.topic:
            raise TeslaConfigError("MQTT topic is required")
        if self.qos not in (0, 1, 2):
            raise TeslaConfigError(f"MQTT qos must be 0, 1 or 2, got {self.qos}")


class MqttMeasurementSink:
    """Publishes each measurement as JSON on an MQTT topic.

    Runs paho's threaded network loop between :meth:`start` and
    :meth:`stop`; :meth:`publish` waits for the broker acknowledgement in
    a worker thread so the event loop is not blocked.
    """

    def __init__(self, config: MqttSinkConfig, *, logger: logging.Logger | None = None) -> None:
        self._config = config
        self._logger = logger or _logger
        self._client: mqtt.Client | None = None

    @property
    def is_running(self) -> bool:
        return self._client is not None

    def start(self) -> None:
        """Connect to the broker and start the network loop."""
        self.stop()
        cfg = self._config
        self._logger.debug("MQTT sink connecting host=%s port=%s topic=%s", cfg.host, cfg.port, cfg.topic)
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=cfg.client_id,
        )
        client.enable_logger(self._logger)
        if cfg.username is not None:
            client.username_pw_set(cfg.username, cfg.password)
        if cfg.tls:
            client.tls_set()

        def on_connect(_c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
            else:
                self._logger.debug("MQTT connected reason=%s", reason_code)

        client.on_connect = on_connect
        client.connect(cfg.host, cfg.port, keepalive=cfg.keepalive)
        client.loop_start()
        self._client = client

    def stop(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()

    async def publish(self, measurement: Measurement) -> None:
        client = self._client
        if client is None:
            raise TeslaError("MQTT sink not started")
        info = client.publish(self._config.topic, measurement.to_json(), qos=self._config.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TeslaError(f"MQTT publish failed: {mqtt.error_string(info.rc)}")
        await asyncio.to_thread(info.wait_for_publish, self._config.publish_timeout)
        if not info.is_published():
            raise TeslaError(f"MQTT publish of measurement {measurement.id} was not acknowledged")
        self._logger.debug("Published measurement %s to %s", measurement.id, self._config.topic)
