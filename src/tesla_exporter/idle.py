"""Idle measurement client.

Reports always-on loads (standby electronics, chargers in idle, …) whose
power draw is known from configuration rather than measured.  The energy
counter keeps growing by ``power × interval`` every cycle.
"""

from __future__ import annotations

import logging

from tesla_exporter._constants import SOURCE
from tesla_exporter.config import IdleConfig
from tesla_exporter.models.measurement import EntityType, Measurement, MetricType, Sample, SampleType

_logger = logging.getLogger(__name__)


class IdleClient:
    """Builds measurements from a static :class:`IdleConfig`."""

    def __init__(self, *, source: str = SOURCE) -> None:
        self._source = source

    def get_measurement(self, config: IdleConfig, last_measurement: Measurement | None = None) -> Measurement:
        _logger.info("Writing measurement from idle config...")

        samples: list[Sample] = []
        for sample_config in config.sample_configs:
            # previous counter value keeps the counter continuously increasing
            last_counter = 0.0
            if last_measurement is not None:
                previous = next(
                    (
                        s
                        for s in last_measurement.samples
                        if s.sample_name == sample_config.sample_name and s.metric_type == MetricType.COUNTER
                    ),
                    None,
                )
                if previous is not None:
                    last_counter = previous.value

            power = sample_config.total_watt
            samples.append(
                Sample(
                    entity_type=EntityType.DEVICE,
                    entity_name=self._source,
                    sample_type=SampleType.ELECTRICITY_CONSUMPTION,
                    sample_name=sample_config.sample_name,
                    metric_type=MetricType.GAUGE,
                    value=power,
                )
            )
            samples.append(
                Sample(
                    entity_type=EntityType.DEVICE,
                    entity_name=self._source,
                    sample_type=SampleType.ELECTRICITY_CONSUMPTION,
                    sample_name=sample_config.sample_name,
                    metric_type=MetricType.COUNTER,
                    value=last_counter + power * config.interval_seconds,
                )
            )

        return Measurement(source=self._source, location=config.location, samples=tuple(samples))
