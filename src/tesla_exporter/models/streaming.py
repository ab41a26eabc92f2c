"""Streaming API envelope, schema and sample models."""

from __future__ import annotations

import dataclasses
import json
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclasses.dataclass(frozen=True)
class StreamingSchema:
    """Ordered list of fields requested on subscription.

    Update values are a comma-separated string holding a timestamp
    followed by the requested fields in request order, so a schema with
    ``n`` fields yields ``n + 1`` values.

    Parameters
    ----------
    name : str
        Schema identifier used in configuration.
    fields : tuple[str, ...]
        Field identifiers sent in the subscribe message.
    timeout : float
        Default probe deadline in seconds.
    """

    name: str
    fields: tuple[str, ...]
    timeout: float

    @property
    def value_count(self) -> int:
        return len(self.fields) + 1

    @property
    def subscription_value(self) -> str:
        return ",".join(self.fields)

    def index_of(self, field: str) -> int | None:
        """Position of *field* in an update value, ``None`` if not streamed."""
        try:
            return self.fields.index(field) + 1
        except ValueError:
            return None


FULL_SCHEMA = StreamingSchema(
    name="full",
    fields=(
        "speed",
        "odometer",
        "soc",
        "elevation",
        "est_heading",
        "est_lat",
        "est_lng",
        "power",
        "shift_state",
        "range",
        "est_range",
        "heading",
    ),
    timeout=30.0,
)

MINIMAL_SCHEMA = StreamingSchema(
    name="minimal",
    fields=("est_lat", "est_lng", "power"),
    timeout=300.0,
)

STREAMING_SCHEMAS: dict[str, StreamingSchema] = {
    FULL_SCHEMA.name: FULL_SCHEMA,
    MINIMAL_SCHEMA.name: MINIMAL_SCHEMA,
}


class StreamingMessage(BaseModel):
    """JSON envelope exchanged on the streaming socket."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    msg_type: str
    tag: str = ""
    token: str | None = None
    value: Any = None
    error_type: Any = None

    @classmethod
    def subscribe(cls, tag: str, token: str, schema: StreamingSchema) -> StreamingMessage:
        return cls(
            msg_type="data:subscribe_oauth",
            tag=tag,
            token=token,
            value=schema.subscription_value,
        )

    def to_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True), separators=(",", ":"))


class StreamingSample(BaseModel):
    """Telemetry decoded from one streaming update.

    ``power`` is in kW and always non-negative; ``odometer`` is in miles.
    ``speed`` and ``odometer`` are ``None`` when the schema does not
    stream them.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float = 0.0
    longitude: float = 0.0
    power: float = 0.0
    speed: float | None = None
    odometer: float | None = None
