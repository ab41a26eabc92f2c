"""Streaming API probe.

A probe opens a short-lived WebSocket session, subscribes to one
vehicle's telemetry channel and returns the first valid update.  Unlike
the REST ``vehicle_data`` endpoint it does not keep the car awake, which
makes it the cheap first look at an awake vehicle.

The read loop is an explicit bounded loop: the deadline is checked
against an injected monotonic clock on every iteration and each blocking
receive is limited to the remaining time.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import Callable
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from tesla_exporter._redact import redact_for_log
from tesla_exporter.exceptions import TeslaParseError, TeslaStreamingError, TeslaStreamingTimeoutError
from tesla_exporter.models.streaming import StreamingMessage, StreamingSample, StreamingSchema
from tesla_exporter.models.token import AccessToken
from tesla_exporter.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)

MSG_UPDATE = "data:update"
MSG_ERROR = "data:error"

_CLOSE_TYPES = frozenset(
    {
        aiohttp.WSMsgType.CLOSE,
        aiohttp.WSMsgType.CLOSING,
        aiohttp.WSMsgType.CLOSED,
    }
)
_DATA_TYPES = frozenset({aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY})


class StreamSocket(Protocol):
    """The part of ``aiohttp.ClientWebSocketResponse`` the probe uses."""

    async def send_str(self, data: str) -> None:
        ...

    async def receive(self, timeout: float | None = None) -> aiohttp.WSMessage:
        ...


def _parse_value(raw: str) -> float:
    """Parse one positional value; blanks and garbage read as ``0.0``."""
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


def _error_text(value: Any) -> str:
    """Render an error field, which may be a string or any JSON value."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def parse_envelope(data: str | bytes) -> StreamingMessage:
    """Decode a frame payload into a :class:`StreamingMessage`.

    Raises
    ------
    TeslaParseError
        If the payload is not a JSON object with a ``msg_type``.
    """
    try:
        decoded: Any = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise TeslaParseError(f"Streaming frame is not JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise TeslaParseError("Streaming frame is not a JSON object")
    if "tag" in decoded and decoded["tag"] is not None:
        decoded["tag"] = str(decoded["tag"])
    try:
        return StreamingMessage.model_validate(decoded)
    except ValidationError as exc:
        raise TeslaParseError(f"Streaming frame has no msg_type: {exc}") from exc


def decode_update(value: Any, schema: StreamingSchema) -> StreamingSample:
    """Decode the positional ``value`` string of a ``data:update`` message.

    Raises
    ------
    TeslaParseError
        If ``value`` is not a string or its field count does not match
        *schema*.
    """
    if not isinstance(value, str):
        raise TeslaParseError(f"Update value is {type(value).__name__}, expected a string")

    values = value.split(",")
    if len(values) != schema.value_count:
        raise TeslaParseError(f"Expected {schema.value_count} values for schema {schema.name}, got {len(values)}")

    def field(name: str) -> float | None:
        index = schema.index_of(name)
        if index is None:
            return None
        return _parse_value(values[index])

    return StreamingSample(
        latitude=field("est_lat") or 0.0,
        longitude=field("est_lng") or 0.0,
        power=abs(field("power") or 0.0),
        speed=field("speed"),
        odometer=field("odometer"),
    )


async def read_streaming_sample(
    socket: StreamSocket,
    tag: str,
    schema: StreamingSchema,
    *,
    timeout: float,
    clock: Callable[[], float] = time.monotonic,
    started: float | None = None,
) -> StreamingSample:
    """Read frames until one yields a sample for *tag*.

    The deadline is *timeout* seconds after *started*, a reading of
    *clock* taken by the caller, or after the call when omitted.

    Raises
    ------
    TeslaStreamingError
        On a ``data:error`` message or when the socket closes.
    TeslaStreamingTimeoutError
        When no valid update arrived within *timeout* seconds.
    """
    start = clock() if started is None else started
    while True:
        remaining = timeout - (clock() - start)
        if remaining <= 0:
            raise TeslaStreamingTimeoutError(f"Timed out after {timeout:g} seconds")

        try:
            msg = await socket.receive(timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise TeslaStreamingTimeoutError(f"Timed out after {timeout:g} seconds") from exc

        if msg.type in _CLOSE_TYPES:
            raise TeslaStreamingError("connection closed")
        if msg.type == aiohttp.WSMsgType.ERROR:
            raise TeslaStreamingError(f"connection closed: {msg.data!r}")
        if msg.type not in _DATA_TYPES:
            _logger.debug("Skipping %s frame", msg.type.name)
            continue

        try:
            envelope = parse_envelope(msg.data)
        except TeslaParseError as exc:
            _logger.debug("Skipping frame: %s", exc)
            continue

        if envelope.msg_type == MSG_UPDATE:
            if envelope.tag != tag:
                _logger.warning("Receiving data for another vehicle (tag %s)", envelope.tag)
                continue
            try:
                return decode_update(envelope.value, schema)
            except TeslaParseError as exc:
                _logger.warning("Receiving incorrect number of values: %s", exc)
                continue

        if envelope.msg_type == MSG_ERROR:
            if envelope.tag and envelope.tag != tag:
                _logger.debug("Ignoring error for another vehicle (tag %s)", envelope.tag)
                continue
            error_type = _error_text(envelope.error_type) or _error_text(envelope.value) or "unknown"
            raise TeslaStreamingError(f"Received error message: {error_type}", error_type=error_type)

        _logger.debug("Unhandled message type %s", envelope.msg_type)


async def probe_vehicle(
    http_session: aiohttp.ClientSession,
    url: str,
    token: AccessToken,
    vehicle: Vehicle,
    schema: StreamingSchema,
    *,
    timeout: float,
    clock: Callable[[], float] = time.monotonic,
) -> StreamingSample:
    """Open a streaming session for *vehicle* and return its first sample.

    Connecting, subscribing and reading share one *timeout* deadline.
    The socket is closed before returning, on success and on failure.
    """
    _logger.info("Connecting to streaming api for vehicle %s", vehicle.name)
    started = clock()
    try:
        async with asyncio.timeout(timeout):
            ws = await http_session.ws_connect(url)
    except TimeoutError as exc:
        raise TeslaStreamingTimeoutError(f"Connecting timed out after {timeout:g} seconds") from exc
    except aiohttp.ClientError as exc:
        raise TeslaStreamingError(f"Connecting to {url} failed: {exc!r}") from exc

    async with ws:
        subscribe = StreamingMessage.subscribe(vehicle.channel_tag, token.access_token, schema)
        _logger.debug("Subscribing: %s", redact_for_log(subscribe.model_dump(exclude_none=True)))
        try:
            await ws.send_str(subscribe.to_json())
        except (aiohttp.ClientError, ConnectionError) as exc:
            raise TeslaStreamingError(f"Subscribing failed: {exc!r}") from exc
        return await read_streaming_sample(
            ws,
            vehicle.channel_tag,
            schema,
            timeout=timeout,
            clock=clock,
            started=started,
        )
