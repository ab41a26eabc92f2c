from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import aiohttp
import pytest

from tesla_exporter._retry import RetryPolicy, no_jitter
from tesla_exporter.client import TeslaClient
from tesla_exporter.config import ExporterConfig
from tesla_exporter.exceptions import TeslaError, TeslaStreamingError
from tesla_exporter.models import AccessToken, Vehicle

FULL_VALUE = "1600000000000,0,12345.6,80,10,180,52.0,13.0,0,P,200,190,180"


async def _no_sleep(delay: float) -> None:
    return None


class _Frame:
    def __init__(self, data: str) -> None:
        self.type = aiohttp.WSMsgType.TEXT
        self.data = data


class _FakeSocket:
    def __init__(self, frames: list[_Frame]) -> None:
        self._frames = frames
        self.sent: list[str] = []

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    async def receive(self, timeout: float | None = None) -> _Frame:
        return self._frames.pop(0)

    async def __aenter__(self) -> _FakeSocket:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FlakySession:
    """Refuses the first *failures* connections, then serves *socket*."""

    def __init__(self, socket: _FakeSocket, failures: int) -> None:
        self._socket = socket
        self._failures = failures
        self.connects = 0
        self.closed = False

    async def ws_connect(self, url: str) -> _FakeSocket:
        self.connects += 1
        if self.connects <= self._failures:
            raise aiohttp.ClientConnectionError("connection refused")
        return self._socket

    async def close(self) -> None:
        self.closed = True


class _FakeTransport:
    async def get_json(self, url: str, *, token: AccessToken) -> Any:
        return {"response": [{"id": 1, "vehicle_id": 11, "state": "online"}]}

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        return {"access_token": "tok"}


CONFIG = ExporterConfig(refresh_token="refresh", retry=RetryPolicy(jitter=no_jitter, sleep=_no_sleep))
VEHICLE = Vehicle(id=1, vehicle_id=11, display_name="Model 3", state="online")


def _update() -> _Frame:
    return _Frame(json.dumps({"msg_type": "data:update", "tag": "11", "value": FULL_VALUE}))


@pytest.mark.asyncio
async def test_streaming_probe_is_retried() -> None:
    session = _FlakySession(_FakeSocket([_update()]), failures=2)

    async with TeslaClient(CONFIG, session=session, transport=_FakeTransport()) as client:  # type: ignore[arg-type]
        sample = await client.get_streaming_data(AccessToken(access_token="tok"), VEHICLE)

    assert session.connects == 3
    assert sample.odometer == 12345.6
    assert not session.closed


@pytest.mark.asyncio
async def test_streaming_probe_gives_up_after_policy() -> None:
    session = _FlakySession(_FakeSocket([]), failures=10)
    retry = RetryPolicy(max_retries=1, jitter=no_jitter, sleep=_no_sleep)

    async with TeslaClient(CONFIG, session=session, transport=_FakeTransport()) as client:  # type: ignore[arg-type]
        with pytest.raises(TeslaStreamingError):
            await client.get_streaming_data(AccessToken(access_token="tok"), VEHICLE, retry=retry)

    assert session.connects == 2


@pytest.mark.asyncio
async def test_client_uses_injected_transport() -> None:
    session = _FlakySession(_FakeSocket([]), failures=0)

    async with TeslaClient(CONFIG, session=session, transport=_FakeTransport()) as client:  # type: ignore[arg-type]
        token = await client.get_access_token()
        vehicles = await client.get_vehicles(token)

    assert token.access_token == "tok"
    assert [v.channel_tag for v in vehicles] == ["11"]


@pytest.mark.asyncio
async def test_client_requires_context_manager() -> None:
    client = TeslaClient(CONFIG)

    with pytest.raises(TeslaError, match="not initialized"):
        await client.get_access_token()
