from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from pysentinel._transport import FrameKind, TransportFrame
from pysentinel.config import SentinelConfig
from pysentinel.exceptions import SentinelTransportError


@dataclass
class FakeConnection:
    """In-memory websocket: records what was sent, replays what the test pushes."""

    url: str = "ws://fake"
    sent: list[dict[str, Any]] = field(default_factory=list)
    closed_with: int | None = None
    fail_sends: bool = False
    inbox: asyncio.Queue[TransportFrame] = field(default_factory=asyncio.Queue)

    @property
    def is_open(self) -> bool:
        return self.closed_with is None

    async def send_text(self, text: str) -> None:
        if self.fail_sends or not self.is_open:
            raise SentinelTransportError("write failed", url=self.url)
        self.sent.append(json.loads(text))

    async def receive(self) -> TransportFrame:
        return await self.inbox.get()

    async def close(self, *, code: int = 1000, reason: str = "") -> None:
        if self.closed_with is None:
            self.closed_with = code
            self.inbox.put_nowait(TransportFrame(kind=FrameKind.CLOSED, close_code=code, reason=reason))

    # Server side

    def push(self, payload: dict[str, Any]) -> None:
        self.inbox.put_nowait(TransportFrame(kind=FrameKind.TEXT, data=json.dumps(payload)))

    def push_raw(self, text: str) -> None:
        self.inbox.put_nowait(TransportFrame(kind=FrameKind.TEXT, data=text))

    def drop(self, code: int = 1006) -> None:
        self.closed_with = code
        self.inbox.put_nowait(TransportFrame(kind=FrameKind.CLOSED, close_code=code))

    def sent_types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]


@dataclass
class FakeTransport:
    refuse: bool = False
    urls: list[str] = field(default_factory=list)
    connections: list[FakeConnection] = field(default_factory=list)

    @property
    def attempts(self) -> int:
        return len(self.urls)

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]

    async def open(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.refuse:
            raise SentinelTransportError(f"Cannot connect to {url}", close_code=1006, url=url)
        conn = FakeConnection(url=url)
        self.connections.append(conn)
        return conn


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def fast_config(**overrides: Any) -> SentinelConfig:
    """Config with millisecond timings; supervision timers effectively off."""
    values: dict[str, Any] = {
        "host": "radar.test",
        "port": 9001,
        "min_connect_interval": 0.0,
        "reconnect_base_delay": 0.01,
        "reconnect_max_delay": 0.05,
        "force_reconnect_delay": 0.01,
        "resync_delay": 60.0,
        "resync_stagger": 0.0,
        "heartbeat_interval": 60.0,
        "data_check_interval": 60.0,
        "staleness_check_interval": 60.0,
        "response_timeout": 60.0,
        "failure_reset_interval": 60.0,
        "zone_confirmation_timeout": 60.0,
    }
    values.update(overrides)
    return SentinelConfig(**values)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
