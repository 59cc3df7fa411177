"""Websocket transport over aiohttp."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

import aiohttp

from pysentinel._constants import CLOSE_ABNORMAL, CLOSE_NORMAL
from pysentinel.exceptions import SentinelTransportError

_logger = logging.getLogger(__name__)


class FrameKind(StrEnum):
    TEXT = "text"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class TransportFrame:
    """One notification from an open connection."""

    kind: FrameKind
    data: str | bytes = ""
    close_code: int | None = None
    reason: str = ""


class Connection(Protocol):
    """A single open websocket.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`AiohttpConnection`) concrete.
    """

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, text: str) -> None: ...

    async def receive(self) -> TransportFrame: ...

    async def close(self, *, code: int = CLOSE_NORMAL, reason: str = "") -> None: ...


class Transport(Protocol):
    async def open(self, url: str) -> Connection: ...


class AiohttpConnection:
    """Adapter from :class:`aiohttp.ClientWebSocketResponse` to :class:`Connection`."""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse, url: str) -> None:
        self._ws = ws
        self._url = url

    @property
    def is_open(self) -> bool:
        return not self._ws.closed

    async def send_text(self, text: str) -> None:
        try:
            await self._ws.send_str(text)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise SentinelTransportError(f"Write to {self._url} failed: {exc}", url=self._url) from exc

    async def receive(self) -> TransportFrame:
        msg = await self._ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            return TransportFrame(kind=FrameKind.TEXT, data=msg.data)
        if msg.type == aiohttp.WSMsgType.BINARY:
            return TransportFrame(kind=FrameKind.TEXT, data=msg.data)
        if msg.type == aiohttp.WSMsgType.ERROR:
            return TransportFrame(kind=FrameKind.ERROR, reason=str(self._ws.exception() or msg.data))
        if msg.type == aiohttp.WSMsgType.CLOSE:
            code = msg.data if isinstance(msg.data, int) else self._ws.close_code
            return TransportFrame(kind=FrameKind.CLOSED, close_code=code, reason=str(msg.extra or ""))
        # CLOSING / CLOSED: the socket is gone without a close frame we could read.
        code = self._ws.close_code if self._ws.close_code is not None else CLOSE_ABNORMAL
        return TransportFrame(kind=FrameKind.CLOSED, close_code=code)

    async def close(self, *, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        try:
            await self._ws.close(code=code, message=reason.encode("utf-8"))
        except (aiohttp.ClientError, ConnectionError) as exc:
            _logger.debug("Closing %s failed: %s", self._url, exc)


class AiohttpTransport:
    """Opens websockets through a shared :class:`aiohttp.ClientSession`."""

    def __init__(self, http_session: aiohttp.ClientSession, *, open_timeout: float = 10.0) -> None:
        self._http = http_session
        self._open_timeout = open_timeout

    async def open(self, url: str) -> Connection:
        _logger.debug("Opening websocket %s", url)
        try:
            ws = await asyncio.wait_for(self._http.ws_connect(url, autoping=True), self._open_timeout)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise SentinelTransportError(
                f"Cannot connect to {url}: {exc}",
                close_code=CLOSE_ABNORMAL,
                url=url,
            ) from exc
        return AiohttpConnection(ws, url)
