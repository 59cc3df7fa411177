"""Custom exception hierarchy for pysentinel."""

from __future__ import annotations

from typing import Any


class SentinelError(Exception):
    """Base exception for all pysentinel errors."""


class SentinelConfigError(SentinelError):
    """Invalid or missing configuration."""


class SentinelTransportError(SentinelError):
    """Websocket-level failure (cannot open, write failed, peer vanished)."""

    def __init__(
        self,
        message: str,
        *,
        close_code: int | None = None,
        url: str = "",
    ) -> None:
        self.close_code = close_code
        self.url = url
        super().__init__(message)


class SentinelDecodeError(SentinelError):
    """Inbound frame is not valid JSON or does not match its message type."""

    def __init__(self, message: str, *, frame: str = "") -> None:
        self.frame = frame
        super().__init__(message)


class SentinelZoneError(SentinelError, ValueError):
    """Zone definition rejected at creation time.

    Raised for empty names, case-insensitive name collisions and polygons
    with fewer than three points.
    """


class SentinelServerError(SentinelError):
    """Application-level error reported by the server in an ``error`` frame.

    Never raised by the library itself; instances are recorded in the state
    store and handed to observers so callers can raise them if they want to.
    """

    def __init__(self, message: str, *, payload: dict[str, Any] | None = None) -> None:
        self.payload = payload or {}
        super().__init__(message)
