"""Connection lifecycle records."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import Field

from pysentinel.models._base import SentinelBaseModel


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    EXHAUSTED = "exhausted"


class ConnectionStatus(SentinelBaseModel):
    """Connection state as shown to the UI.

    ``retry_delay`` is only set while ``reconnecting`` and holds the backoff
    delay (seconds) of the armed retry.
    """

    state: ConnectionState = ConnectionState.DISCONNECTED
    retry_delay: float | None = None
    failures: int = 0

    @property
    def label(self) -> str:
        if self.state == ConnectionState.RECONNECTING and self.retry_delay is not None:
            return f"Reconnecting in {round(self.retry_delay)}s..."
        if self.state == ConnectionState.EXHAUSTED:
            return "Max attempts reached"
        return self.state.value.capitalize()


class ConnectionEvent(SentinelBaseModel):
    """Diagnostic record of a connect/disconnect."""

    event: str
    at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    close_code: int | None = None
