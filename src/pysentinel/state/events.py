"""Store events.

Every state change in a session is expressed as one of these events. The
connection manager, the message dispatcher, the occupancy engine and the
user-intent layer only ever *build* events; the store is the only component
allowed to apply them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pysentinel.models.connection import ConnectionStatus
from pysentinel.models.fall import FallDetectionSettings, FallEvent, FallLogEntry
from pysentinel.models.zone import Target, Zone, ZoneLogEntry


class StoreEvent(BaseModel):
    """Base for a normalized update to apply to the state store."""

    model_config = ConfigDict(frozen=True)

    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class ZonesReplaced(StoreEvent):
    """Authoritative zone list pushed by the server."""

    zones: tuple[Zone, ...]


class ZoneAdded(StoreEvent):
    """Zone created locally (or echoed); a no-op when the id already exists."""

    zone: Zone


class ZoneCreationSent(StoreEvent):
    """A ``new_zone`` request left the client; awaits the server echo."""

    zone_id: str


class ZoneDeleteRequested(StoreEvent):
    zone_id: str


class ZoneDeleteAborted(StoreEvent):
    """The delete request could not be sent; the zone becomes editable again."""

    zone_id: str


class ZoneDeleteConfirmed(StoreEvent):
    zone_id: str


class ZoneSelected(StoreEvent):
    zone_id: str | None = None


class ZoneLogsReplaced(StoreEvent):
    """Server-side zone history.

    With ``zone_id`` set only that zone's history is replaced, otherwise the
    whole map is.
    """

    zone_id: str | None = None
    logs: dict[str, tuple[ZoneLogEntry, ...]] = Field(default_factory=dict)


class FallLogsReplaced(StoreEvent):
    logs: tuple[FallLogEntry, ...]


class TargetsReplaced(StoreEvent):
    targets: tuple[Target, ...]


class OccupancyUpdated(StoreEvent):
    """Active-set replacement and log append, applied as one transition."""

    active_zone_ids: frozenset[str]
    entries: dict[str, tuple[ZoneLogEntry, ...]] = Field(default_factory=dict)


class FallAlertRaised(StoreEvent):
    event: FallEvent


class FallAlertDismissed(StoreEvent):
    pass


class FallsAcknowledged(StoreEvent):
    pass


class FallSettingsReceived(StoreEvent):
    settings: FallDetectionSettings


class ZoneEventReceived(StoreEvent):
    payload: dict[str, Any] = Field(default_factory=dict)


class ServerErrorReceived(StoreEvent):
    message: str
    payload: dict[str, Any] = Field(default_factory=dict)


class MessageReceived(StoreEvent):
    message_type: str


class ConnectionChanged(StoreEvent):
    """Connection status change; only the connection manager emits these."""

    status: ConnectionStatus
    event: str | None = None
    close_code: int | None = None
