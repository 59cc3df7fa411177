"""Typed protocol messages.

Inbound frames are ``{"type": ..., ...}`` objects. Each known ``type`` maps
to one variant below; anything else becomes :class:`UnhandledMessage` so the
dispatcher never has to deal with a raw dict. Outbound intents are the only
things the client ever writes to the socket.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator, model_validator

from pysentinel.models._base import Identifier, SentinelBaseModel
from pysentinel.models.fall import FallDetectionSettings, FallLogEntry
from pysentinel.models.zone import Target, Zone, ZoneLogEntry


class MessageType(StrEnum):
    ZONES_RESPONSE = "zones_response"
    ZONES_DATA = "zones_data"
    ZONE_DELETED = "zone_deleted"
    ZONE_LOGS_RESPONSE = "zone_logs_response"
    FALL_LOGS_RESPONSE = "fall_logs_response"
    TARGET_UPDATE = "target_update"
    FALL_EVENT = "fall_event"
    ZONE_EVENT = "zone_event"
    PONG = "pong"
    ERROR = "error"
    FALL_DETECTION_SETTINGS = "fall_detection_settings"
    FALL_DETECTION_UPDATE = "fall_detection_update"


# ------------------------------------------------------------------
# Inbound
# ------------------------------------------------------------------


class InboundMessage(SentinelBaseModel):
    """Common shape of every decoded frame."""

    type: str
    raw: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _ensure_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        merged.setdefault("raw", values)
        return merged


class ZonesMessage(InboundMessage):
    """``zones_response`` / ``zones_data``: the authoritative zone list.

    The server sends zones as an id-keyed map; a plain list is accepted too.
    ``zones`` is ``None`` when the frame carries no zone payload at all.
    """

    zones: tuple[Zone, ...] | None = None

    @field_validator("zones", mode="before")
    @classmethod
    def _values_of_map(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return list(value.values())
        return value


class ZoneDeletedMessage(InboundMessage):
    success: bool = False
    zone_id: Identifier | None = Field(default=None, validation_alias=AliasChoices("zoneId", "zone_id"))


class ZoneLogsMessage(InboundMessage):
    """Server-side occupancy history.

    ``logs`` is either an id-keyed map of entries, or (when ``zone_id`` is
    present) the entry list of that single zone.
    """

    zone_id: Identifier | None = Field(default=None, validation_alias=AliasChoices("zone_id", "zoneId"))
    logs: dict[str, tuple[ZoneLogEntry, ...]] | tuple[ZoneLogEntry, ...] | None = None


class FallLogsMessage(InboundMessage):
    logs: tuple[FallLogEntry, ...] | None = None


class TargetUpdateMessage(InboundMessage):
    targets: tuple[Target, ...] | None = None


class FallEventMessage(InboundMessage):
    pass


class ZoneEventMessage(InboundMessage):
    pass


class PongMessage(InboundMessage):
    pass


class ErrorMessage(InboundMessage):
    error: Any = None

    @property
    def message(self) -> str:
        if isinstance(self.error, str) and self.error:
            return self.error
        if isinstance(self.error, dict):
            text = self.error.get("message") or self.error.get("error")
            if isinstance(text, str) and text:
                return text
        if self.error is not None:
            return str(self.error)
        return "server reported an error"


class FallDetectionSettingsMessage(InboundMessage):
    settings: FallDetectionSettings | None = None


class FallDetectionUpdateMessage(InboundMessage):
    status: str | None = None
    message: str | None = None
    settings: FallDetectionSettings | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class UnhandledMessage(InboundMessage):
    """Any frame whose ``type`` has no variant (including a missing ``type``)."""


INBOUND_MODELS: dict[MessageType, type[InboundMessage]] = {
    MessageType.ZONES_RESPONSE: ZonesMessage,
    MessageType.ZONES_DATA: ZonesMessage,
    MessageType.ZONE_DELETED: ZoneDeletedMessage,
    MessageType.ZONE_LOGS_RESPONSE: ZoneLogsMessage,
    MessageType.FALL_LOGS_RESPONSE: FallLogsMessage,
    MessageType.TARGET_UPDATE: TargetUpdateMessage,
    MessageType.FALL_EVENT: FallEventMessage,
    MessageType.ZONE_EVENT: ZoneEventMessage,
    MessageType.PONG: PongMessage,
    MessageType.ERROR: ErrorMessage,
    MessageType.FALL_DETECTION_SETTINGS: FallDetectionSettingsMessage,
    MessageType.FALL_DETECTION_UPDATE: FallDetectionUpdateMessage,
}


# ------------------------------------------------------------------
# Outbound
# ------------------------------------------------------------------


class RequestZones(SentinelBaseModel):
    type: Literal["request_zones"] = "request_zones"


class RequestLogs(SentinelBaseModel):
    type: Literal["request_logs"] = "request_logs"
    zone_id: str | None = None


class NewZone(SentinelBaseModel):
    type: Literal["new_zone"] = "new_zone"
    zone: Zone


class DeleteZone(SentinelBaseModel):
    type: Literal["delete_zone"] = "delete_zone"
    zone_id: str = Field(alias="zoneId")


class RequestFallLogs(SentinelBaseModel):
    """Fall-log query; times are epoch milliseconds."""

    type: Literal["fall_logs"] = "fall_logs"
    start_time: int
    end_time: int


class Ping(SentinelBaseModel):
    type: Literal["ping"] = "ping"


class UpdateConfig(SentinelBaseModel):
    type: Literal["update_config"] = "update_config"
    config: dict[str, Any]


class RequestFallDetectionSettings(SentinelBaseModel):
    type: Literal["request_fall_detection_settings"] = "request_fall_detection_settings"


class UpdateFallDetectionSettings(SentinelBaseModel):
    type: Literal["update_fall_detection_settings"] = "update_fall_detection_settings"
    settings: FallDetectionSettings


OutboundIntent = (
    RequestZones
    | RequestLogs
    | NewZone
    | DeleteZone
    | RequestFallLogs
    | Ping
    | UpdateConfig
    | RequestFallDetectionSettings
    | UpdateFallDetectionSettings
)
