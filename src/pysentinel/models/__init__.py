"""Data models for the radar server protocol and session state."""

from pysentinel.models._base import SentinelBaseModel, parse_timestamp, utc_timestamp
from pysentinel.models.connection import ConnectionEvent, ConnectionState, ConnectionStatus
from pysentinel.models.fall import DeviceSettings, FallDetectionSettings, FallEvent, FallLogEntry
from pysentinel.models.messages import (
    DeleteZone,
    ErrorMessage,
    FallDetectionSettingsMessage,
    FallDetectionUpdateMessage,
    FallEventMessage,
    FallLogsMessage,
    InboundMessage,
    MessageType,
    NewZone,
    OutboundIntent,
    Ping,
    PongMessage,
    RequestFallDetectionSettings,
    RequestFallLogs,
    RequestLogs,
    RequestZones,
    TargetUpdateMessage,
    UnhandledMessage,
    UpdateConfig,
    UpdateFallDetectionSettings,
    ZoneDeletedMessage,
    ZoneEventMessage,
    ZoneLogsMessage,
    ZonesMessage,
)
from pysentinel.models.zone import OccupancyType, Point, Target, TargetSnapshot, Zone, ZoneLogEntry

__all__ = [
    "ConnectionEvent",
    "ConnectionState",
    "ConnectionStatus",
    "DeleteZone",
    "DeviceSettings",
    "ErrorMessage",
    "FallDetectionSettings",
    "FallDetectionSettingsMessage",
    "FallDetectionUpdateMessage",
    "FallEvent",
    "FallEventMessage",
    "FallLogEntry",
    "FallLogsMessage",
    "InboundMessage",
    "MessageType",
    "NewZone",
    "OccupancyType",
    "OutboundIntent",
    "Ping",
    "Point",
    "PongMessage",
    "RequestFallDetectionSettings",
    "RequestFallLogs",
    "RequestLogs",
    "RequestZones",
    "SentinelBaseModel",
    "Target",
    "TargetSnapshot",
    "TargetUpdateMessage",
    "UnhandledMessage",
    "UpdateConfig",
    "UpdateFallDetectionSettings",
    "Zone",
    "ZoneDeletedMessage",
    "ZoneEventMessage",
    "ZoneLogEntry",
    "ZoneLogsMessage",
    "ZonesMessage",
    "parse_timestamp",
    "utc_timestamp",
]
