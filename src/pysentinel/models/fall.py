"""Fall-detection records and settings."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from pysentinel._constants import DEFAULT_HOST, DEFAULT_PORT, sensitivity_to_slider, slider_to_sensitivity
from pysentinel.models._base import SentinelBaseModel, coerce_identifier, parse_timestamp

_EPOCH = datetime.fromtimestamp(0, tz=UTC)


class FallLogEntry(SentinelBaseModel):
    """A fall event as recorded by the server.

    Parameters
    ----------
    timestamp : str, int, float or None
        Event time as the server sent it (ISO string or epoch).
    event_type : str or None
        Server-side classification of the event.
    target_id : str or None
        Id of the target that fell.
    height : float or None
        Target height at detection time.
    position : dict or None
        Target position at detection time.
    raw : dict
        Full entry as received.
    """

    timestamp: str | int | float | None = None
    event_type: str | None = Field(default=None, validation_alias=AliasChoices("event_type", "eventType", "type"))
    target_id: str | None = Field(default=None, validation_alias=AliasChoices("target_id", "targetId"))
    height: float | None = None
    position: dict[str, Any] | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _ensure_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        merged.setdefault("raw", values)
        return merged

    @field_validator("target_id", mode="before")
    @classmethod
    def _coerce_target_id(cls, value: Any) -> Any:
        return coerce_identifier(value)

    @property
    def occurred_at(self) -> datetime | None:
        return parse_timestamp(self.timestamp)

    def sort_key(self) -> datetime:
        return self.occurred_at or _EPOCH


class FallEvent(SentinelBaseModel):
    """Live fall notification pushed by the server."""

    raw: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FallDetectionSettings(SentinelBaseModel):
    """Server-side fall detector settings."""

    enabled: bool = True
    sensitivity: float = Field(default=0.5, ge=0.0, le=1.0)
    frame_time_ms: int = Field(default=55, ge=0)

    @property
    def slider_sensitivity(self) -> int:
        """Sensitivity on the 0-100 scale used by the settings screen."""
        return sensitivity_to_slider(self.sensitivity)

    @classmethod
    def from_slider(cls, *, enabled: bool, slider: float, frame_time_ms: int) -> FallDetectionSettings:
        return cls(enabled=enabled, sensitivity=slider_to_sensitivity(slider), frame_time_ms=frame_time_ms)


class DeviceSettings(SentinelBaseModel):
    """Everything the device settings screen edits.

    ``sensitivity`` is kept on the server's 0-1 scale; the screen converts
    to and from its 0-100 slider.
    """

    fall_detection_enabled: bool = True
    sensitivity: float = Field(default=0.5, ge=0.0, le=1.0)
    frame_time: int = Field(default=55, ge=0)
    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, gt=0, lt=65536)

    @property
    def fall_detection(self) -> FallDetectionSettings:
        return FallDetectionSettings(
            enabled=self.fall_detection_enabled,
            sensitivity=self.sensitivity,
            frame_time_ms=self.frame_time,
        )

    def to_server_config(self) -> dict[str, Any]:
        """Nested payload carried by ``update_config``."""
        return {
            "fall_detection": self.fall_detection.model_dump(),
            "websocket": {"host": self.host, "port": self.port},
        }
