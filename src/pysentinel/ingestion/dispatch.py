"""Inbound message dispatch.

Maps every decoded message variant to the store events it implies. The
handler table is keyed by :class:`~pysentinel.models.messages.MessageType`
and must cover every member; a new member without a handler fails at
construction instead of being silently ignored at runtime.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pysentinel._redact import summarize_for_log
from pysentinel.exceptions import SentinelServerError
from pysentinel.models.fall import FallEvent
from pysentinel.models.messages import (
    ErrorMessage,
    FallDetectionSettingsMessage,
    FallDetectionUpdateMessage,
    FallEventMessage,
    FallLogsMessage,
    InboundMessage,
    MessageType,
    PongMessage,
    TargetUpdateMessage,
    UnhandledMessage,
    ZoneDeletedMessage,
    ZoneEventMessage,
    ZoneLogsMessage,
    ZonesMessage,
)
from pysentinel.state.events import (
    FallAlertRaised,
    FallLogsReplaced,
    FallSettingsReceived,
    MessageReceived,
    ServerErrorReceived,
    StoreEvent,
    TargetsReplaced,
    ZoneDeleteConfirmed,
    ZoneEventReceived,
    ZoneLogsReplaced,
    ZonesReplaced,
)

_logger = logging.getLogger(__name__)

_Handler = Callable[[InboundMessage], list[StoreEvent]]


def _zones(message: ZonesMessage) -> list[StoreEvent]:
    if message.zones is None:
        return []
    _logger.debug("Received %s with %d zone(s)", message.type, len(message.zones))
    return [ZonesReplaced(zones=message.zones)]


def _zone_deleted(message: ZoneDeletedMessage) -> list[StoreEvent]:
    if not message.success or not message.zone_id:
        _logger.warning("Zone deletion not confirmed: %s", summarize_for_log(message.raw))
        return []
    return [ZoneDeleteConfirmed(zone_id=message.zone_id)]


def _zone_logs(message: ZoneLogsMessage) -> list[StoreEvent]:
    logs = message.logs
    if logs is None:
        return []
    if isinstance(logs, dict):
        if message.zone_id is not None:
            return [ZoneLogsReplaced(zone_id=message.zone_id, logs={message.zone_id: logs.get(message.zone_id, ())})]
        return [ZoneLogsReplaced(logs=logs)]
    if message.zone_id is None:
        _logger.warning("Zone log list without zone_id ignored")
        return []
    return [ZoneLogsReplaced(zone_id=message.zone_id, logs={message.zone_id: logs})]


def _fall_logs(message: FallLogsMessage) -> list[StoreEvent]:
    if message.logs is None:
        return []
    return [FallLogsReplaced(logs=message.logs)]


def _target_update(message: TargetUpdateMessage) -> list[StoreEvent]:
    if message.targets is None:
        return []
    return [TargetsReplaced(targets=message.targets)]


def _fall_event(message: FallEventMessage) -> list[StoreEvent]:
    _logger.info("Fall event received: %s", summarize_for_log(message.raw))
    return [FallAlertRaised(event=FallEvent(raw=message.raw))]


def _zone_event(message: ZoneEventMessage) -> list[StoreEvent]:
    _logger.debug("Zone event: %s", summarize_for_log(message.raw))
    return [ZoneEventReceived(payload=message.raw)]


def _pong(message: PongMessage) -> list[StoreEvent]:
    _logger.debug("Received pong")
    return []


def _error(message: ErrorMessage) -> list[StoreEvent]:
    _logger.error("Server reported error: %s", message.message)
    return [ServerErrorReceived(message=message.message, payload=message.raw)]


def _fall_settings(message: FallDetectionSettingsMessage) -> list[StoreEvent]:
    if message.settings is None:
        return []
    return [FallSettingsReceived(settings=message.settings)]


def _fall_settings_update(message: FallDetectionUpdateMessage) -> list[StoreEvent]:
    if not message.succeeded:
        text = message.message or "fall detection settings update failed"
        _logger.error("Failed to update fall detection settings: %s", text)
        return [ServerErrorReceived(message=text, payload=message.raw)]
    if message.settings is None:
        return []
    return [FallSettingsReceived(settings=message.settings)]


_HANDLERS: dict[MessageType, _Handler] = {
    MessageType.ZONES_RESPONSE: _zones,  # type: ignore[dict-item]
    MessageType.ZONES_DATA: _zones,  # type: ignore[dict-item]
    MessageType.ZONE_DELETED: _zone_deleted,  # type: ignore[dict-item]
    MessageType.ZONE_LOGS_RESPONSE: _zone_logs,  # type: ignore[dict-item]
    MessageType.FALL_LOGS_RESPONSE: _fall_logs,  # type: ignore[dict-item]
    MessageType.TARGET_UPDATE: _target_update,  # type: ignore[dict-item]
    MessageType.FALL_EVENT: _fall_event,  # type: ignore[dict-item]
    MessageType.ZONE_EVENT: _zone_event,  # type: ignore[dict-item]
    MessageType.PONG: _pong,  # type: ignore[dict-item]
    MessageType.ERROR: _error,  # type: ignore[dict-item]
    MessageType.FALL_DETECTION_SETTINGS: _fall_settings,  # type: ignore[dict-item]
    MessageType.FALL_DETECTION_UPDATE: _fall_settings_update,  # type: ignore[dict-item]
}


def build_events(message: InboundMessage) -> list[StoreEvent]:
    """Store events implied by *message* (excluding the receipt marker)."""
    if isinstance(message, UnhandledMessage):
        _logger.info("Unhandled message type: %s", message.type)
        return []
    return _HANDLERS[MessageType(message.type)](message)


class MessageDispatcher:
    """Routes decoded messages into the store and notifies observers.

    Parameters
    ----------
    store_apply : callable
        Usually :meth:`pysentinel.state.store.StateStore.apply`.
    on_fall_event : callable or None
        Called with the :class:`FallEvent` of every ``fall_event`` frame.
    on_server_error : callable or None
        Called with a :class:`SentinelServerError` for every server-reported
        error.
    """

    def __init__(
        self,
        store_apply: Callable[[StoreEvent], None],
        *,
        on_fall_event: Callable[[FallEvent], None] | None = None,
        on_server_error: Callable[[SentinelServerError], None] | None = None,
    ) -> None:
        missing = set(MessageType) - _HANDLERS.keys()
        if missing:
            raise RuntimeError(f"No dispatch handler for message types: {sorted(missing)}")
        self._store_apply = store_apply
        self._on_fall_event = on_fall_event
        self._on_server_error = on_server_error

    def dispatch(self, message: InboundMessage) -> None:
        self._store_apply(MessageReceived(message_type=message.type))
        for event in build_events(message):
            self._store_apply(event)
            self._notify(event)

    def _notify(self, event: StoreEvent) -> None:
        try:
            if isinstance(event, FallAlertRaised) and self._on_fall_event is not None:
                self._on_fall_event(event.event)
            elif isinstance(event, ServerErrorReceived) and self._on_server_error is not None:
                self._on_server_error(SentinelServerError(event.message, payload=event.payload))
        except Exception:
            _logger.warning("Observer callback failed for %s", type(event).__name__, exc_info=True)
