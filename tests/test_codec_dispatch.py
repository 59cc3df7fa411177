from __future__ import annotations

import json

import pytest

from pysentinel._codec import decode_message, encode_intent, message_type_of, parse_frame
from pysentinel.exceptions import SentinelDecodeError, SentinelServerError
from pysentinel.ingestion.dispatch import _HANDLERS, MessageDispatcher, build_events
from pysentinel.models.fall import FallDetectionSettings, FallEvent
from pysentinel.models.messages import (
    DeleteZone,
    MessageType,
    NewZone,
    RequestFallLogs,
    RequestLogs,
    UnhandledMessage,
    ZonesMessage,
)
from pysentinel.models.zone import Point, Zone
from pysentinel.state.events import (
    FallAlertRaised,
    FallSettingsReceived,
    MessageReceived,
    ServerErrorReceived,
    StoreEvent,
    TargetsReplaced,
    ZoneDeleteConfirmed,
    ZoneLogsReplaced,
    ZonesReplaced,
)

_ENTRY = {"timestamp": "2026-01-01T00:00:00.000Z", "type": "occupied", "targetCount": 1}


def test_parse_frame_rejects_non_json_and_non_objects() -> None:
    with pytest.raises(SentinelDecodeError):
        parse_frame("{not json")
    with pytest.raises(SentinelDecodeError):
        parse_frame("[1, 2]")
    assert parse_frame(b'{"type": "pong"}') == {"type": "pong"}


def test_missing_or_unknown_type_is_unhandled() -> None:
    assert message_type_of({}) == "unknown"
    assert isinstance(decode_message({}), UnhandledMessage)

    message = decode_message({"type": "firmware_banner", "text": "hi"})
    assert isinstance(message, UnhandledMessage)
    assert message.raw["text"] == "hi"
    assert build_events(message) == []


def test_malformed_known_type_raises_decode_error() -> None:
    with pytest.raises(SentinelDecodeError):
        decode_message({"type": "target_update", "targets": [{"id": 1, "x": "left"}]})


def test_zone_map_is_flattened() -> None:
    message = decode_message(
        {
            "type": "zones_response",
            "zones": {
                "z1": {"id": "z1", "name": "Bed", "points": [{"x": 0, "y": 0}, {"x": 1, "y": 0}, {"x": 1, "y": 1}]},
                "z2": {"id": 2, "name": "Door", "points": []},
            },
        }
    )
    assert isinstance(message, ZonesMessage)
    (event,) = build_events(message)
    assert isinstance(event, ZonesReplaced)
    assert [zone.id for zone in event.zones] == ["z1", "2"]


def test_zones_frame_without_payload_changes_nothing() -> None:
    assert build_events(decode_message({"type": "zones_data"})) == []


def test_zone_deleted_requires_success() -> None:
    assert build_events(decode_message({"type": "zone_deleted", "success": False, "zoneId": "a"})) == []
    (event,) = build_events(decode_message({"type": "zone_deleted", "success": True, "zoneId": "a"}))
    assert event == ZoneDeleteConfirmed(zone_id="a", observed_at=event.observed_at)


def test_zone_logs_map_and_single_zone_variants() -> None:
    (everything,) = build_events(decode_message({"type": "zone_logs_response", "logs": {"a": [_ENTRY], "b": []}}))
    assert isinstance(everything, ZoneLogsReplaced)
    assert everything.zone_id is None
    assert set(everything.logs) == {"a", "b"}

    (single,) = build_events(decode_message({"type": "zone_logs_response", "zone_id": "a", "logs": [_ENTRY]}))
    assert isinstance(single, ZoneLogsReplaced)
    assert single.zone_id == "a"
    assert single.logs["a"][0].target_count == 1

    # A list without a zone id cannot be attributed.
    assert build_events(decode_message({"type": "zone_logs_response", "logs": [_ENTRY]})) == []


def test_fall_detection_update_failure_becomes_server_error() -> None:
    (event,) = build_events(
        decode_message({"type": "fall_detection_update", "status": "error", "message": "radar busy"})
    )
    assert isinstance(event, ServerErrorReceived)
    assert event.message == "radar busy"

    (ok,) = build_events(
        decode_message(
            {
                "type": "fall_detection_update",
                "status": "success",
                "settings": {"enabled": False, "sensitivity": 0.3, "frame_time_ms": 40},
            }
        )
    )
    assert isinstance(ok, FallSettingsReceived)
    assert ok.settings == FallDetectionSettings(enabled=False, sensitivity=0.3, frame_time_ms=40)


def test_every_message_type_has_a_handler() -> None:
    assert set(_HANDLERS) == set(MessageType)


def test_dispatcher_records_receipt_and_notifies_observers() -> None:
    applied: list[StoreEvent] = []
    falls: list[FallEvent] = []
    errors: list[SentinelServerError] = []
    dispatcher = MessageDispatcher(applied.append, on_fall_event=falls.append, on_server_error=errors.append)

    dispatcher.dispatch(decode_message({"type": "target_update", "targets": [{"id": 7, "x": 0.1, "y": 0.2}]}))
    dispatcher.dispatch(decode_message({"type": "fall_event", "height": 0.1}))
    dispatcher.dispatch(decode_message({"type": "error", "error": {"message": "bad zone"}}))
    dispatcher.dispatch(decode_message({"type": "mystery"}))

    kinds = [type(event) for event in applied]
    assert kinds == [
        MessageReceived,
        TargetsReplaced,
        MessageReceived,
        FallAlertRaised,
        MessageReceived,
        ServerErrorReceived,
        MessageReceived,
    ]
    assert applied[1].targets[0].id == "7"  # type: ignore[attr-defined]
    assert falls[0].raw["height"] == 0.1
    assert str(errors[0]) == "bad zone"
    assert errors[0].payload["error"] == {"message": "bad zone"}


def test_observer_failure_is_contained() -> None:
    applied: list[StoreEvent] = []

    def _explode(_event: FallEvent) -> None:
        raise RuntimeError("observer bug")

    dispatcher = MessageDispatcher(applied.append, on_fall_event=_explode)
    dispatcher.dispatch(decode_message({"type": "fall_event"}))

    assert any(isinstance(event, FallAlertRaised) for event in applied)


def test_outbound_wire_shapes() -> None:
    zone = Zone(id="zone_1", name="Bed", points=(Point(x=0, y=0), Point(x=1, y=0), Point(x=1, y=1)))

    assert json.loads(encode_intent(DeleteZone(zone_id="zone_1"))) == {"type": "delete_zone", "zoneId": "zone_1"}
    assert json.loads(encode_intent(RequestLogs())) == {"type": "request_logs"}
    assert json.loads(encode_intent(RequestLogs(zone_id="zone_1"))) == {"type": "request_logs", "zone_id": "zone_1"}
    assert json.loads(encode_intent(RequestFallLogs(start_time=1, end_time=2))) == {
        "type": "fall_logs",
        "start_time": 1,
        "end_time": 2,
    }
    new_zone = json.loads(encode_intent(NewZone(zone=zone)))
    assert new_zone["type"] == "new_zone"
    assert new_zone["zone"]["points"] == [{"x": 0.0, "y": 0.0}, {"x": 1.0, "y": 0.0}, {"x": 1.0, "y": 1.0}]
