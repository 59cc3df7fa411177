from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from pysentinel.models import (
    ConnectionState,
    ConnectionStatus,
    FallDetectionSettings,
    FallLogEntry,
    Target,
    ZoneLogEntry,
    parse_timestamp,
    utc_timestamp,
)


def test_identifiers_accept_numbers() -> None:
    assert Target.model_validate({"id": 12, "x": 1, "y": 2}).id == "12"
    assert FallLogEntry.model_validate({"targetId": 4.0}).target_id == "4"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-01-01T00:00:00Z", datetime(2026, 1, 1, tzinfo=UTC)),
        (1_767_225_600, datetime(2026, 1, 1, tzinfo=UTC)),
        (1_767_225_600_000, datetime(2026, 1, 1, tzinfo=UTC)),
        ("yesterday", None),
        (None, None),
        (10**20, None),
        (float("nan"), None),
    ],
)
def test_parse_timestamp(value: object, expected: datetime | None) -> None:
    assert parse_timestamp(value) == expected


def test_utc_timestamp_format() -> None:
    assert utc_timestamp(datetime(2026, 3, 4, 5, 6, 7, 890000, tzinfo=UTC)) == "2026-03-04T05:06:07.890Z"


def test_zone_log_entry_uses_server_key() -> None:
    entry = ZoneLogEntry.model_validate({"timestamp": "t", "type": "occupied", "targetCount": 2})
    assert entry.target_count == 2
    assert entry.model_dump(by_alias=True)["targetCount"] == 2

    with pytest.raises(ValidationError):
        ZoneLogEntry.model_validate({"timestamp": "t", "type": "maybe"})


def test_fall_log_entry_keeps_raw_and_event_type_aliases() -> None:
    entry = FallLogEntry.model_validate({"timestamp": 1_767_225_600_000, "eventType": "fall", "extra": 1})
    assert entry.event_type == "fall"
    assert entry.raw["extra"] == 1
    assert entry.occurred_at == datetime(2026, 1, 1, tzinfo=UTC)


def test_fall_settings_bounds() -> None:
    assert FallDetectionSettings(sensitivity=0.42).slider_sensitivity == 42
    with pytest.raises(ValidationError):
        FallDetectionSettings(sensitivity=1.5)


def test_connection_status_labels() -> None:
    assert ConnectionStatus(state=ConnectionState.RECONNECTING, retry_delay=7.5).label == "Reconnecting in 8s..."
    assert ConnectionStatus(state=ConnectionState.CONNECTED).label == "Connected"
    assert ConnectionStatus(state=ConnectionState.EXHAUSTED).label == "Max attempts reached"
