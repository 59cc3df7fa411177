"""Frame codec: JSON text <-> typed protocol messages."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from pysentinel.exceptions import SentinelDecodeError
from pysentinel.models.messages import INBOUND_MODELS, InboundMessage, MessageType, OutboundIntent, UnhandledMessage

UNKNOWN_TYPE = "unknown"


def parse_frame(text: str | bytes) -> dict[str, Any]:
    """Parse one inbound frame into a JSON object.

    Raises :class:`SentinelDecodeError` when the frame is not JSON or is
    JSON but not an object.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SentinelDecodeError("Frame is not valid UTF-8", frame=repr(text[:64])) from exc
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SentinelDecodeError(f"Frame is not JSON: {exc.msg}", frame=text[:200]) from exc
    if not isinstance(payload, dict):
        raise SentinelDecodeError("Frame is not a JSON object", frame=text[:200])
    return payload


def message_type_of(payload: dict[str, Any]) -> str:
    value = payload.get("type")
    if isinstance(value, str) and value:
        return value
    return UNKNOWN_TYPE


def decode_message(payload: dict[str, Any]) -> InboundMessage:
    """Validate a parsed frame into its message variant.

    Frames whose ``type`` has no variant become :class:`UnhandledMessage`.
    Raises :class:`SentinelDecodeError` when a known type fails validation.
    """
    type_name = message_type_of(payload)
    try:
        message_type = MessageType(type_name)
    except ValueError:
        return UnhandledMessage.model_validate({**payload, "type": type_name})

    model = INBOUND_MODELS[message_type]
    try:
        return model.model_validate({**payload, "type": type_name})
    except ValidationError as exc:
        raise SentinelDecodeError(
            f"Malformed {type_name} frame: {exc.error_count()} validation error(s)",
            frame=json.dumps(payload)[:200],
        ) from exc


def encode_intent(intent: OutboundIntent) -> str:
    """Serialize an outbound intent to compact JSON text."""
    return intent.model_dump_json(by_alias=True, exclude_none=True)
