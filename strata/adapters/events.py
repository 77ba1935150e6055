"""Inbound transport events.

Each event corresponds to one transport message dict, parsed into a typed
dataclass so sessions never touch raw payloads. Malformed payloads are
rejected here with MalformedEventError.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from strata.engine.errors import MalformedEventError


@dataclass
class TransportEvent:
    """Base event delivered by a transport collaborator."""
    event_type: str = ""
    session_id: str = ""


@dataclass
class ToolStart(TransportEvent):
    event_type: str = "tool_start"
    tool_id: str = ""
    tool_name: str = ""
    input: dict = field(default_factory=dict)


@dataclass
class ToolResult(TransportEvent):
    event_type: str = "tool_result"
    tool_id: str = ""
    tool_name: str = ""
    input: dict = field(default_factory=dict)
    result: Any = None
    is_error: bool = False


@dataclass
class PermissionRequested(TransportEvent):
    event_type: str = "permission_request"
    request_id: str = ""
    tool_name: str = ""
    input: dict = field(default_factory=dict)
    reason: str | None = None


@dataclass
class ResponseComplete(TransportEvent):
    event_type: str = "response_complete"
    text: str = ""
    sdk_session_id: str | None = None
    cost_usd: float | None = None
    usage: dict | None = None
    # Response generation echoed back by the transport; None when unknown.
    generation: int | None = None


@dataclass
class CancelAck(TransportEvent):
    event_type: str = "cancel_ack"
    generation: int | None = None


@dataclass
class TransportError(TransportEvent):
    event_type: str = "error"
    message: str = "Unknown error"
    generation: int | None = None


@dataclass
class Token(TransportEvent):
    """A streamed chunk of assistant text."""
    event_type: str = "token"
    text: str = ""


@dataclass
class SetText(TransportEvent):
    """A full snapshot of the assistant text; replaces what was streamed."""
    event_type: str = "set_text"
    text: str = ""


# Map of event type strings to dataclass constructors
_EVENT_MAP: dict[str, type[TransportEvent]] = {
    "tool_start": ToolStart,
    "tool_result": ToolResult,
    "permission_request": PermissionRequested,
    "response_complete": ResponseComplete,
    "cancel_ack": CancelAck,
    "error": TransportError,
    "token": Token,
    "set_text": SetText,
}

# Fields that must be present and non-empty strings
_REQUIRED: dict[type[TransportEvent], tuple[str, ...]] = {
    ToolStart: ("tool_id", "tool_name"),
    PermissionRequested: ("request_id", "tool_name"),
}

_FIELD_TYPES: dict[str, type | tuple[type, ...]] = {
    "tool_id": str,
    "tool_name": str,
    "request_id": str,
    "input": dict,
    "is_error": bool,
    "reason": str,
    "text": str,
    "sdk_session_id": str,
    "cost_usd": (int, float),
    "message": str,
    "usage": dict,
    "generation": int,
}


def parse_event(data: Any) -> TransportEvent:
    """Convert a transport message dict to a typed event.

    Accepts either ``"event"`` or ``"kind"`` as the type key.
    Raises MalformedEventError for anything that cannot be trusted.
    """
    if not isinstance(data, dict):
        raise MalformedEventError(f"expected an object, got {type(data).__name__}", data)
    event_type = data.get("event", data.get("kind"))
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEventError("missing event type", data)
    cls = _EVENT_MAP.get(event_type)
    if cls is None:
        raise MalformedEventError(f"unknown event type {event_type!r}", data)
    session_id = data.get("session_id")
    if not isinstance(session_id, str) or not session_id:
        raise MalformedEventError("missing session_id", data)

    # Payload may be nested under "payload" or flattened into the message.
    payload = data.get("payload")
    if payload is None:
        payload = data
    elif not isinstance(payload, dict):
        raise MalformedEventError("payload must be an object", data)

    valid_fields = {f.name for f in fields(cls)} - {"event_type", "session_id"}
    kwargs: dict[str, Any] = {}
    for name in valid_fields:
        if name not in payload or payload[name] is None:
            continue
        value = payload[name]
        expected = _FIELD_TYPES.get(name)
        if expected is not None and (
            not isinstance(value, expected)
            # bool is an int subclass; never accept it as a number
            or (expected in (int, (int, float)) and isinstance(value, bool))
        ):
            raise MalformedEventError(
                f"field {name!r} has type {type(value).__name__}", data
            )
        kwargs[name] = value

    for name in _REQUIRED.get(cls, ()):
        if not kwargs.get(name):
            raise MalformedEventError(f"{event_type} requires {name!r}", data)
    if cls is ToolResult and not (kwargs.get("tool_id") or kwargs.get("tool_name")):
        raise MalformedEventError("tool_result requires 'tool_id' or 'tool_name'", data)

    return cls(session_id=session_id, **kwargs)
