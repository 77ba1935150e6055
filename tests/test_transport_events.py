"""Tests for strata.adapters.events — transport message parsing."""

import pytest

from strata.adapters.events import (
    CancelAck,
    PermissionRequested,
    ResponseComplete,
    SetText,
    ToolResult,
    ToolStart,
    TransportError,
    parse_event,
)
from strata.engine.errors import MalformedEventError


class TestParseEvent:
    def test_tool_start_flat(self):
        event = parse_event({
            "event": "tool_start",
            "session_id": "s1",
            "tool_id": "t1",
            "tool_name": "Bash",
            "input": {"command": "ls"},
        })
        assert isinstance(event, ToolStart)
        assert event.session_id == "s1"
        assert event.input == {"command": "ls"}

    def test_kind_key_and_nested_payload(self):
        event = parse_event({
            "kind": "permission_request",
            "session_id": "s1",
            "payload": {"request_id": "r1", "tool_name": "Edit", "input": {"file_path": "/a"}},
        })
        assert isinstance(event, PermissionRequested)
        assert event.request_id == "r1"
        assert event.reason is None

    def test_tool_result_keeps_any_result(self):
        event = parse_event({
            "event": "tool_result", "session_id": "s1", "tool_id": "t1",
            "result": ["a.py", "b.py"], "is_error": False,
        })
        assert isinstance(event, ToolResult)
        assert event.result == ["a.py", "b.py"]

    def test_simple_events(self):
        assert isinstance(parse_event({"event": "cancel_ack", "session_id": "s1"}), CancelAck)
        error = parse_event({"event": "error", "session_id": "s1", "message": "boom"})
        assert isinstance(error, TransportError)
        assert error.message == "boom"
        done = parse_event({"event": "response_complete", "session_id": "s1", "cost_usd": 1})
        assert isinstance(done, ResponseComplete)
        assert done.cost_usd == 1

    def test_end_events_carry_generation(self):
        done = parse_event({
            "event": "response_complete", "session_id": "s1", "generation": 3,
            "usage": {"inputTokens": 12, "outputTokens": 5},
        })
        assert done.generation == 3
        assert done.usage == {"inputTokens": 12, "outputTokens": 5}
        ack = parse_event({"event": "cancel_ack", "session_id": "s1", "generation": 2})
        assert ack.generation == 2
        assert parse_event({"event": "error", "session_id": "s1"}).generation is None

    def test_set_text(self):
        event = parse_event({"event": "set_text", "session_id": "s1", "text": "final"})
        assert isinstance(event, SetText)
        assert event.text == "final"

    def test_unknown_keys_ignored(self):
        event = parse_event({"event": "cancel_ack", "session_id": "s1", "extra": 1})
        assert isinstance(event, CancelAck)


class TestMalformed:
    @pytest.mark.parametrize("data", [
        None,
        "tool_start",
        [],
        {},
        {"event": "nope", "session_id": "s1"},
        {"event": "cancel_ack"},
        {"event": "cancel_ack", "session_id": ""},
        {"event": "tool_start", "session_id": "s1"},
        {"event": "tool_start", "session_id": "s1", "tool_name": "Bash"},
        {"event": "tool_start", "session_id": "s1", "tool_id": "", "tool_name": "Bash"},
        {"event": "tool_start", "session_id": "s1", "tool_name": 42},
        {"event": "tool_start", "session_id": "s1", "tool_name": "Bash", "input": "ls"},
        {"event": "tool_result", "session_id": "s1"},
        {"event": "permission_request", "session_id": "s1", "tool_name": "Bash"},
        {"event": "response_complete", "session_id": "s1", "cost_usd": True},
        {"event": "response_complete", "session_id": "s1", "usage": [1, 2]},
        {"event": "response_complete", "session_id": "s1", "generation": True},
        {"event": "cancel_ack", "session_id": "s1", "generation": "2"},
        {"event": "set_text", "session_id": "s1", "text": 5},
        {"event": "cancel_ack", "session_id": "s1", "payload": "oops"},
    ])
    def test_rejected(self, data):
        with pytest.raises(MalformedEventError):
            parse_event(data)

    def test_error_keeps_payload(self):
        data = {"event": "tool_start", "session_id": "s1", "tool_id": "t1"}
        with pytest.raises(MalformedEventError) as excinfo:
            parse_event(data)
        assert excinfo.value.payload is data
        assert "tool_name" in excinfo.value.reason
