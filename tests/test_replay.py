"""Tests for strata.shared.services.replay — NDJSON transcript replay."""

from __future__ import annotations

import json

from strata.adapters.transport import RecordingTransport
from strata.engine.coordinator import Coordinator
from strata.engine.lifecycle import ResponseState
from strata.shared.models.permission import PermissionDecision
from strata.shared.models.session import PermissionMode
from strata.shared.models.tool_activity import ActivityState
from strata.shared.services.replay import replay_lines


def _lines(*items) -> list[str]:
    return [json.dumps(item) if isinstance(item, dict) else item for item in items]


def test_replay_full_conversation() -> None:
    transport = RecordingTransport()
    coordinator = Coordinator(transport=transport)
    result = replay_lines(coordinator, _lines(
        "# a comment",
        "",
        {"action": "new_session", "alias": "main", "cwd": "/work"},
        {"action": "start", "session": "main", "prompt": "build it"},
        {"event": "tool_start", "session": "main", "tool_id": "t1",
         "tool_name": "Bash", "input": {"command": "make"}},
        {"event": "permission_request", "session": "main", "request_id": "r1",
         "tool_name": "Bash", "input": {"command": "make"}},
        {"action": "resolve", "session": "main", "decision": "allow"},
        {"event": "tool_result", "session": "main", "tool_id": "t1",
         "result": {"stdout": "ok"}},
        {"event": "response_complete", "session": "main", "text": "done"},
    ))
    session = result.sessions["main"]
    assert result.applied == 7
    assert result.skipped == 0
    assert session.working_directory == "/work"
    assert session.response_state is ResponseState.IDLE
    assert session.activities[0].state is ActivityState.COMPLETED
    assert transport.decisions() == [("r1", PermissionDecision.ALLOW)]


def test_replay_skips_bad_lines() -> None:
    coordinator = Coordinator(transport=RecordingTransport())
    result = replay_lines(coordinator, _lines(
        "{not json",
        "[1, 2]",
        {"action": "new_terminal", "alias": "sh"},
        {"action": "resolve", "session": "sh", "decision": "allow"},
        {"action": "start", "session": "ghost"},
        {"action": "dance", "session": "sh"},
        {"event": "tool_start", "session": "sh"},
        {"action": "close", "session": "sh"},
    ))
    assert result.applied == 2
    assert result.skipped == 6
    assert coordinator.manager.sessions == ()
    assert coordinator.dropped_events == 1


def test_replay_two_sessions_stay_isolated() -> None:
    coordinator = Coordinator(transport=RecordingTransport())
    result = replay_lines(coordinator, _lines(
        {"action": "new_session", "alias": "a"},
        {"action": "new_session", "alias": "b"},
        {"action": "select", "session": "a"},
        {"event": "tool_result", "session": "b", "tool_id": "t1",
         "tool_name": "Read", "result": "x"},
    ))
    assert result.skipped == 0
    assert coordinator.manager.selected_session is result.sessions["a"]
    assert result.sessions["a"].activities == []
    assert len(result.sessions["b"].activities) == 1


def test_replay_applies_session_settings() -> None:
    transport = RecordingTransport()
    coordinator = Coordinator(transport=transport)
    result = replay_lines(coordinator, _lines(
        {"action": "new_session", "alias": "p", "permission_mode": "plan",
         "model": "m-3", "system_prompt": "Answer tersely."},
        {"action": "start", "session": "p", "prompt": "sketch it"},
        {"action": "new_session", "alias": "bad", "permission_mode": "yolo"},
    ))
    assert result.applied == 2
    assert result.skipped == 1
    assert "bad" not in result.sessions
    [(session_id, generation, settings)] = transport.starts
    assert session_id == result.sessions["p"].id
    assert generation == 1
    assert settings.permission_mode is PermissionMode.PLAN
    assert settings.model == "m-3"
    assert settings.system_prompt == "Answer tersely."
