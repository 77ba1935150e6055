"""Replay newline-delimited JSON transcripts through a coordinator.

Each line is either a transport event (has ``"event"``) or a user action
(has ``"action"``). Sessions are referred to by script aliases, which are
mapped to the real session ids as sessions are created:

    {"action": "new_session", "alias": "main", "cwd": "/work",
     "permission_mode": "acceptEdits"}
    {"action": "start", "session": "main", "prompt": "fix the bug"}
    {"event": "permission_request", "session": "main", "request_id": "r1",
     "tool_name": "Bash", "input": {"command": "make"}}
    {"action": "resolve", "session": "main", "decision": "allow"}
    {"event": "response_complete", "session": "main", "text": "done"}
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from strata.engine.coordinator import Coordinator
from strata.engine.errors import NoActiveRequestError
from strata.engine.session_manager import SessionManager
from strata.shared.models.permission import PermissionDecision
from strata.shared.models.session import PermissionMode, Session, SessionSettings

logger = logging.getLogger(__name__)


@dataclass
class ReplayResult:
    sessions: dict[str, Session] = field(default_factory=dict)
    applied: int = 0
    skipped: int = 0


def replay_lines(coordinator: Coordinator, lines: Iterable[str]) -> ReplayResult:
    """Apply every line in order; bad lines are logged and skipped."""
    result = ReplayResult()
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("replay line %d: invalid JSON (%s)", lineno, exc)
            result.skipped += 1
            continue
        if not isinstance(data, dict):
            logger.warning("replay line %d: expected an object", lineno)
            result.skipped += 1
            continue
        if _apply(coordinator, data, result, lineno):
            result.applied += 1
        else:
            result.skipped += 1
    return result


def _resolve_alias(data: dict, result: ReplayResult) -> str | None:
    alias = data.get("session")
    if isinstance(alias, str) and alias in result.sessions:
        return result.sessions[alias].id
    return data.get("session_id") or alias


def _settings(manager: SessionManager, data: dict) -> SessionSettings:
    settings = manager.default_settings()
    if data.get("permission_mode"):
        settings.permission_mode = PermissionMode(data["permission_mode"])
    if data.get("model"):
        settings.model = str(data["model"])
    if data.get("system_prompt"):
        settings.custom_system_prompt = str(data["system_prompt"])
    return settings


def _apply(coordinator: Coordinator, data: dict, result: ReplayResult, lineno: int) -> bool:
    manager = coordinator.manager
    if "event" in data:
        event = dict(data)
        event["session_id"] = _resolve_alias(data, result)
        event.pop("session", None)
        return coordinator.dispatch(event) is not None

    action = data.get("action")
    if action == "new_terminal":
        session = manager.new_terminal_session(
            working_directory=data.get("cwd"), name=data.get("name")
        )
        result.sessions[str(data.get("alias") or session.id)] = session
        return True
    if action == "new_session":
        try:
            settings = _settings(manager, data)
        except ValueError as exc:
            logger.warning("replay line %d: bad session settings: %s", lineno, exc)
            return False
        session = manager.new_session(
            working_directory=data.get("cwd"), name=data.get("name"), settings=settings
        )
        result.sessions[str(data.get("alias") or session.id)] = session
        return True

    session = manager.get(_resolve_alias(data, result) or "")
    if session is None:
        logger.warning("replay line %d: %s for unknown session", lineno, action)
        return False
    try:
        if action == "start":
            coordinator.start(session, data.get("prompt", ""))
        elif action == "cancel":
            coordinator.cancel(session)
        elif action == "resolve":
            decision = PermissionDecision(data.get("decision", "deny"))
            coordinator.resolve_permission(session, decision)
        elif action == "select":
            manager.select(session)
        elif action == "close":
            manager.close_session(session)
        else:
            logger.warning("replay line %d: unknown action %r", lineno, action)
            return False
    except (ValueError, NoActiveRequestError) as exc:
        logger.warning("replay line %d: %s failed: %s", lineno, action, exc)
        return False
    return True
