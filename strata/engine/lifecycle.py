"""Response lifecycle state machine for Claude sessions.

Defines valid transitions and enforces them. Invalid transitions
raise ValueError rather than silently proceeding.

State Diagram:

    IDLE ──start──> RESPONDING ──complete/error──> IDLE
                        │
                        └──cancel──> CANCELLING ──ack/complete/error──> IDLE

Terminal sessions never leave IDLE.
"""
from __future__ import annotations

from enum import Enum


class ResponseState(str, Enum):
    """Whether a Claude session has an assistant response in flight."""
    IDLE = "idle"
    RESPONDING = "responding"
    CANCELLING = "cancelling"


VALID_TRANSITIONS: dict[ResponseState, set[ResponseState]] = {
    ResponseState.IDLE: {
        ResponseState.RESPONDING,
    },
    ResponseState.RESPONDING: {
        ResponseState.IDLE,
        ResponseState.CANCELLING,
    },
    ResponseState.CANCELLING: {
        ResponseState.IDLE,
    },
}


def validate_transition(current: ResponseState, target: ResponseState) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_str = ", ".join(sorted(s.value for s in allowed)) or "none"
        raise ValueError(
            f"Invalid response transition: {current.value} -> {target.value}. "
            f"Allowed from {current.value}: {allowed_str}"
        )
