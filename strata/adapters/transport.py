"""Outbound transport interface.

The core tells the transport what to do; the outcome always comes back
later as an inbound event. Nothing here returns a result.

Transports tag the end-of-response events they emit (``response_complete``,
``cancel_ack``, ``error``) with ``session.generation`` as it was when
start() was called, so a late event from a cancelled response can never end
a newer one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from strata.shared.models.permission import PermissionDecision

if TYPE_CHECKING:
    from strata.shared.models.session import Session, SessionSettings

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Fire-and-forget commands to the assistant/shell process."""

    def start(
        self, session: Session, prompt: str, settings: SessionSettings | None
    ) -> None: ...

    def cancel(self, session: Session) -> None: ...

    def resolve_permission(
        self, request_id: str, decision: PermissionDecision
    ) -> None: ...


class NullTransport:
    """Transport used when no process is attached; logs and drops commands."""

    def start(
        self, session: Session, prompt: str, settings: SessionSettings | None
    ) -> None:
        logger.debug(
            "NullTransport.start session=%s generation=%d mode=%s",
            session.id,
            session.generation,
            settings.permission_mode.value if settings else "-",
        )

    def cancel(self, session: Session) -> None:
        logger.debug("NullTransport.cancel session=%s", session.id)

    def resolve_permission(
        self, request_id: str, decision: PermissionDecision
    ) -> None:
        logger.debug(
            "NullTransport.resolve_permission %s -> %s", request_id, decision.value
        )


@dataclass
class RecordingTransport:
    """Transport that records every command, for replays and tests."""

    calls: list[tuple[str, Any]] = field(default_factory=list)
    # (session id, generation, settings) for every start()
    starts: list[tuple[str, int, Any]] = field(default_factory=list)

    def start(
        self, session: Session, prompt: str, settings: SessionSettings | None
    ) -> None:
        self.calls.append(("start", (session.id, prompt)))
        self.starts.append((session.id, session.generation, settings))

    def cancel(self, session: Session) -> None:
        self.calls.append(("cancel", session.id))

    def resolve_permission(
        self, request_id: str, decision: PermissionDecision
    ) -> None:
        self.calls.append(("resolve_permission", (request_id, decision)))

    def decisions(self) -> list[tuple[str, PermissionDecision]]:
        return [args for name, args in self.calls if name == "resolve_permission"]
