"""Coordination context — the single loop that owns all session state.

Transport threads only ever touch the EventBus. Everything else (parsing,
routing, session mutation, permission resolution, cancel timeouts) runs
serialized on the coordinator's asyncio loop.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from typing import Any

from strata.adapters.event_bus import EventBus
from strata.adapters.events import TransportEvent, parse_event
from strata.adapters.transport import Transport
from strata.engine.config import StrataConfig
from strata.engine.errors import MalformedEventError, UnknownSessionError
from strata.engine.session_manager import SessionManager
from strata.shared.models.permission import PermissionDecision, PermissionRequest
from strata.shared.models.session import Session

logger = logging.getLogger(__name__)


class Coordinator:
    """Consumes transport events and applies them to the session registry."""

    def __init__(
        self,
        transport: Transport | None = None,
        config: StrataConfig | None = None,
        manager: SessionManager | None = None,
    ) -> None:
        self.config = config or StrataConfig()
        self.manager = manager or SessionManager(transport=transport, config=self.config)
        self.bus = EventBus(
            maxsize=self.config.event_queue_size,
            put_timeout=self.config.put_timeout_seconds,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._cancel_timers: dict[str, asyncio.TimerHandle] = {}
        self.dropped_events = 0

    # ── inbound ─────────────────────────────────────────────────────

    def receive_event(self, data: Any) -> Future | None:
        """Non-blocking entry point for transport threads."""
        return self.bus.post(data)

    def dispatch(self, data: Any) -> Session | None:
        """Parse and apply one transport message on the coordination loop.

        Per-event failures are logged and dropped; they never abort
        processing of other events or sessions.
        """
        try:
            event = data if isinstance(data, TransportEvent) else parse_event(data)
        except MalformedEventError as exc:
            self.dropped_events += 1
            logger.warning("Dropping malformed event: %s", exc.reason)
            return None
        try:
            session = self.manager.route(event)
        except UnknownSessionError as exc:
            self.dropped_events += 1
            logger.warning(
                "Dropping %s for unknown session %s", event.event_type, exc.session_id
            )
            return None
        if not session.is_responding:
            self._clear_cancel_timer(session.id)
        return session

    async def run(self) -> None:
        """Consume the event bus until it is closed."""
        self._loop = asyncio.get_running_loop()
        self.bus.bind(self._loop)
        logger.info("Coordinator running")
        async for data in self.bus.consume():
            self.dispatch(data)
        logger.info("Coordinator stopped")

    def stop(self) -> None:
        for handle in self._cancel_timers.values():
            handle.cancel()
        self._cancel_timers.clear()
        self.bus.close()

    # ── user actions ────────────────────────────────────────────────

    def start(self, session: Session, prompt: str = "") -> None:
        session.start(prompt)

    def cancel(self, session: Session) -> None:
        """Cancel the in-flight response, arming the optional timeout."""
        was_responding = session.is_responding
        session.cancel()
        timeout = self.config.cancel_timeout_seconds
        if not was_responding or timeout <= 0 or not session.is_responding:
            return
        loop = self._loop or _running_loop()
        if loop is None:
            logger.debug("No running loop; cancel timeout for %s not armed", session.id)
            return
        self._clear_cancel_timer(session.id)
        self._cancel_timers[session.id] = loop.call_later(
            timeout, self._expire_cancel, session.id, session.generation
        )

    def resolve_permission(
        self, session: Session, decision: PermissionDecision
    ) -> PermissionRequest:
        """Resolve the session's current request. NoActiveRequestError surfaces."""
        return session.resolve_permission(decision)

    def _expire_cancel(self, session_id: str, generation: int) -> None:
        self._cancel_timers.pop(session_id, None)
        session = self.manager.get(session_id)
        if session is None:
            return
        session.force_idle(generation)

    def _clear_cancel_timer(self, session_id: str) -> None:
        handle = self._cancel_timers.pop(session_id, None)
        if handle is not None:
            handle.cancel()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
