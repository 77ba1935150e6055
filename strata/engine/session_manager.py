"""Process-wide registry of sessions.

Owns creation, selection, closing and event routing. The selection is
stored as a session id and looked up on demand, so closing a session can
never leave a dangling selection: the registry removal and the selection
update happen inside one critical section.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from strata.adapters.content_provider import FileContentProvider, PayloadContentProvider
from strata.adapters.events import TransportEvent
from strata.adapters.transport import NullTransport, Transport
from strata.engine.config import StrataConfig
from strata.engine.errors import UnknownSessionError
from strata.shared.models.session import (
    PermissionMode,
    Session,
    SessionKind,
    SessionSettings,
)

logger = logging.getLogger(__name__)

Listener = Callable[["SessionManager", "Session | None"], None]


class SessionManager:
    """Ordered registry of Claude and terminal sessions."""

    def __init__(
        self,
        transport: Transport | None = None,
        config: StrataConfig | None = None,
        content_provider: FileContentProvider | None = None,
    ) -> None:
        self._transport: Transport = transport or NullTransport()
        self._config = config or StrataConfig()
        self._content_provider = content_provider or PayloadContentProvider()
        self._sessions: list[Session] = []
        self._selected_id: str | None = None
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

    # ── read-only state ─────────────────────────────────────────────

    @property
    def sessions(self) -> tuple[Session, ...]:
        with self._lock:
            return tuple(self._sessions)

    @property
    def selected_session_id(self) -> str | None:
        return self._selected_id

    @property
    def selected_session(self) -> Session | None:
        with self._lock:
            return self._find(self._selected_id)

    def snapshot(self) -> tuple[tuple[Session, ...], str | None]:
        """Consistent ``(sessions, selected_id)`` pair for presentation."""
        with self._lock:
            return tuple(self._sessions), self._selected_id

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._find(session_id)

    def _find(self, session_id: str | None) -> Session | None:
        if session_id is None:
            return None
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    # ── lifecycle ───────────────────────────────────────────────────

    def new_session(
        self,
        working_directory: str | None = None,
        name: str | None = None,
        settings: SessionSettings | None = None,
    ) -> Session:
        """Create and select a Claude session. Connects lazily via events.

        Without *settings*, the configured permission mode and model apply.
        """
        return self._add(
            SessionKind.CLAUDE, working_directory, name, settings or self.default_settings()
        )

    def new_terminal_session(
        self, working_directory: str | None = None, name: str | None = None
    ) -> Session:
        """Create and select a terminal session."""
        return self._add(SessionKind.TERMINAL, working_directory, name, None)

    def default_settings(self) -> SessionSettings:
        return SessionSettings(
            permission_mode=PermissionMode(self._config.permission_mode),
            model=self._config.model,
        )

    def _add(
        self,
        kind: SessionKind,
        working_directory: str | None,
        name: str | None,
        settings: SessionSettings | None,
    ) -> Session:
        session = Session(
            kind=kind,
            working_directory=working_directory or self._config.default_cwd,
            name=name,
            transport=self._transport,
            content_provider=self._content_provider,
            limits=self._config.limits,
            shell_path=self._config.shell_path,
            settings=settings,
        )
        session.on_changed = self._notify
        with self._lock:
            self._sessions.append(session)
            self._selected_id = session.id
        logger.info("Created %s session %s (%s)", kind.value, session.id, session.name)
        self._notify(session)
        return session

    def close_session(self, session: Session | str) -> None:
        """Remove a session; moves the selection if it pointed there."""
        session_id = session if isinstance(session, str) else session.id
        with self._lock:
            target = self._find(session_id)
            if target is None:
                raise UnknownSessionError(session_id)
            index = self._sessions.index(target)
            self._sessions.pop(index)
            if self._selected_id == session_id:
                if not self._sessions:
                    self._selected_id = None
                else:
                    self._selected_id = self._sessions[max(index - 1, 0)].id
            target.on_changed = None
        # Outside the lock: terminate only talks to the transport.
        target.terminate()
        logger.info("Closed session %s", session_id)
        self._notify(None)

    def close_all(self) -> None:
        with self._lock:
            closing = list(self._sessions)
            self._sessions.clear()
            self._selected_id = None
        for session in closing:
            session.on_changed = None
            session.terminate()
        if closing:
            logger.info("Closed %d session(s)", len(closing))
        self._notify(None)

    def select(self, session: Session | str | None) -> None:
        session_id = session.id if isinstance(session, Session) else session
        with self._lock:
            if session_id is not None and self._find(session_id) is None:
                raise UnknownSessionError(session_id)
            self._selected_id = session_id
        self._notify(self.selected_session)

    def select_next(self, step: int = 1) -> Session | None:
        """Cycle the selection through sessions in creation order."""
        with self._lock:
            if not self._sessions:
                return None
            current = self._find(self._selected_id)
            index = self._sessions.index(current) if current else -step
            self._selected_id = self._sessions[(index + step) % len(self._sessions)].id
        selected = self.selected_session
        self._notify(selected)
        return selected

    # ── routing ─────────────────────────────────────────────────────

    def route(self, event: TransportEvent) -> Session:
        """Deliver *event* to its session. Raises UnknownSessionError."""
        session = self.get(event.session_id)
        if session is None:
            raise UnknownSessionError(event.session_id)
        session.receive_event(event)
        return session

    # ── observation ─────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, session: Session | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, session)
            except Exception:
                logger.exception("Session listener %r failed", listener)
