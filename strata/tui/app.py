"""Strata TUI — Textual application over the coordination core.

The app is a pure consumer: it renders SessionManager state, forwards
user actions (prompts, new/close/select/cancel, permission decisions) and runs the
Coordinator's event loop as a worker, so the Textual loop doubles as the
coordination context.
"""

from __future__ import annotations

import logging

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Footer, Header, Input, Static

from strata.engine.coordinator import Coordinator
from strata.engine.session_manager import SessionManager
from strata.shared.models.permission import PermissionDecision
from strata.shared.models.session import Session, SessionKind
from strata.tui.screens.permission import PermissionScreen
from strata.tui.widgets.tool_log import ToolLog

logger = logging.getLogger(__name__)


class SessionList(Static):
    """Sidebar listing sessions in creation order."""

    DEFAULT_CSS = """
    SessionList {
        width: 32;
        border-right: solid $primary;
        padding: 0 1;
    }
    """

    def show(self, sessions: tuple[Session, ...], selected_id: str | None) -> None:
        if not sessions:
            self.update("[dim]No sessions — ctrl+n to start one[/dim]")
            return
        rows = []
        for session in sessions:
            marker = "▶" if session.id == selected_id else " "
            kind = "$" if session.kind is SessionKind.TERMINAL else "✻"
            state = ""
            if session.is_responding:
                state = f" [yellow]{session.response_state.value}[/yellow]"
            pending = len(session.permission_queue)
            if pending:
                state += f" [red]({pending})[/red]"
            rows.append(f"{marker} {kind} {escape(session.name)}{state}")
        self.update("\n".join(rows))


class StrataApp(App):
    """Terminal UI for supervising concurrent assistant sessions."""

    TITLE = "Strata"
    SUB_TITLE = "Session Supervisor"

    CSS = """
    #main {
        height: 1fr;
    }
    """

    # Priority so the prompt input does not swallow them.
    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True),
        Binding("ctrl+n", "new_session", "New Session", priority=True),
        Binding("ctrl+t", "new_terminal", "New Terminal", priority=True),
        Binding("ctrl+w", "close_session", "Close", priority=True),
        Binding("ctrl+x", "cancel_response", "Cancel", priority=True),
        Binding("ctrl+j", "next_session", "Next", priority=True),
    ]

    def __init__(self, coordinator: Coordinator | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.coordinator = coordinator or Coordinator()
        self._permission_open = False
        self._session_list: SessionList | None = None
        self._tool_log: ToolLog | None = None

    @property
    def manager(self) -> SessionManager:
        return self.coordinator.manager

    def compose(self) -> ComposeResult:
        yield Header()
        self._session_list = SessionList(id="session-list")
        self._tool_log = ToolLog(id="tool-log")
        with Horizontal(id="main"):
            yield self._session_list
            yield self._tool_log
        yield Input(placeholder="Prompt the selected session…", id="prompt-input")
        yield Footer()

    def on_mount(self) -> None:
        self.manager.subscribe(self._on_state_changed)
        self.run_worker(self.coordinator.run(), exclusive=True, name="coordinator")
        self.refresh_view()
        self.query_one("#prompt-input", Input).focus()

    def on_unmount(self) -> None:
        self.manager.unsubscribe(self._on_state_changed)
        self.coordinator.stop()
        self._session_list = None
        self._tool_log = None

    # ── state → view ────────────────────────────────────────────────

    def _on_state_changed(self, manager: SessionManager, session: Session | None) -> None:
        self.refresh_view()

    def refresh_view(self) -> None:
        if self._session_list is None or self._tool_log is None:
            return
        sessions, selected_id = self.manager.snapshot()
        self._session_list.show(sessions, selected_id)
        selected = next((s for s in sessions if s.id == selected_id), None)
        self._tool_log.show_activities(selected.activities if selected else [])
        self._maybe_prompt_permission()

    def _maybe_prompt_permission(self) -> None:
        if self._permission_open:
            return
        session = self.manager.selected_session
        if session is None:
            return
        request = session.current_permission
        if request is None:
            return
        self._permission_open = True

        def _on_decision(decision: PermissionDecision | None) -> None:
            self._permission_open = False
            # The session may have drained its queue while the modal was open.
            if session.current_permission is request:
                session.resolve_permission(decision or PermissionDecision.DENY)
            else:
                logger.info("Permission %s already resolved; decision ignored", request.id)
            self.refresh_view()

        self.push_screen(
            PermissionScreen(
                request,
                session_name=session.name,
                queued=session.permission_queue.queued_count(),
            ),
            callback=_on_decision,
        )

    # ── actions ─────────────────────────────────────────────────────

    def on_input_submitted(self, event: Input.Submitted) -> None:
        prompt = event.value.strip()
        if not prompt:
            return
        session = self.manager.selected_session or self.manager.new_session()
        if session.kind is SessionKind.TERMINAL:
            self.notify("Terminal sessions take input in the shell", severity="warning")
            return
        try:
            self.coordinator.start(session, prompt)
        except ValueError:
            self.notify("A response is already in flight", severity="warning")
            return
        event.input.value = ""

    def action_new_session(self) -> None:
        self.manager.new_session()

    def action_new_terminal(self) -> None:
        session = self.manager.new_terminal_session()
        self.coordinator.start(session)

    def action_close_session(self) -> None:
        selected = self.manager.selected_session
        if selected is not None:
            self.manager.close_session(selected)

    def action_cancel_response(self) -> None:
        selected = self.manager.selected_session
        if selected is not None:
            self.coordinator.cancel(selected)

    def action_next_session(self) -> None:
        self.manager.select_next()
