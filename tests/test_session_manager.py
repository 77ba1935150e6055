"""Tests for strata.engine.session_manager — registry, selection, routing."""

import threading

import pytest

from strata.adapters.events import PermissionRequested, ToolStart
from strata.adapters.transport import RecordingTransport
from strata.engine.config import StrataConfig
from strata.engine.errors import UnknownSessionError
from strata.engine.session_manager import SessionManager
from strata.shared.models.permission import PermissionDecision
from strata.shared.models.session import PermissionMode, SessionKind, SessionSettings


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def manager(transport):
    return SessionManager(transport=transport, config=StrataConfig(default_cwd="/work"))


class TestCreation:
    def test_new_session_is_selected(self, manager):
        s1 = manager.new_session()
        assert manager.selected_session is s1
        assert s1.working_directory == "/work"
        assert s1.kind is SessionKind.CLAUDE

    def test_creation_order_kept(self, manager):
        s1 = manager.new_session(name="one")
        s2 = manager.new_terminal_session(name="two")
        s3 = manager.new_session("/elsewhere", name="three")
        assert manager.sessions == (s1, s2, s3)
        assert manager.selected_session is s3
        assert s2.kind is SessionKind.TERMINAL
        assert s3.working_directory == "/elsewhere"

    def test_config_flows_into_sessions(self, transport):
        config = StrataConfig(shell_path="/bin/fish")
        manager = SessionManager(transport=transport, config=config)
        terminal = manager.new_terminal_session()
        assert terminal.variant.shell_path == "/bin/fish"
        assert terminal.limits is config.limits

    def test_default_settings_from_config(self, transport):
        config = StrataConfig(permission_mode="acceptEdits", model="m-1")
        manager = SessionManager(transport=transport, config=config)
        session = manager.new_session()
        assert session.settings.permission_mode is PermissionMode.ACCEPT_EDITS
        assert session.settings.model == "m-1"
        assert manager.new_terminal_session().settings is None

    def test_explicit_settings_win(self, manager):
        settings = SessionSettings(permission_mode=PermissionMode.BYPASS_PERMISSIONS)
        session = manager.new_session(settings=settings)
        assert session.settings is settings


class TestClose:
    def test_closing_only_selected_clears_selection(self, manager):
        s1 = manager.new_session()
        manager.close_session(s1)
        assert manager.selected_session is None
        assert manager.selected_session_id is None
        assert manager.sessions == ()

    def test_closing_selected_moves_to_previous(self, manager):
        s1 = manager.new_session()
        s2 = manager.new_session()
        s3 = manager.new_session()
        manager.select(s2)
        manager.close_session(s2)
        assert manager.selected_session is s1
        assert manager.sessions == (s1, s3)

    def test_closing_first_selected_moves_to_new_first(self, manager):
        s1 = manager.new_session()
        s2 = manager.new_session()
        manager.select(s1)
        manager.close_session(s1.id)
        assert manager.selected_session is s2

    def test_closing_unselected_keeps_selection(self, manager):
        s1 = manager.new_session()
        s2 = manager.new_session()
        manager.close_session(s1)
        assert manager.selected_session is s2

    def test_close_unknown_raises(self, manager):
        with pytest.raises(UnknownSessionError):
            manager.close_session("missing")

    def test_close_denies_pending_permissions(self, manager, transport):
        s1 = manager.new_session()
        s1.start("go")
        manager.route(PermissionRequested(session_id=s1.id, request_id="r1", tool_name="Bash"))
        manager.close_session(s1)
        assert transport.decisions() == [("r1", PermissionDecision.DENY)]
        assert ("cancel", s1.id) in transport.calls

    def test_close_all(self, manager):
        manager.new_session()
        manager.new_terminal_session()
        manager.close_all()
        assert manager.sessions == ()
        assert manager.selected_session is None

    def test_snapshot_never_dangles_under_concurrent_close(self, manager):
        sessions = [manager.new_session() for _ in range(50)]
        stop = threading.Event()
        bad = []

        def reader():
            while not stop.is_set():
                current, selected_id = manager.snapshot()
                if selected_id is not None and selected_id not in {s.id for s in current}:
                    bad.append(selected_id)

        thread = threading.Thread(target=reader)
        thread.start()
        for session in sessions:
            manager.close_session(session)
        stop.set()
        thread.join()
        assert bad == []


class TestSelection:
    def test_select_unknown_raises(self, manager):
        manager.new_session()
        with pytest.raises(UnknownSessionError):
            manager.select("missing")

    def test_select_none(self, manager):
        manager.new_session()
        manager.select(None)
        assert manager.selected_session is None

    def test_select_next_wraps(self, manager):
        s1 = manager.new_session()
        s2 = manager.new_session()
        assert manager.select_next() is s1
        assert manager.select_next() is s2
        assert manager.select_next(-1) is s1

    def test_select_next_empty(self, manager):
        assert manager.select_next() is None


class TestRouting:
    def test_route_to_owner(self, manager):
        s1 = manager.new_session()
        s2 = manager.new_session()
        routed = manager.route(ToolStart(session_id=s1.id, tool_id="t1", tool_name="Read"))
        assert routed is s1
        assert len(s1.activities) == 1
        assert s2.activities == []

    def test_route_unknown_raises(self, manager):
        with pytest.raises(UnknownSessionError) as excinfo:
            manager.route(ToolStart(session_id="ghost", tool_name="Read"))
        assert excinfo.value.session_id == "ghost"

    def test_route_after_close_raises(self, manager):
        s1 = manager.new_session()
        manager.close_session(s1)
        with pytest.raises(UnknownSessionError):
            manager.route(ToolStart(session_id=s1.id, tool_name="Read"))


class TestObservation:
    def test_listener_sees_changes(self, manager):
        seen = []
        manager.subscribe(lambda m, s: seen.append(s))
        s1 = manager.new_session()
        s1.start("go")
        manager.close_session(s1)
        assert seen == [s1, s1, None]

    def test_failing_listener_does_not_break_manager(self, manager):
        def boom(m, s):
            raise RuntimeError("view gone")

        manager.subscribe(boom)
        s1 = manager.new_session()
        assert manager.selected_session is s1

    def test_unsubscribe(self, manager):
        seen = []
        listener = lambda m, s: seen.append(s)  # noqa: E731
        manager.subscribe(listener)
        manager.unsubscribe(listener)
        manager.unsubscribe(listener)
        manager.new_session()
        assert seen == []
