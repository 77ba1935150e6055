"""Session state — one Claude conversation or one terminal shell.

A Session is a tagged variant: ``kind`` says which, and ``variant`` holds
the state that only makes sense for that kind (ClaudeState or
TerminalState). Both kinds share the activity list and the permission
queue. All mutation goes through receive_event() and the explicit user
actions (start, cancel, resolve_permission, terminate).
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Union

from strata.adapters.content_provider import FileContentProvider
from strata.adapters.events import (
    CancelAck,
    PermissionRequested,
    ResponseComplete,
    SetText,
    Token,
    ToolResult,
    ToolStart,
    TransportError,
    TransportEvent,
)
from strata.adapters.permission_queue import PermissionQueue
from strata.adapters.transport import NullTransport, Transport
from strata.engine.lifecycle import ResponseState, validate_transition
from strata.shared.formatters.tool_activity import (
    TruncationLimits,
    ingest,
    normalize_tool_name,
    start_activity,
)
from strata.shared.models.permission import PermissionDecision, PermissionRequest
from strata.shared.models.tool_activity import ToolActivity, ToolName

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionKind(str, Enum):
    CLAUDE = "claude"
    TERMINAL = "terminal"


class PermissionMode(str, Enum):
    """How the assistant asks before running tools; enforced by the transport."""
    DEFAULT = "default"
    ACCEPT_EDITS = "acceptEdits"
    PLAN = "plan"
    BYPASS_PERMISSIONS = "bypassPermissions"


DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


@dataclass
class SessionSettings:
    """Per-session options forwarded to the transport on every start()."""
    permission_mode: PermissionMode = PermissionMode.DEFAULT
    model: str = DEFAULT_MODEL
    custom_system_prompt: str = ""

    @property
    def system_prompt(self) -> str | None:
        return self.custom_system_prompt.strip() or None


_USAGE_KEYS = {
    "input_tokens": ("inputTokens", "input_tokens"),
    "output_tokens": ("outputTokens", "output_tokens"),
    "cache_read_tokens": ("cacheReadTokens", "cache_read_tokens"),
    "cache_creation_tokens": ("cacheCreationTokens", "cache_creation_tokens"),
    "duration_ms": ("durationMs", "duration_ms"),
    "context_tokens": ("contextTokens", "context_tokens"),
}


@dataclass(frozen=True)
class UsageInfo:
    """Token usage reported with a completed response."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    cost_usd: float = 0.0
    duration_ms: int = 0
    context_tokens: int = 0

    @property
    def total_input_tokens(self) -> int:
        return self.input_tokens + self.cache_read_tokens + self.cache_creation_tokens

    @classmethod
    def from_payload(cls, usage: dict, cost_usd: float | None = None) -> UsageInfo:
        values: dict[str, int] = {}
        for name, keys in _USAGE_KEYS.items():
            for key in keys:
                value = usage.get(key)
                if isinstance(value, int) and not isinstance(value, bool):
                    values[name] = value
                    break
        return cls(cost_usd=float(cost_usd or 0.0), **values)


@dataclass
class ClaudeState:
    settings: SessionSettings = field(default_factory=SessionSettings)
    response_state: ResponseState = ResponseState.IDLE
    # Bumped on every start(); lets a late cancel timeout detect staleness.
    generation: int = 0
    response_text: str = ""
    last_result: str = ""
    sdk_session_id: str | None = None
    total_cost: float = 0.0
    last_usage: UsageInfo | None = None
    errors: list[str] = field(default_factory=list)


@dataclass
class TerminalState:
    is_running: bool = False
    shell_path: str = field(default_factory=lambda: os.environ.get("SHELL", "/bin/zsh"))
    errors: list[str] = field(default_factory=list)


SessionVariant = Union[ClaudeState, TerminalState]


def default_session_name(kind: SessionKind, working_directory: str | None) -> str:
    dir_name = os.path.basename((working_directory or "").rstrip("/")) or "~"
    prefix = "Session" if kind is SessionKind.CLAUDE else "Terminal"
    return f"{prefix} — {dir_name}"


class Session:
    """Holds all coordination state for one session."""

    def __init__(
        self,
        kind: SessionKind = SessionKind.CLAUDE,
        working_directory: str | None = None,
        name: str | None = None,
        transport: Transport | None = None,
        content_provider: FileContentProvider | None = None,
        limits: TruncationLimits | None = None,
        shell_path: str | None = None,
        session_id: str | None = None,
        settings: SessionSettings | None = None,
    ) -> None:
        self.id = session_id or str(uuid.uuid4())
        self.kind = kind
        self.working_directory = working_directory
        self.name = name or default_session_name(kind, working_directory)
        self.created_at = _utcnow()
        self.transport: Transport = transport or NullTransport()
        # Without a provider, edits are recorded as MISSING_CONTENT.
        self.content_provider = content_provider
        self.limits = limits
        self.activities: list[ToolActivity] = []
        self.permission_queue = PermissionQueue(owner_id=self.id)
        self.variant: SessionVariant
        if kind is SessionKind.CLAUDE:
            self.variant = ClaudeState(settings=settings or SessionSettings())
        else:
            self.variant = TerminalState(**({"shell_path": shell_path} if shell_path else {}))
        # Set by SessionManager so presentation can observe changes.
        self.on_changed: Callable[[Session], None] | None = None

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, kind={self.kind.value}, name={self.name!r})"

    # ── read-only state ─────────────────────────────────────────────

    @property
    def response_state(self) -> ResponseState:
        if isinstance(self.variant, ClaudeState):
            return self.variant.response_state
        return ResponseState.IDLE

    @property
    def is_responding(self) -> bool:
        """True while a response is in flight, including while cancelling."""
        return self.response_state is not ResponseState.IDLE

    @property
    def is_active(self) -> bool:
        if isinstance(self.variant, TerminalState):
            return self.variant.is_running
        return self.is_responding

    @property
    def generation(self) -> int:
        if isinstance(self.variant, ClaudeState):
            return self.variant.generation
        return 0

    @property
    def settings(self) -> SessionSettings | None:
        """Per-session options; None for terminal sessions."""
        if isinstance(self.variant, ClaudeState):
            return self.variant.settings
        return None

    @property
    def errors(self) -> list[str]:
        return self.variant.errors

    @property
    def current_permission(self) -> PermissionRequest | None:
        return self.permission_queue.current()

    def find_activity(self, tool_id: str) -> ToolActivity | None:
        if not tool_id:
            return None
        for activity in reversed(self.activities):
            if activity.id == tool_id:
                return activity
        return None

    # ── user actions ────────────────────────────────────────────────

    def start(self, prompt: str = "") -> None:
        """Begin a response (Claude) or launch the shell (terminal).

        Raises ValueError if a Claude response is already in flight.
        """
        if isinstance(self.variant, TerminalState):
            self.variant.is_running = True
            self.transport.start(self, prompt, None)
            self._notify()
            return
        self._transition(ResponseState.RESPONDING)
        self.variant.generation += 1
        self.variant.response_text = ""
        self.transport.start(self, prompt, self.variant.settings)
        self._notify()

    def cancel(self) -> None:
        """Request cancellation of the in-flight response.

        A no-op when idle, when already cancelling, and for terminals.
        """
        if not isinstance(self.variant, ClaudeState):
            return
        if self.variant.response_state is not ResponseState.RESPONDING:
            return
        self._transition(ResponseState.CANCELLING)
        self.transport.cancel(self)
        self._notify()

    def resolve_permission(self, decision: PermissionDecision) -> PermissionRequest:
        """Resolve the current permission request.

        Raises NoActiveRequestError when nothing is pending.
        """
        request = self.permission_queue.resolve(decision)
        self._notify()
        return request

    def terminate(self) -> None:
        """Stop everything this session has in flight (used on close)."""
        if isinstance(self.variant, TerminalState):
            self.variant.is_running = False
        elif self.variant.response_state is ResponseState.RESPONDING:
            self.transport.cancel(self)
        self._deny_pending("session closed")

    def force_idle(self, generation: int) -> bool:
        """Drop a stuck cancellation back to idle.

        Only applies when the session is still cancelling the response
        identified by *generation*.
        """
        if not isinstance(self.variant, ClaudeState):
            return False
        if (
            self.variant.response_state is not ResponseState.CANCELLING
            or self.variant.generation != generation
        ):
            return False
        logger.warning(
            "Session %s: cancel not acknowledged, forcing idle (generation %d)",
            self.id, generation,
        )
        self._finish_response("cancel timeout")
        self._notify()
        return True

    # ── event processing ────────────────────────────────────────────

    def receive_event(self, event: TransportEvent) -> None:
        """Apply one transport event to this session."""
        if self._is_stale(event):
            logger.debug(
                "Session %s: %s for generation %s discarded (current %d)",
                self.id, event.event_type, event.generation, self.generation,
            )
            return
        if isinstance(event, ToolStart):
            self._on_tool_start(event)
        elif isinstance(event, ToolResult):
            self._on_tool_result(event)
        elif isinstance(event, PermissionRequested):
            self._on_permission_request(event)
        elif isinstance(event, Token):
            self._on_token(event)
        elif isinstance(event, SetText):
            self._on_set_text(event)
        elif isinstance(event, ResponseComplete):
            self._on_response_complete(event)
        elif isinstance(event, CancelAck):
            self._on_response_end(event, "cancel acknowledged")
        elif isinstance(event, TransportError):
            self.variant.errors.append(event.message)
            self._on_response_end(event, f"error: {event.message}")
        else:
            logger.warning(
                "Session %s ignoring unsupported event %s", self.id, event.event_type
            )
            return
        self._notify()

    def _is_stale(self, event: TransportEvent) -> bool:
        """End events tagged with an older generation belong to a finished response."""
        if not isinstance(event, (ResponseComplete, CancelAck, TransportError)):
            return False
        if not isinstance(self.variant, ClaudeState) or event.generation is None:
            return False
        return event.generation < self.variant.generation

    def _on_tool_start(self, event: ToolStart) -> None:
        if not event.tool_id:
            # Its result could never be matched; the record would stay RUNNING.
            logger.warning(
                "Session %s: tool_start for %s without tool_id dropped",
                self.id, event.tool_name,
            )
            return
        existing = self.find_activity(event.tool_id)
        if existing is not None:
            logger.warning(
                "Session %s: duplicate tool_start for %s ignored", self.id, event.tool_id
            )
            return
        self.activities.append(
            start_activity(event.tool_name, event.input, event.tool_id)
        )

    def _on_tool_result(self, event: ToolResult) -> None:
        existing = self.find_activity(event.tool_id)
        if existing is not None and existing.is_finished:
            # Records are never resurrected; a new call needs a new id.
            logger.warning(
                "Session %s: result for finished tool %s dropped", self.id, event.tool_id
            )
            return
        tool_name = event.tool_name or (existing.raw_tool_name if existing else "")
        tool_input = {**(existing.input.raw if existing else {}), **event.input}
        record = ingest(
            tool_name,
            tool_input,
            event.result,
            content=self._edit_content(tool_name, tool_input, event.result),
            is_error=event.is_error,
            limits=self.limits,
            activity_id=event.tool_id or None,
        )
        if existing is not None:
            existing.merge(record)
        else:
            self.activities.append(record)

    def _edit_content(self, tool_name: str, tool_input: dict, payload: object):
        if normalize_tool_name(tool_name) is not ToolName.EDIT:
            return None
        if self.content_provider is None:
            return None
        file_path = tool_input.get("file_path")
        if not isinstance(file_path, str):
            return None
        return self.content_provider.get_content(file_path, payload)

    def _on_permission_request(self, event: PermissionRequested) -> None:
        request = PermissionRequest.from_payload(
            request_id=event.request_id,
            tool_name=event.tool_name,
            tool_input=event.input,
            working_directory=self.working_directory,
            reason=event.reason,
        )
        if not self.is_responding:
            # An idle session must never hold queued requests.
            logger.warning(
                "Session %s: permission %s arrived while idle, denying",
                self.id, request.id,
            )
            self.transport.resolve_permission(request.id, PermissionDecision.DENY)
            return
        self.permission_queue.enqueue(request, self._send_decision)

    def _send_decision(
        self, request: PermissionRequest, decision: PermissionDecision
    ) -> None:
        self.transport.resolve_permission(request.id, decision)

    def _on_token(self, event: Token) -> None:
        if not isinstance(self.variant, ClaudeState) or not self.is_responding:
            logger.debug("Session %s: token outside a response dropped", self.id)
            return
        self.variant.response_text += event.text

    def _on_set_text(self, event: SetText) -> None:
        if not isinstance(self.variant, ClaudeState) or not self.is_responding:
            logger.debug("Session %s: set_text outside a response dropped", self.id)
            return
        self.variant.response_text = event.text

    def _on_response_complete(self, event: ResponseComplete) -> None:
        if isinstance(self.variant, ClaudeState) and self.is_responding:
            if event.sdk_session_id:
                self.variant.sdk_session_id = event.sdk_session_id
            if event.cost_usd is not None:
                self.variant.total_cost = float(event.cost_usd)
            if event.usage is not None:
                self.variant.last_usage = UsageInfo.from_payload(event.usage, event.cost_usd)
            self.variant.last_result = event.text or self.variant.response_text
        self._on_response_end(event, "response complete")

    def _on_response_end(self, event: TransportEvent, reason: str) -> None:
        if isinstance(self.variant, TerminalState):
            if isinstance(event, (ResponseComplete, TransportError)):
                self.variant.is_running = False
            return
        if not self.is_responding:
            # Whichever of cancel_ack/completion arrived first already won.
            logger.debug(
                "Session %s: %s discarded, already idle", self.id, event.event_type
            )
            return
        self._finish_response(reason)

    def _finish_response(self, reason: str) -> None:
        self._transition(ResponseState.IDLE)
        logger.info("Session %s idle (%s)", self.id, reason)
        self._deny_pending(reason)

    def _deny_pending(self, reason: str) -> None:
        denied = self.permission_queue.drain(PermissionDecision.DENY)
        if denied:
            logger.info(
                "Session %s denied %d pending permission(s): %s",
                self.id, len(denied), reason,
            )

    def _transition(self, target: ResponseState) -> None:
        if not isinstance(self.variant, ClaudeState):
            raise ValueError(
                f"Invalid response transition for {self.kind.value} session: "
                f"-> {target.value}. Terminal sessions never respond"
            )
        validate_transition(self.variant.response_state, target)
        self.variant.response_state = target

    def _notify(self) -> None:
        if self.on_changed is None:
            return
        try:
            self.on_changed(self)
        except Exception:
            logger.exception("Session %s change listener failed", self.id)
