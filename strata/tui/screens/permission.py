"""Permission modal — asks the user to allow or deny the current tool call."""

from __future__ import annotations

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static

from strata.shared.models.permission import PermissionDecision, PermissionRequest


class PermissionScreen(ModalScreen[PermissionDecision]):
    """Modal dialog for the head of a session's permission queue.

    Dismisses with a PermissionDecision; Escape denies.
    """

    DEFAULT_CSS = """
    PermissionScreen {
        align: center middle;
    }
    #permission-dialog {
        width: 80;
        height: auto;
        border: thick $warning;
        background: $surface;
        padding: 1 2;
    }
    #permission-buttons {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [
        ("escape", "deny", "Deny"),
        ("a", "allow", "Allow"),
    ]

    def __init__(
        self,
        request: PermissionRequest,
        session_name: str = "",
        queued: int = 0,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.request = request
        self.session_name = session_name
        self.queued = queued

    def compose(self) -> ComposeResult:
        request = self.request
        with Vertical(id="permission-dialog"):
            yield Static(
                "[bold yellow]Permission Request[/bold yellow]",
                id="permission-title",
            )
            yield Static(
                f"[bold]{escape(self.session_name)}[/bold] wants to use "
                f"[cyan]{escape(request.tool_name)}[/cyan]",
            )
            yield Static(escape(request.display_description[:500]), id="permission-details")
            if request.reason:
                yield Static(f"[dim]{escape(request.reason)}[/dim]", id="permission-reason")
            if request.is_outside_working_directory:
                yield Static(
                    "[bold red]Target is outside the session working directory[/bold red]",
                    id="permission-outside",
                )
            if self.queued:
                yield Static(f"[dim]{self.queued} more waiting[/dim]", id="permission-queued")
            with Horizontal(id="permission-buttons"):
                yield Button("Allow", variant="success", id="btn-allow")
                yield Button("Deny", variant="error", id="btn-deny")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        result_map = {
            "btn-allow": PermissionDecision.ALLOW,
            "btn-deny": PermissionDecision.DENY,
        }
        self.dismiss(result_map.get(event.button.id, PermissionDecision.DENY))

    def action_allow(self) -> None:
        self.dismiss(PermissionDecision.ALLOW)

    def action_deny(self) -> None:
        self.dismiss(PermissionDecision.DENY)
