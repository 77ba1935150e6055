"""Tool log — RichLog panel rendering the selected session's activities."""

from __future__ import annotations

from rich.markup import escape
from textual.widgets import RichLog

from strata.shared.diff import DiffLineKind
from strata.shared.models.tool_activity import ActivityState, ToolActivity

_STATE_MARKUP = {
    ActivityState.PENDING: "[yellow]\\[pending][/yellow]",
    ActivityState.RUNNING: "[yellow]running[/yellow]",
    ActivityState.COMPLETED: "[green]done[/green]",
    ActivityState.FAILED: "[red]failed[/red]",
}

_DIFF_MARKUP = {
    DiffLineKind.ADDED: ("green", "+"),
    DiffLineKind.REMOVED: ("red", "-"),
    DiffLineKind.CONTEXT: ("dim", " "),
}


def render_activity_rich(activity: ToolActivity) -> list[str]:
    """Render one activity as Rich markup lines."""
    color = activity.accent
    head = (
        f"[bold {color}]{escape(activity.tool_name.value)}[/bold {color}]  "
        f"{escape(activity.summary_text)}  {_STATE_MARKUP[activity.state]}"
    )
    lines = [head]
    if activity.detail_summary:
        lines.append(f"  [dim]{escape(activity.detail_summary)}[/dim]")
    result = activity.result
    if result.diff_lines:
        for line in result.diff_lines:
            style, sign = _DIFF_MARKUP[line.kind]
            lines.append(f"  [{style}]{sign} {escape(line.text)}[/{style}]")
    for preview in (result.stdout, result.file_content):
        if preview is not None:
            lines.extend(f"  {escape(text)}" for text in preview.lines)
            if preview.marker:
                lines.append(f"  [dim]… {preview.marker}[/dim]")
    if result.stderr:
        lines.append(f"  [red]{escape(result.stderr)}[/red]")
    if result.filenames is not None:
        lines.extend(f"  {escape(name)}" for name in result.filenames.names)
        if result.filenames.hidden:
            lines.append(f"  [dim]… +{result.filenames.hidden} more files[/dim]")
    if result.error:
        lines.append(f"  [red]Error:[/red] {escape(result.error)}")
    return lines


class ToolLog(RichLog):
    """Scrolling log of tool activities for one session."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            auto_scroll=True,
            wrap=True,
            markup=True,
            highlight=False,
            max_lines=5000,
            **kwargs,
        )

    def show_activities(self, activities: list[ToolActivity]) -> None:
        self.clear()
        for activity in activities:
            for line in render_activity_rich(activity):
                self.write(line)
