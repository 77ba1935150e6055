"""Tool activity records — one per tool invocation, in chat order."""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from strata.shared.diff import DiffLine, diff_stats


def _gen_id() -> str:
    return str(uuid.uuid4())[:8]


class ToolName(str, Enum):
    BASH = "Bash"
    EDIT = "Edit"
    WRITE = "Write"
    READ = "Read"
    GLOB = "Glob"
    GREP = "Grep"
    OTHER = "Other"


class ActivityState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureReason(str, Enum):
    MISSING_CONTENT = "missing_content"
    DIFF_UNAVAILABLE = "diff_unavailable"
    TOOL_ERROR = "tool_error"


# Presentation-neutral classification: (icon, accent)
_STYLE: dict[ToolName, tuple[str, str]] = {
    ToolName.BASH: ("terminal", "orange"),
    ToolName.EDIT: ("pencil", "blue"),
    ToolName.WRITE: ("document", "blue"),
    ToolName.READ: ("document-text", "green"),
    ToolName.GLOB: ("document-search", "purple"),
    ToolName.GREP: ("search", "purple"),
    ToolName.OTHER: ("wrench", "gray"),
}


@dataclass(frozen=True)
class TextPreview:
    """A bounded view of a text blob.

    ``lines`` holds at most the configured line cap; ``total_lines`` is the
    line count of the untruncated text.
    """
    lines: tuple[str, ...] = ()
    total_lines: int = 0
    truncated_chars: int = 0

    @property
    def hidden_lines(self) -> int:
        return max(self.total_lines - len(self.lines), 0)

    @property
    def is_truncated(self) -> bool:
        return self.hidden_lines > 0 or self.truncated_chars > 0

    @property
    def marker(self) -> str:
        if self.hidden_lines:
            noun = "line" if self.hidden_lines == 1 else "lines"
            return f"+{self.hidden_lines} more {noun}"
        if self.truncated_chars:
            return f"+{self.truncated_chars} more chars"
        return ""

    @property
    def text(self) -> str:
        body = "\n".join(self.lines)
        if self.marker:
            return f"{body}\n… {self.marker}" if body else f"… {self.marker}"
        return body


@dataclass(frozen=True)
class FileListing:
    names: tuple[str, ...] = ()
    total: int = 0

    @property
    def hidden(self) -> int:
        return max(self.total - len(self.names), 0)


@dataclass
class ToolActivityInput:
    file_path: str | None = None
    command: str | None = None
    description: str | None = None
    old_string: str | None = None
    new_string: str | None = None
    content: str | None = None
    pattern: str | None = None
    path: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ToolActivityInput:
        data = data or {}

        def _str(key: str) -> str | None:
            value = data.get(key)
            return value if isinstance(value, str) else None

        return cls(
            file_path=_str("file_path"),
            command=_str("command"),
            description=_str("description"),
            old_string=_str("old_string"),
            new_string=_str("new_string"),
            content=_str("content"),
            pattern=_str("pattern"),
            path=_str("path"),
            raw=dict(data),
        )


@dataclass
class ToolActivityResult:
    # Result families are mutually exclusive: {stdout, stderr},
    # {file_content}, {diff_lines}, {filenames}, {error}.
    stdout: TextPreview | None = None
    stderr: str | None = None
    interrupted: bool = False
    file_content: TextPreview | None = None
    diff_lines: list[DiffLine] | None = None
    filenames: FileListing | None = None
    error: str | None = None

    def populated_families(self) -> list[str]:
        families = []
        if self.stdout is not None or self.stderr is not None:
            families.append("output")
        if self.file_content is not None:
            families.append("file_content")
        if self.diff_lines is not None:
            families.append("diff_lines")
        if self.filenames is not None:
            families.append("filenames")
        if self.error is not None:
            families.append("error")
        return families


@dataclass
class ToolActivity:
    """Structured record of one tool invocation and its bounded result."""

    tool_name: ToolName
    raw_tool_name: str = ""
    input: ToolActivityInput = field(default_factory=ToolActivityInput)
    result: ToolActivityResult = field(default_factory=ToolActivityResult)
    state: ActivityState = ActivityState.PENDING
    failure: FailureReason | None = None
    id: str = field(default_factory=_gen_id)

    @property
    def is_finished(self) -> bool:
        return self.state in (ActivityState.COMPLETED, ActivityState.FAILED)

    def merge(self, other: ToolActivity) -> None:
        """Apply a completion record onto this identity in place."""
        if self.is_finished:
            raise ValueError(
                f"Tool activity {self.id} already finished ({self.state.value})"
            )
        if other.tool_name is not ToolName.OTHER or self.tool_name is ToolName.OTHER:
            self.tool_name = other.tool_name
            self.raw_tool_name = other.raw_tool_name or self.raw_tool_name
        for name in ToolActivityInput.__dataclass_fields__:
            if name == "raw":
                continue
            value = getattr(other.input, name)
            if value is not None:
                setattr(self.input, name, value)
        self.input.raw = {**self.input.raw, **other.input.raw}
        self.result = other.result
        self.state = other.state
        self.failure = other.failure

    # ── derived presentation-neutral properties ──

    @property
    def icon(self) -> str:
        return _STYLE[self.tool_name][0]

    @property
    def accent(self) -> str:
        return _STYLE[self.tool_name][1]

    @property
    def summary_text(self) -> str:
        name = self.tool_name
        file_name = os.path.basename(self.input.file_path) if self.input.file_path else "file"
        if name is ToolName.BASH:
            cmd = self.input.command or "command"
            return cmd if len(cmd) <= 80 else cmd[:77] + "..."
        if name in (ToolName.EDIT, ToolName.WRITE, ToolName.READ):
            return f"{name.value} {file_name}"
        if name is ToolName.GLOB:
            count = self.result.filenames.total if self.result.filenames else 0
            return f"Search {self.input.pattern or 'files'} — {count} file{'' if count == 1 else 's'}"
        if name is ToolName.GREP:
            count = self.result.filenames.total if self.result.filenames else 0
            return f"Grep /{self.input.pattern or 'pattern'}/ — {count} match{'' if count == 1 else 'es'}"
        return self.raw_tool_name or name.value

    @property
    def detail_summary(self) -> str | None:
        if self.failure is not None:
            return self.failure.value.replace("_", " ").capitalize()
        if self.tool_name is ToolName.EDIT and self.result.diff_lines is not None:
            added, removed = diff_stats(self.result.diff_lines)
            parts = []
            if added:
                parts.append(f"{added} added")
            if removed:
                parts.append(f"{removed} removed")
            return ", ".join(parts) or None
        if self.tool_name is ToolName.BASH and self.result.interrupted:
            return "Interrupted"
        return None
