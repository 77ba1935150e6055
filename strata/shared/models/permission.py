"""Permission request model — a pending approval gate for one tool call."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class PermissionDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


def _summarize_input(data: Mapping[str, Any] | None) -> dict[str, str]:
    return {str(k): str(v) for k, v in (data or {}).items()}


@dataclass(frozen=True)
class PermissionRequest:
    """Immutable once created; destroyed when resolved."""

    id: str
    tool_name: str
    input_summary: Mapping[str, str] = field(default_factory=dict)
    working_directory: str | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        # Freeze the summary so the request cannot change after creation.
        object.__setattr__(
            self,
            "input_summary",
            MappingProxyType(_summarize_input(self.input_summary)),
        )

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def from_payload(
        cls,
        request_id: str,
        tool_name: str,
        tool_input: Mapping[str, Any] | None,
        working_directory: str | None = None,
        reason: str | None = None,
    ) -> PermissionRequest:
        return cls(
            id=request_id,
            tool_name=tool_name,
            input_summary=_summarize_input(tool_input),
            working_directory=working_directory,
            reason=reason,
        )

    @property
    def display_description(self) -> str:
        summary = self.input_summary
        if self.tool_name == "Bash":
            return summary.get("command", "Run a command")
        if self.tool_name == "Edit":
            return f"Edit {summary.get('file_path', 'a file')}"
        if self.tool_name == "Write":
            target = summary.get("file_path", "a file")
            length = summary.get("contentLength")
            if length is None and "content" in summary:
                length = str(len(summary["content"]))
            return f"Write to {target} ({length or '?'} chars)"
        if self.tool_name == "Read":
            return f"Read {summary.get('file_path', 'a file')}"
        return self.tool_name

    @property
    def target_path(self) -> str:
        return self.input_summary.get("file_path") or self.input_summary.get("path") or ""

    @property
    def is_outside_working_directory(self) -> bool:
        """Whether the target path escapes the session working directory.

        Paths are normalised lexically so ``../`` segments cannot slip past,
        and the prefix check happens on a separator boundary so that
        ``/project`` does not match ``/projectEVIL``.
        """
        if not self.working_directory:
            return False
        target = self.target_path
        if not target:
            return False
        cwd = posixpath.normpath(self.working_directory)
        if not posixpath.isabs(target):
            target = posixpath.join(cwd, target)
        target = posixpath.normpath(target)
        if target == cwd:
            return False
        prefix = cwd if cwd.endswith("/") else cwd + "/"
        return not target.startswith(prefix)
