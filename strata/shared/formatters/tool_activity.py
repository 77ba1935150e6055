"""Normalise raw tool calls into bounded ToolActivity records.

A registry of per-tool result parsers turns the transport's result payload
into the sparse ToolActivityResult fields. Every parser applies the same
truncation policy so stored previews and reported totals always agree.

Adding a parser for a tool requires only a single decorated function:

    @result_parser(ToolName.READ)
    def _parse_read(tool_input, payload, ctx):
        return ToolActivityResult(file_content=ctx.preview(...))
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from strata.engine.errors import DiffUnavailableError, MissingContentError
from strata.shared.diff import compute_diff
from strata.shared.models.tool_activity import (
    ActivityState,
    FailureReason,
    FileListing,
    TextPreview,
    ToolActivity,
    ToolActivityInput,
    ToolActivityResult,
    ToolName,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TruncationLimits:
    """Caps applied before a result is stored."""
    preview_lines: int = 20
    stdout_chars: int = 2000
    stderr_chars: int = 500
    max_filenames: int = 15


DEFAULT_LIMITS = TruncationLimits()

_TOOL_NAME_ALIASES: dict[str, ToolName] = {
    "read": ToolName.READ,
    "read_file": ToolName.READ,
    "file_read": ToolName.READ,
    "write": ToolName.WRITE,
    "write_file": ToolName.WRITE,
    "file_write": ToolName.WRITE,
    "edit": ToolName.EDIT,
    "edit_file": ToolName.EDIT,
    "file_edit": ToolName.EDIT,
    "replace_string": ToolName.EDIT,
    "bash": ToolName.BASH,
    "run_bash": ToolName.BASH,
    "run_shell_command": ToolName.BASH,
    "glob": ToolName.GLOB,
    "list_directory": ToolName.GLOB,
    "grep": ToolName.GREP,
    "search_files": ToolName.GREP,
}


def normalize_tool_name(name: str | None) -> ToolName:
    """Strip MCP server prefixes and map provider aliases to a ToolName.

    Unrecognised names map to ``ToolName.OTHER``; new tools must never
    break ingestion.
    """
    if not name:
        return ToolName.OTHER
    bare = name
    if bare.startswith("mcp__") and bare.count("__") >= 2:
        bare = bare.split("__", 2)[2]
    return _TOOL_NAME_ALIASES.get(bare.lower(), ToolName.OTHER)


# ── Truncation ──


@dataclass(frozen=True)
class _Context:
    limits: TruncationLimits
    content: tuple[Any, Any] | None

    def preview(self, text: str) -> TextPreview:
        """Cap *text* at the line budget, then at the character budget.

        One trailing newline ends the last line rather than starting an empty
        one, so ``"a\\n"`` counts as 1 line here. The diff engine keeps that
        final empty line (``split_lines("a\\n") == ["a", ""]``) because it must
        rebuild the text exactly.
        """
        if not text:
            return TextPreview()
        if text.endswith("\n"):
            text = text[:-1]
        all_lines = text.split("\n")
        kept = all_lines[: self.limits.preview_lines]
        budget = self.limits.stdout_chars
        out: list[str] = []
        dropped = 0
        for line in kept:
            if budget <= 0:
                dropped += len(line)
                continue
            if len(line) > budget:
                out.append(line[:budget])
                dropped += len(line) - budget
                budget = 0
                continue
            out.append(line)
            budget -= len(line)
        # Lines that lost all their characters still count as stored so the
        # preview agrees with min(total, cap).
        out.extend("" for _ in range(len(kept) - len(out)))
        return TextPreview(
            lines=tuple(out),
            total_lines=len(all_lines),
            truncated_chars=dropped,
        )

    def clip(self, text: str, budget: int) -> str:
        if len(text) <= budget:
            return text
        return text[:budget] + f"… (+{len(text) - budget} chars)"

    def listing(self, names: list[str], total: int | None = None) -> FileListing:
        shown = tuple(names[: self.limits.max_filenames])
        reported = total if isinstance(total, int) and total >= len(names) else len(names)
        return FileListing(names=shown, total=reported)


# ── Parser Registry ──

ResultParser = Callable[[ToolActivityInput, Any, _Context], ToolActivityResult]
_PARSERS: dict[ToolName, ResultParser] = {}


def result_parser(name: ToolName):
    """Decorator to register a result parser for a tool."""

    def decorator(fn: ResultParser) -> ResultParser:
        _PARSERS[name] = fn
        return fn

    return decorator


def _payload_text(payload: Any) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, indent=2, default=str)
    except (TypeError, ValueError):
        return str(payload)


@result_parser(ToolName.BASH)
def _parse_bash(tool_input: ToolActivityInput, payload: Any, ctx: _Context) -> ToolActivityResult:
    if isinstance(payload, dict):
        stdout = payload.get("stdout")
        stderr = payload.get("stderr")
        return ToolActivityResult(
            stdout=ctx.preview(stdout) if isinstance(stdout, str) and stdout else None,
            stderr=ctx.clip(stderr, ctx.limits.stderr_chars) if isinstance(stderr, str) and stderr else None,
            interrupted=bool(payload.get("interrupted", False)),
        )
    text = _payload_text(payload)
    return ToolActivityResult(stdout=ctx.preview(text) if text else None)


@result_parser(ToolName.READ)
def _parse_read(tool_input: ToolActivityInput, payload: Any, ctx: _Context) -> ToolActivityResult:
    content: Any = None
    if isinstance(payload, dict):
        file_obj = payload.get("file")
        if isinstance(file_obj, dict):
            content = file_obj.get("content")
        else:
            content = payload.get("content")
    elif isinstance(payload, str):
        content = payload
    if not isinstance(content, str):
        return ToolActivityResult()
    return ToolActivityResult(file_content=ctx.preview(content))


@result_parser(ToolName.WRITE)
def _parse_write(tool_input: ToolActivityInput, payload: Any, ctx: _Context) -> ToolActivityResult:
    content = tool_input.content
    if content is None and isinstance(payload, dict):
        value = payload.get("content")
        content = value if isinstance(value, str) else None
    if content is None:
        return ToolActivityResult()
    return ToolActivityResult(file_content=ctx.preview(content))


def _parse_listing(tool_input: ToolActivityInput, payload: Any, ctx: _Context) -> ToolActivityResult:
    names: list[str] = []
    total: int | None = None
    if isinstance(payload, dict):
        raw_names = payload.get("filenames")
        if isinstance(raw_names, list):
            names = [str(n) for n in raw_names]
        total = payload.get("numFiles")
    elif isinstance(payload, list):
        names = [str(n) for n in payload]
    elif isinstance(payload, str):
        names = [line for line in payload.split("\n") if line.strip()]
    return ToolActivityResult(filenames=ctx.listing(names, total))


result_parser(ToolName.GLOB)(_parse_listing)
result_parser(ToolName.GREP)(_parse_listing)


@result_parser(ToolName.EDIT)
def _parse_edit(tool_input: ToolActivityInput, payload: Any, ctx: _Context) -> ToolActivityResult:
    if ctx.content is None or tool_input.file_path is None:
        raise MissingContentError(tool_input.file_path)
    before, after = ctx.content
    if before is None or after is None:
        raise MissingContentError(tool_input.file_path)
    return ToolActivityResult(diff_lines=compute_diff(before, after))


def _parse_default(tool_input: ToolActivityInput, payload: Any, ctx: _Context) -> ToolActivityResult:
    text = _payload_text(payload)
    return ToolActivityResult(stdout=ctx.preview(text) if text else None)


# ── Entry Points ──


def start_activity(
    tool_name: str,
    tool_input: dict[str, Any] | None,
    activity_id: str | None = None,
) -> ToolActivity:
    """Create the RUNNING record for a tool call the transport just started."""
    activity = ToolActivity(
        tool_name=normalize_tool_name(tool_name),
        raw_tool_name=tool_name or "",
        input=ToolActivityInput.from_dict(tool_input),
        state=ActivityState.RUNNING,
    )
    if activity_id:
        activity.id = activity_id
    return activity


def ingest(
    tool_name: str,
    tool_input: dict[str, Any] | None,
    raw_result: Any,
    *,
    content: tuple[Any, Any] | None = None,
    is_error: bool = False,
    limits: TruncationLimits | None = None,
    activity_id: str | None = None,
) -> ToolActivity:
    """Build a finished ToolActivity from a tool call and its result.

    *content* is the ``(before, after)`` pair for edit tools, supplied by
    the file-content provider. Never raises for per-activity problems: a
    missing or non-text edit is recorded as a FAILED activity instead.
    """
    ctx = _Context(limits=limits or DEFAULT_LIMITS, content=content)
    activity = start_activity(tool_name, tool_input, activity_id)
    parsed_input = activity.input

    if is_error and not (activity.tool_name is ToolName.BASH and isinstance(raw_result, dict)):
        activity.result = ToolActivityResult(
            error=ctx.clip(_payload_text(raw_result) or "Tool failed", ctx.limits.stderr_chars),
        )
        activity.state = ActivityState.FAILED
        activity.failure = FailureReason.TOOL_ERROR
        return activity

    parser = _PARSERS.get(activity.tool_name, _parse_default)
    try:
        activity.result = parser(parsed_input, raw_result, ctx)
        activity.state = ActivityState.FAILED if is_error else ActivityState.COMPLETED
        activity.failure = FailureReason.TOOL_ERROR if is_error else None
    except MissingContentError as exc:
        logger.info("Edit %s stored without diff: %s", activity.id, exc)
        activity.result = ToolActivityResult()
        activity.state = ActivityState.FAILED
        activity.failure = FailureReason.MISSING_CONTENT
    except DiffUnavailableError as exc:
        logger.info("Edit %s stored without diff: %s", activity.id, exc)
        activity.result = ToolActivityResult()
        activity.state = ActivityState.FAILED
        activity.failure = FailureReason.DIFF_UNAVAILABLE
    return activity
