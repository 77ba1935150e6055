"""Line-level diff between the before/after text of an edit.

Produces tagged lines (context / added / removed) with old and new line
numbers. Built on ``difflib.SequenceMatcher`` over whole lines; the
matcher is deterministic for identical inputs.

Lines are split on ``"\\n"`` only. The empty string has no lines and a
trailing newline yields a final empty line, so joining the context+added
texts with ``"\\n"`` reproduces *after* exactly (and context+removed
reproduces *before*).
"""
from __future__ import annotations

import difflib
from dataclasses import dataclass
from enum import Enum

from strata.engine.errors import DiffUnavailableError


class DiffLineKind(str, Enum):
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class DiffLine:
    kind: DiffLineKind
    text: str
    old_line_number: int | None = None
    new_line_number: int | None = None


def split_lines(text: str) -> list[str]:
    """Split *text* into lines the way the diff engine counts them.

    Unlike tool-output previews, a trailing newline yields a final empty
    line; joining the result with ``"\\n"`` gives back *text*.
    """
    if not text:
        return []
    return text.split("\n")


def _as_text(value: str | bytes, label: str) -> str:
    if isinstance(value, (bytes, bytearray)):
        try:
            value = bytes(value).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DiffUnavailableError(
                f"{label} content is not valid UTF-8 (byte {exc.start})"
            ) from exc
    if not isinstance(value, str):
        raise DiffUnavailableError(
            f"{label} content has unsupported type {type(value).__name__}"
        )
    if "\x00" in value:
        raise DiffUnavailableError(f"{label} content looks binary (NUL byte)")
    return value


def compute_diff(before: str | bytes, after: str | bytes) -> list[DiffLine]:
    """Compute an ordered line diff from *before* to *after*.

    Raises DiffUnavailableError for binary or non-UTF-8 input.
    """
    old_lines = split_lines(_as_text(before, "before"))
    new_lines = split_lines(_as_text(after, "after"))

    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    out: list[DiffLine] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                out.append(DiffLine(
                    kind=DiffLineKind.CONTEXT,
                    text=old_lines[i1 + offset],
                    old_line_number=i1 + offset + 1,
                    new_line_number=j1 + offset + 1,
                ))
            continue
        # "replace" emits the whole removed block before the added block.
        if tag in ("replace", "delete"):
            for i in range(i1, i2):
                out.append(DiffLine(
                    kind=DiffLineKind.REMOVED,
                    text=old_lines[i],
                    old_line_number=i + 1,
                ))
        if tag in ("replace", "insert"):
            for j in range(j1, j2):
                out.append(DiffLine(
                    kind=DiffLineKind.ADDED,
                    text=new_lines[j],
                    new_line_number=j + 1,
                ))
    return out


def diff_stats(lines: list[DiffLine]) -> tuple[int, int]:
    """Return ``(added, removed)`` counts for a diff."""
    added = sum(1 for line in lines if line.kind is DiffLineKind.ADDED)
    removed = sum(1 for line in lines if line.kind is DiffLineKind.REMOVED)
    return added, removed
