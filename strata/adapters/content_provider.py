"""Pre/post file content for Edit activities.

The core never reads files itself. A provider hands back the
``(before, after)`` pair for an edit, or None when it cannot.
"""
from __future__ import annotations

from typing import Any, Protocol


class FileContentProvider(Protocol):
    def get_content(
        self, file_path: str, payload: Any
    ) -> tuple[str | bytes, str | bytes] | None: ...


def _pick(payload: dict, *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


class PayloadContentProvider:
    """Read the edit's content from the tool result payload.

    Understands ``before``/``after`` pairs, a full ``originalFile`` with the
    ``oldString``/``newString`` replacement applied, and bare
    ``oldString``/``newString`` fragments.
    """

    def get_content(
        self, file_path: str, payload: Any
    ) -> tuple[str | bytes, str | bytes] | None:
        if not isinstance(payload, dict):
            return None
        before = _pick(payload, "before", "pre_tool_content")
        after = _pick(payload, "after", "post_tool_content")
        if before is not None and after is not None:
            return before, after

        old = _pick(payload, "oldString", "old_string")
        new = _pick(payload, "newString", "new_string")
        original = payload.get("originalFile")
        if isinstance(original, str) and isinstance(old, str) and isinstance(new, str):
            if payload.get("replaceAll"):
                return original, original.replace(old, new)
            return original, original.replace(old, new, 1)
        if isinstance(old, str) and isinstance(new, str) and (old or new):
            return old, new
        return None
