"""Exception hierarchy for the coordination core.

Every per-event failure has its own class so callers can decide whether
to drop, record, or surface it. None of these are process-fatal.
"""
from __future__ import annotations


class StrataError(Exception):
    """Base exception for all coordination errors."""


class MalformedEventError(StrataError):
    """A transport payload could not be parsed into an event."""
    def __init__(self, reason: str, payload: object = None):
        self.reason = reason
        self.payload = payload
        super().__init__(f"Malformed transport event: {reason}")


class MissingContentError(StrataError):
    """Pre/post file content for an edit was not available."""
    def __init__(self, file_path: str | None):
        self.file_path = file_path
        super().__init__(
            f"No before/after content available for {file_path or '<unknown path>'}"
        )


class DiffUnavailableError(StrataError):
    """Content is binary or not valid UTF-8 text."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Diff unavailable: {reason}")


class NoActiveRequestError(StrataError):
    """resolve() was called on an empty permission queue."""
    def __init__(self, session_id: str | None = None):
        self.session_id = session_id
        where = f" for session {session_id}" if session_id else ""
        super().__init__(f"No active permission request{where}")


class UnknownSessionError(StrataError):
    """An event referenced a session that is not in the registry."""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Unknown session: {session_id}")
