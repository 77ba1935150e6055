"""Per-session FIFO queue of pending permission requests.

Only the head of the queue is visible to the UI; everything behind it
waits in arrival order. Resolving the head invokes the callback bound to
that request and promotes the next one immediately.

The queue never decides on its own: auto-deny policy lives in Session.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable

from strata.engine.errors import NoActiveRequestError
from strata.shared.models.permission import PermissionDecision, PermissionRequest

logger = logging.getLogger(__name__)

ResolveCallback = Callable[[PermissionRequest, PermissionDecision], None]


class PermissionQueue:
    """FIFO of (request, callback) pairs with single-head visibility."""

    def __init__(self, owner_id: str | None = None) -> None:
        self._owner_id = owner_id
        self._entries: deque[tuple[PermissionRequest, ResolveCallback | None]] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def enqueue(
        self,
        request: PermissionRequest,
        on_resolve: ResolveCallback | None = None,
    ) -> None:
        """Append a request; it becomes current at once if the queue was empty."""
        self._entries.append((request, on_resolve))
        logger.debug(
            "Queued permission %s (%s) position=%d owner=%s",
            request.id, request.tool_name, len(self._entries), self._owner_id,
        )

    def current(self) -> PermissionRequest | None:
        if not self._entries:
            return None
        return self._entries[0][0]

    def queued_count(self) -> int:
        """Number of requests waiting behind the current one."""
        return max(len(self._entries) - 1, 0)

    def pending(self) -> tuple[PermissionRequest, ...]:
        return tuple(request for request, _ in self._entries)

    def resolve(self, decision: PermissionDecision) -> PermissionRequest:
        """Resolve the current request and promote the next.

        Raises NoActiveRequestError (queue untouched) when empty.
        """
        if not self._entries:
            raise NoActiveRequestError(self._owner_id)
        request, callback = self._entries.popleft()
        logger.info(
            "Permission %s (%s) resolved: %s, %d remaining",
            request.id, request.tool_name, decision.value, len(self._entries),
        )
        if callback is not None:
            try:
                callback(request, decision)
            except Exception:
                logger.exception(
                    "Permission callback failed for request %s", request.id
                )
        return request

    def drain(self, decision: PermissionDecision) -> list[PermissionRequest]:
        """Resolve every queued request with the same decision, in order."""
        resolved: list[PermissionRequest] = []
        while self._entries:
            resolved.append(self.resolve(decision))
        return resolved
