"""Async event bus bridging transport threads to the coordination loop.

Transports run on their own threads and hand raw messages over with
post(), which is thread-safe and never blocks the caller. The
coordinator consumes them, in arrival order, on its event loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from concurrent.futures import Future
from typing import Any

logger = logging.getLogger(__name__)


class EventBus:
    """Bounded async queue; FIFO, so per-session order is preserved."""

    def __init__(self, maxsize: int = 5000, put_timeout: float = 30.0) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._put_timeout = put_timeout
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the coordination loop that post() hands events to."""
        self._loop = loop

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def emit(self, data: Any) -> None:
        """Enqueue a raw transport message from inside the loop."""
        if self._closed:
            return
        try:
            # Use await put() with timeout to add backpressure instead of dropping
            await asyncio.wait_for(self._queue.put(data), timeout=self._put_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "EventBus queue blocked for %.0fs, dropping event (queue size: %d)",
                self._put_timeout,
                self._queue.qsize(),
            )

    def post(self, data: Any) -> Future | None:
        """Thread-safe hand-off from a transport thread. Returns immediately."""
        if self._closed:
            return None
        if self._loop is None or self._loop.is_closed():
            logger.error("EventBus.post called before bind(); event dropped")
            return None
        return asyncio.run_coroutine_threadsafe(self.emit(data), self._loop)

    async def consume(self) -> AsyncIterator[Any]:
        """Yield messages as they arrive. Stops on close()."""
        while not self._closed:
            try:
                data = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            yield data

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True
