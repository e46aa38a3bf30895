"""Bounded, ordered, fire-and-forget message channel.

A channel is owned by the event loop that receives from it. Producers may live
on any thread: `send()` never blocks and never raises. When the buffer is full
the oldest message is dropped, since every transcript envelope is a full
snapshot that supersedes the ones before it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_CLOSED = object()


class Channel(Generic[T]):
    def __init__(
        self,
        name: str,
        *,
        maxsize: int = 256,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.name = str(name)
        self._maxsize = max(1, int(maxsize))
        self._loop = loop or asyncio.get_running_loop()
        # One extra slot so close() always fits behind a full buffer.
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=self._maxsize + 1)
        self._closed = False
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        return self._dropped

    def send(self, message: T) -> bool:
        """Queue a message for the receiver; thread-safe and non-blocking.

        Returns False when the channel is closed or its loop is gone.
        """
        if self._closed:
            return False
        try:
            self._loop.call_soon_threadsafe(self._put, message)
        except RuntimeError:
            # Receiving loop already shut down.
            return False
        return True

    def _put(self, message: object) -> None:
        if self._closed:
            return
        if self._queue.qsize() >= self._maxsize:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self._dropped += 1
                logger.warning(
                    "channel full, dropped oldest message (channel=%s, dropped=%d)",
                    self.name,
                    self._dropped,
                )
        self._queue.put_nowait(message)

    async def receive(self) -> T | None:
        """Wait for the next message; None once the channel is closed."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """Stop accepting messages; the receiver drains what is queued first."""
        if self._closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._close)
        except RuntimeError:
            self._closed = True

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            item = await self.receive()
            if item is None:
                return
            yield item
