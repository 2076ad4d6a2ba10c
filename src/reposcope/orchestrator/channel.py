"""
Bounded event channel between a turn's producer and its consumer.

The orchestrator pushes turn events; the transport drains them with
``async for``. Closing the channel from the consumer side ends the
stream and cancels the producer task at its next suspension point.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from reposcope.core.models import TurnEvent

_CLOSED = object()


class ChannelClosedError(Exception):
    """Raised when sending on a closed channel."""


class EventChannel:
    def __init__(self, maxsize: int = 64):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._producer: asyncio.Task | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def attach_producer(self, task: asyncio.Task) -> None:
        self._producer = task

    async def send(self, event: TurnEvent) -> None:
        """Enqueue an event, waiting while the channel is full."""
        if self._closed:
            raise ChannelClosedError("event channel is closed")
        await self._queue.put(event)

    async def finish(self) -> None:
        """Producer side: no more events will follow."""
        if not self._closed:
            await self._queue.put(_CLOSED)

    def close(self) -> None:
        """Consumer side: stop the stream and cancel the producer."""
        if self._closed:
            return
        self._closed = True
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()

    async def __aiter__(self) -> AsyncIterator[TurnEvent]:
        try:
            while not self._closed:
                item = await self._queue.get()
                if item is _CLOSED:
                    break
                yield item
        finally:
            self.close()
