"""Tests for the bounded event channel."""

import asyncio

import pytest

from reposcope.core.models import ContentEvent, DoneEvent
from reposcope.orchestrator.channel import ChannelClosedError, EventChannel


class TestEventChannel:
    async def test_delivers_in_order_until_finish(self):
        channel = EventChannel()
        await channel.send(ContentEvent(delta="a"))
        await channel.send(DoneEvent())
        await channel.finish()

        events = [e async for e in channel]
        assert [e.type for e in events] == ["content", "done"]
        assert channel.closed

    async def test_send_after_close(self):
        channel = EventChannel()
        channel.close()
        with pytest.raises(ChannelClosedError):
            await channel.send(ContentEvent(delta="late"))

    async def test_close_is_idempotent(self):
        channel = EventChannel()
        channel.close()
        channel.close()
        assert channel.closed

    async def test_backpressure(self):
        channel = EventChannel(maxsize=1)
        await channel.send(ContentEvent(delta="1"))
        blocked = asyncio.create_task(channel.send(ContentEvent(delta="2")))
        await asyncio.sleep(0)
        assert not blocked.done()

        iterator = channel.__aiter__()
        first = await iterator.__anext__()
        await asyncio.wait_for(blocked, timeout=1)
        assert first.delta == "1"
        await iterator.aclose()

    async def test_close_cancels_producer(self):
        channel = EventChannel()

        async def producer():
            await asyncio.sleep(3600)

        task = asyncio.create_task(producer())
        channel.attach_producer(task)
        channel.close()

        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_breaking_out_of_iteration_closes(self):
        channel = EventChannel()
        await channel.send(ContentEvent(delta="a"))
        await channel.send(ContentEvent(delta="b"))

        iterator = channel.__aiter__()
        await iterator.__anext__()
        await iterator.aclose()

        assert channel.closed
        with pytest.raises(ChannelClosedError):
            await channel.send(ContentEvent(delta="c"))
