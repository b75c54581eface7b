"""
Unit tests for utils.streams module.

Tests:
- Events are delivered in order and iteration ends with the producer
- Producer errors reach the consumer after earlier events
- Backpressure through the bounded queue
- Closing cancels the producer
"""

import asyncio

import pytest

from muat.core.exceptions import ConnectionFailedError
from muat.models import UnknownEvent
from muat.utils import RepoEventStream


def _events(n):
    return [UnknownEvent(f"e{i}") for i in range(n)]


class TestRepoEventStream:
    """Producer/consumer behavior."""

    async def test_delivers_in_order(self):
        async def producer(send):
            for event in _events(3):
                await send(event)

        stream = RepoEventStream(producer, source="test")
        assert [e async for e in stream] == _events(3)
        # Exhausted streams stay exhausted
        assert [e async for e in stream] == []

    async def test_error_after_events(self):
        async def producer(send):
            await send(UnknownEvent("first"))
            raise ConnectionFailedError("dropped")

        stream = RepoEventStream(producer)
        assert await stream.__anext__() == UnknownEvent("first")
        with pytest.raises(ConnectionFailedError):
            await stream.__anext__()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    async def test_backpressure(self):
        produced: list[int] = []

        async def producer(send):
            for i, event in enumerate(_events(10)):
                await send(event)
                produced.append(i)

        stream = RepoEventStream(producer, maxsize=2)
        await asyncio.sleep(0.01)
        assert len(produced) == 2
        await stream.aclose()

    async def test_aclose_cancels_producer(self):
        cancelled = asyncio.Event()

        async def producer(send):
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async with RepoEventStream(producer) as stream:
            await asyncio.sleep(0)
        assert cancelled.is_set()
        assert stream.closed
        await stream.aclose()

    async def test_iteration_after_close_stops(self):
        async def producer(send):
            await asyncio.sleep(3600)

        stream = RepoEventStream(producer)
        await stream.aclose()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
