"""
Bounded async event stream fed by a background producer task.

Both firehose implementations (file tailer and WebSocket subscription)
run as an independent ``asyncio.Task`` that pushes events into a bounded
``asyncio.Queue``. A slow consumer makes the producer wait on ``put()``
once the queue is full, which is the only backpressure mechanism.

An error raised by the producer is queued behind the events already
produced, re-raised to the consumer in order, and ends the stream.
Closing the stream (``aclose()`` or leaving ``async with``) cancels the
producer.

Examples:
    ```python
    async with await session.firehose() as stream:
        async for event in stream:
            print(event)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Final, Self

from muat.core.metrics import FIREHOSE_EVENTS
from muat.models.events import RepoEvent


DEFAULT_CHANNEL_SIZE: Final[int] = 100

EventSink = Callable[[RepoEvent], Awaitable[None]]
Producer = Callable[[EventSink], Awaitable[None]]


class _End:
    """Queue marker: the producer finished."""


class RepoEventStream:
    """Async iterator over [RepoEvent][muat.models.events.RepoEvent] values.

    Args:
        producer: Coroutine function receiving a ``send(event)`` callback.
            It runs until it returns, raises, or is cancelled.
        maxsize: Queue bound (events buffered before the producer waits).
        source: Label used for the ``muat_firehose_events`` metric.

    Note:
        Must be created while an event loop is running: the producer task
        is started immediately.
    """

    def __init__(
        self,
        producer: Producer,
        *,
        maxsize: int = DEFAULT_CHANNEL_SIZE,
        source: str = "unknown",
    ) -> None:
        self._queue: asyncio.Queue[RepoEvent | BaseException | _End] = asyncio.Queue(maxsize)
        self._source = source
        self._finished = False
        self._task = asyncio.create_task(self._run(producer), name=f"muat-firehose-{source}")

    async def _send(self, event: RepoEvent) -> None:
        await self._queue.put(event)

    async def _run(self, producer: Producer) -> None:
        try:
            await producer(self._send)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Delivered to the consumer, which re-raises it
            await self._queue.put(e)
        await self._queue.put(_End())

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> RepoEvent:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _End):
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._finished = True
            raise item
        FIREHOSE_EVENTS.labels(backend=self._source).inc()
        return item

    @property
    def closed(self) -> bool:
        return self._finished and self._task.done()

    async def aclose(self) -> None:
        """Stop the producer and end iteration. Idempotent."""
        self._finished = True
        if not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
