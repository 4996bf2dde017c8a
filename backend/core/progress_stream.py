"""
Progress Stream

Ordered, bounded channel between the single producer task that drives a
benchmark run and the one consumer that forwards events to a client.

Events are never dropped: when the consumer falls behind, the producer waits
on the full queue. The stream ends with either a CompleteEvent or an
ErrorEvent.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional

from backend.config import settings
from backend.models.progress import ErrorEvent, StreamEvent

logger = logging.getLogger(__name__)

_END = object()


class ProgressStream:
    """Single-producer / single-consumer ordered event channel."""

    def __init__(self, maxsize: Optional[int] = None):
        self._queue: asyncio.Queue[Any] = asyncio.Queue(
            maxsize=maxsize if maxsize is not None else settings.PROGRESS_QUEUE_SIZE
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: StreamEvent) -> None:
        """Enqueue an event, waiting for room if the consumer is behind."""
        if self._closed:
            raise RuntimeError("progress stream is closed")
        await self._queue.put(event)

    async def close(self) -> None:
        """Mark the end of the stream; idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_END)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            if event is _END:
                return
            yield event


def encode_event(event: StreamEvent) -> dict[str, Any]:
    """JSON-ready dict for an event (camelCase, None fields omitted)."""
    return event.model_dump(mode="json", by_alias=True, exclude_none=True)


def to_sse(event: StreamEvent) -> str:
    """Server-sent-events frame: `data: <json>` followed by a blank line."""
    return f"data: {json.dumps(encode_event(event))}\n\n"


Producer = Callable[[ProgressStream], Awaitable[None]]


async def stream_run(
    producer: Producer, *, maxsize: Optional[int] = None
) -> AsyncGenerator[StreamEvent, None]:
    """
    Run `producer` as a background task and yield its events in order.

    A failure escaping the producer becomes a terminal ErrorEvent. If the
    consumer stops iterating early, the producer task is cancelled.
    """
    stream = ProgressStream(maxsize)

    async def _produce() -> None:
        try:
            await producer(stream)
        except Exception as e:
            logger.error("Benchmark run aborted: %s", e, exc_info=True)
            await stream.emit(ErrorEvent(error=str(e) or e.__class__.__name__))
        # Not reached on cancellation: nobody is left to read the end marker.
        await stream.close()

    task = asyncio.create_task(_produce())
    try:
        async for event in stream:
            yield event
        await task
    finally:
        if not task.done():
            logger.info("Progress consumer went away; cancelling benchmark run")
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
