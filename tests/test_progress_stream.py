"""
Unit tests for the progress stream and its SSE encoding.
"""

from __future__ import annotations

import asyncio
import json

import pytest

from backend.core.progress_stream import ProgressStream, encode_event, stream_run, to_sse
from backend.models import (
    CompleteEvent,
    ErrorEvent,
    OperationType,
    ProgressEvent,
    ProgressStatus,
)


def _event(progress: int) -> ProgressEvent:
    return ProgressEvent(
        current_database="Cassandra",
        current_operation=OperationType.WRITE,
        status=ProgressStatus.RUNNING,
        progress=progress,
        message=f"step {progress}",
    )


@pytest.mark.asyncio
async def test_bounded_stream_preserves_order() -> None:
    stream = ProgressStream(maxsize=1)

    async def produce() -> None:
        for i in range(20):
            await stream.emit(_event(i))
        await stream.close()

    producer = asyncio.create_task(produce())
    received = [event.progress async for event in stream]
    await producer

    assert received == list(range(20))


@pytest.mark.asyncio
async def test_emit_after_close_raises() -> None:
    stream = ProgressStream(maxsize=4)
    await stream.close()
    await stream.close()

    assert stream.closed
    with pytest.raises(RuntimeError):
        await stream.emit(_event(0))


@pytest.mark.asyncio
async def test_stream_run_forwards_events() -> None:
    async def producer(stream: ProgressStream) -> None:
        await stream.emit(_event(50))
        await stream.emit(CompleteEvent(results=[]))

    events = [event async for event in stream_run(producer, maxsize=2)]

    assert isinstance(events[0], ProgressEvent)
    assert isinstance(events[-1], CompleteEvent)


@pytest.mark.asyncio
async def test_stream_run_turns_failure_into_error_event() -> None:
    async def producer(stream: ProgressStream) -> None:
        await stream.emit(_event(10))
        raise RuntimeError("runner exploded")

    events = [event async for event in stream_run(producer, maxsize=2)]

    assert len(events) == 2
    assert events[-1] == ErrorEvent(error="runner exploded")


@pytest.mark.asyncio
async def test_consumer_leaving_cancels_producer() -> None:
    cancelled = asyncio.Event()

    async def producer(stream: ProgressStream) -> None:
        try:
            i = 0
            while True:
                await stream.emit(_event(i % 100))
                i += 1
        except asyncio.CancelledError:
            cancelled.set()
            raise

    events = stream_run(producer, maxsize=1)
    async for event in events:
        if event.progress == 3:
            break
    await events.aclose()

    assert cancelled.is_set()


def test_sse_frame() -> None:
    frame = to_sse(_event(7))

    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    payload = json.loads(frame[len("data: ") : -2])
    assert payload == {
        "currentDatabase": "Cassandra",
        "currentOperation": "write",
        "status": "running",
        "progress": 7,
        "message": "step 7",
    }


def test_encode_complete_event() -> None:
    assert encode_event(CompleteEvent(results=[])) == {"type": "complete", "results": []}
