"""
API routes for running benchmark tests.

- POST /all          full matrix, buffered JSON result
- POST /all-stream   full matrix, server-sent progress events
- POST /repeat       repeated matrix, server-sent progress events
- POST /{database}   one backend/operation cell
"""

from typing import AsyncGenerator, AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from backend.api.error_handling import http_exception
from backend.core.orchestrator import TestOrchestrator
from backend.core.progress_stream import to_sse
from backend.core.sequential_runner import SequentialRunner
from backend.models import AllTestsResult, DatabaseType, OperationType, TestResult
from backend.models.progress import StreamEvent

router = APIRouter()

INVALID_OPERATION_MESSAGE = "Invalid operation. Must be: read, write, or update"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class SingleTestRequest(BaseModel):
    """Body of POST /api/test/{database}."""

    operation: str


def get_orchestrator(request: Request) -> TestOrchestrator:
    return request.app.state.orchestrator


def get_runner(request: Request) -> SequentialRunner:
    return request.app.state.runner


async def _sse(events: AsyncGenerator[StreamEvent, None]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield to_sse(event)
    finally:
        await events.aclose()


def _event_stream(events: AsyncGenerator[StreamEvent, None]) -> StreamingResponse:
    return StreamingResponse(
        _sse(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/all", response_model=AllTestsResult)
async def run_all_tests(runner: SequentialRunner = Depends(get_runner)):
    """
    Run every backend/operation cell in order.

    Returns:
        All nine results plus a summary
    """
    try:
        return await runner.run_all()
    except Exception as e:
        raise http_exception("run all tests", e)


@router.post("/all-stream")
async def run_all_tests_stream(runner: SequentialRunner = Depends(get_runner)):
    """Run the matrix, streaming progress as server-sent events."""
    return _event_stream(runner.stream_matrix())


@router.post("/repeat")
async def run_repeated_tests(runner: SequentialRunner = Depends(get_runner)):
    """Run every cell repeatedly, streaming progress and per-cell aggregates."""
    return _event_stream(runner.stream_repeated())


@router.post("/{database}", response_model=TestResult)
async def run_single_test(
    database: str,
    body: SingleTestRequest,
    orchestrator: TestOrchestrator = Depends(get_orchestrator),
):
    """
    Run one operation against one backend.

    Raises:
        HTTPException 400: unknown operation
        HTTPException 404: unknown database
    """
    try:
        operation = OperationType(body.operation.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_OPERATION_MESSAGE,
        )

    try:
        db = DatabaseType(database.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown database: {database}",
        )

    try:
        return await orchestrator.run(db, operation)
    except Exception as e:
        raise http_exception(f"{db.value} {operation.value} test", e)
