"""
Sequential Runner

Walks the benchmark matrix (backends x operations) strictly in order, one cell
at a time, in three modes:
- buffered: run every cell, return an AllTestsResult
- streamed: same walk, emitting ProgressEvents per cell, then a CompleteEvent
- repeated: run every cell `repeat_count` times and aggregate the timings

Cell failures are recorded and the walk continues; only a failure of the
runner itself ends a stream early (as an ErrorEvent).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, Sequence

from backend.config import settings
from backend.core.orchestrator import TestOrchestrator
from backend.core.progress_stream import ProgressStream, stream_run
from backend.core.statistics import aggregate_repeat_result
from backend.models.progress import CompleteEvent, ProgressEvent, ProgressStatus, StreamEvent
from backend.models.test_config import (
    DATABASE_ORDER,
    OPERATION_ORDER,
    DatabaseType,
    OperationType,
)
from backend.models.test_result import (
    AllTestsResult,
    RepeatTestResult,
    TestResult,
    TestSummary,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

# Every status must have a message in both tables (see tests).
STATUS_MESSAGES: dict[ProgressStatus, str] = {
    ProgressStatus.STARTING: "Starting {operation} test for {database}...",
    ProgressStatus.RUNNING: "Running {operation} of {record_count:,} records on {database}...",
    ProgressStatus.VERIFYING: "Verifying {operation} results for {database}...",
    ProgressStatus.COMPLETED: "{database} {operation} completed in {time_taken:,.0f}ms",
    ProgressStatus.ERROR: "{database} {operation} failed: {error}",
}

REPEAT_STATUS_MESSAGES: dict[ProgressStatus, str] = {
    ProgressStatus.STARTING: "Running {operation} test {total} times on {database}...",
    ProgressStatus.RUNNING: "{database} {operation} run {iteration}/{total}...",
    ProgressStatus.VERIFYING: "Aggregating {total} {operation} runs for {database}...",
    ProgressStatus.COMPLETED: "{database} {operation} completed. Average: {average:,.0f}ms",
    ProgressStatus.ERROR: "{database} {operation} failed: {error}",
}


def describe(
    status: ProgressStatus,
    database: DatabaseType,
    operation: OperationType,
    *,
    repeated: bool = False,
    **context: Any,
) -> str:
    """Human-readable message for a status transition."""
    template = (REPEAT_STATUS_MESSAGES if repeated else STATUS_MESSAGES)[status]
    return template.format(database=database.label, operation=operation.value, **context)


def percent(completed: int, total: int) -> int:
    """round(100 * completed / total), halves rounded up, clamped to [0, 100]."""
    if total <= 0:
        return 100
    value = (200 * completed + total) // (2 * total)
    return max(0, min(100, value))


class SequentialRunner:
    """Runs the matrix through a TestOrchestrator, one cell at a time."""

    def __init__(
        self,
        orchestrator: TestOrchestrator,
        *,
        databases: Sequence[DatabaseType] = DATABASE_ORDER,
        operations: Sequence[OperationType] = OPERATION_ORDER,
        repeat_count: Optional[int] = None,
        cell_pause: Optional[float] = None,
        buffered_pause: Optional[float] = None,
        iteration_pause: Optional[float] = None,
        queue_size: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.orchestrator = orchestrator
        self.databases = tuple(databases)
        self.operations = tuple(operations)
        self.repeat_count = repeat_count if repeat_count is not None else settings.REPEAT_COUNT
        if self.repeat_count < 1:
            raise ValueError(f"repeat_count must be >= 1, got {self.repeat_count}")
        self.cell_pause = (
            settings.STREAM_CELL_PAUSE_SECONDS if cell_pause is None else cell_pause
        )
        self.buffered_pause = (
            settings.BUFFERED_CELL_PAUSE_SECONDS if buffered_pause is None else buffered_pause
        )
        self.iteration_pause = (
            settings.REPEAT_ITERATION_PAUSE_SECONDS if iteration_pause is None else iteration_pause
        )
        self.queue_size = queue_size
        self._sleep = sleep

    def cells(self) -> list[tuple[DatabaseType, OperationType]]:
        """Matrix cells in execution order (backend-major)."""
        return [(db, op) for db in self.databases for op in self.operations]

    # ------------------------------------------------------------------
    # Buffered / streamed matrix
    # ------------------------------------------------------------------

    async def run_all(self) -> AllTestsResult:
        """Run the full matrix and return every result with a summary."""
        results = await self.run_matrix(pause=self.buffered_pause)
        return AllTestsResult(results=results, summary=TestSummary.from_results(results))

    async def run_matrix(
        self,
        stream: Optional[ProgressStream] = None,
        *,
        pause: Optional[float] = None,
    ) -> list[TestResult]:
        """
        Run each cell once, in order.

        Per cell the stream sees starting -> running -> verifying -> completed.
        A cell that raised ends in error right after running; a cell whose
        result carries an error ends in error after verifying.
        """
        pause = self.cell_pause if pause is None else pause
        cells = self.cells()
        total = len(cells)
        results: list[TestResult] = []

        for index, (database, operation) in enumerate(cells):
            progress = percent(index, total)
            await self._emit(stream, ProgressStatus.STARTING, database, operation, progress)
            try:
                record_count = self.orchestrator.planned_record_count(operation)
                await self._emit(
                    stream,
                    ProgressStatus.RUNNING,
                    database,
                    operation,
                    progress,
                    record_count=record_count,
                )
                result = await self.orchestrator.run(database, operation)
                await self._emit(stream, ProgressStatus.VERIFYING, database, operation, progress)
            except Exception as e:
                error = str(e) or e.__class__.__name__
                logger.error(f"{database.label} {operation.value} test failed: {error}")
                results.append(
                    TestResult(
                        database=database.label,
                        operation=operation,
                        time_taken=0,
                        record_count=0,
                        data_integrity=False,
                        error=error,
                    )
                )
                await self._emit(
                    stream,
                    ProgressStatus.ERROR,
                    database,
                    operation,
                    percent(index + 1, total),
                    error=error,
                )
            else:
                results.append(result)
                logger.info(
                    f"{database.label} {operation.value}: {result.time_taken:.2f}ms, "
                    f"{result.record_count} records, integrity={result.data_integrity}"
                )
                if result.error is not None:
                    await self._emit(
                        stream,
                        ProgressStatus.ERROR,
                        database,
                        operation,
                        percent(index + 1, total),
                        error=result.error,
                    )
                else:
                    await self._emit(
                        stream,
                        ProgressStatus.COMPLETED,
                        database,
                        operation,
                        percent(index + 1, total),
                        time_taken=result.time_taken,
                    )

            if index < total - 1:
                await self._pause(pause)

        return results

    # ------------------------------------------------------------------
    # Repeated matrix
    # ------------------------------------------------------------------

    async def run_repeated(self, stream: Optional[ProgressStream] = None) -> list[RepeatTestResult]:
        """
        Run each cell `repeat_count` times and aggregate per cell.

        A failed iteration (raised, or returned with an error) is recorded as
        a time of 0 and excluded from the aggregate.
        """
        cells = self.cells()
        total_runs = len(cells) * self.repeat_count
        runs_done = 0
        results: list[RepeatTestResult] = []

        for index, (database, operation) in enumerate(cells):
            await self._emit(
                stream,
                ProgressStatus.STARTING,
                database,
                operation,
                percent(runs_done, total_runs),
                repeated=True,
                total=self.repeat_count,
            )

            times: list[float] = []
            for iteration in range(1, self.repeat_count + 1):
                await self._emit(
                    stream,
                    ProgressStatus.RUNNING,
                    database,
                    operation,
                    percent(runs_done, total_runs),
                    repeated=True,
                    iteration=iteration,
                    total=self.repeat_count,
                )
                times.append(await self._timed_iteration(database, operation, iteration))
                runs_done += 1
                if iteration < self.repeat_count:
                    await self._pause(self.iteration_pause)

            progress = percent(runs_done, total_runs)
            await self._emit(
                stream,
                ProgressStatus.VERIFYING,
                database,
                operation,
                progress,
                repeated=True,
                total=self.repeat_count,
            )
            aggregate = aggregate_repeat_result(database.label, operation, times)
            results.append(aggregate)
            logger.info(
                f"{database.label} {operation.value} x{self.repeat_count}: "
                f"avg={aggregate.average:.2f}ms min={aggregate.min:.2f}ms "
                f"max={aggregate.max:.2f}ms"
            )
            await self._emit(
                stream,
                ProgressStatus.COMPLETED,
                database,
                operation,
                progress,
                repeated=True,
                total=self.repeat_count,
                average=aggregate.average,
                result=aggregate,
            )

            if index < len(cells) - 1:
                await self._pause(self.cell_pause)

        return results

    async def _timed_iteration(
        self, database: DatabaseType, operation: OperationType, iteration: int
    ) -> float:
        try:
            result = await self.orchestrator.run(database, operation)
        except Exception as e:
            logger.warning(
                f"{database.label} {operation.value} run {iteration} failed: {e}"
            )
            return 0.0
        if result.error is not None:
            logger.warning(
                f"{database.label} {operation.value} run {iteration} failed: {result.error}"
            )
            return 0.0
        return result.time_taken

    # ------------------------------------------------------------------
    # Streaming entry points
    # ------------------------------------------------------------------

    def stream_matrix(self) -> AsyncGenerator[StreamEvent, None]:
        """Streamed matrix: ProgressEvents, then one CompleteEvent."""

        async def produce(stream: ProgressStream) -> None:
            results = await self.run_matrix(stream, pause=self.cell_pause)
            await stream.emit(CompleteEvent(results=results))

        return stream_run(produce, maxsize=self.queue_size)

    def stream_repeated(self) -> AsyncGenerator[StreamEvent, None]:
        """Repeated matrix: ProgressEvents, then one CompleteEvent of aggregates."""

        async def produce(stream: ProgressStream) -> None:
            results = await self.run_repeated(stream)
            await stream.emit(CompleteEvent(results=results))

        return stream_run(produce, maxsize=self.queue_size)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _emit(
        self,
        stream: Optional[ProgressStream],
        status: ProgressStatus,
        database: DatabaseType,
        operation: OperationType,
        progress: int,
        *,
        repeated: bool = False,
        record_count: Optional[int] = None,
        iteration: Optional[int] = None,
        total: Optional[int] = None,
        result: Optional[RepeatTestResult] = None,
        **context: Any,
    ) -> None:
        if stream is None:
            return
        message = describe(
            status,
            database,
            operation,
            repeated=repeated,
            record_count=record_count,
            iteration=iteration,
            total=total,
            **context,
        )
        await stream.emit(
            ProgressEvent(
                current_database=database.label,
                current_operation=operation,
                status=status,
                progress=progress,
                message=message,
                record_count=record_count,
                iteration=iteration,
                total=total,
                result=result,
            )
        )

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)
