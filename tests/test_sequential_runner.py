"""
Unit tests for SequentialRunner (buffered, streamed and repeated modes).
"""

from __future__ import annotations

import pytest

from backend.core.orchestrator import TestOrchestrator
from backend.core.sequential_runner import (
    REPEAT_STATUS_MESSAGES,
    STATUS_MESSAGES,
    SequentialRunner,
    describe,
    percent,
)
from backend.models import (
    CompleteEvent,
    DatabaseType,
    ErrorEvent,
    OperationType,
    ProgressEvent,
    ProgressStatus,
    RepeatTestResult,
    TestResult,
)
from tests.conftest import REPEAT_COUNT

MATRIX = [
    ("Cassandra", "write"),
    ("Cassandra", "read"),
    ("Cassandra", "update"),
    ("MongoDB", "write"),
    ("MongoDB", "read"),
    ("MongoDB", "update"),
    ("CockroachDB", "write"),
    ("CockroachDB", "read"),
    ("CockroachDB", "update"),
]


class _CrashingOrchestrator(TestOrchestrator):
    """Raises (instead of returning a result) for selected cells."""

    def __init__(self, *args, crash_cells=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.crash_cells = set(crash_cells)

    async def run(self, database, operation):
        if (database, operation) in self.crash_cells:
            raise RuntimeError("adapter crashed")
        return await super().run(database, operation)


def _no_pause_runner(orchestrator: TestOrchestrator, **kwargs) -> SequentialRunner:
    async def _sleep(seconds: float) -> None:
        return None

    return SequentialRunner(orchestrator, repeat_count=REPEAT_COUNT, sleep=_sleep, **kwargs)


async def _collect(events) -> list:
    return [event async for event in events]


# =============================================================================
# Helpers
# =============================================================================


def test_every_status_has_a_message() -> None:
    assert set(STATUS_MESSAGES) == set(ProgressStatus)
    assert set(REPEAT_STATUS_MESSAGES) == set(ProgressStatus)


def test_describe() -> None:
    message = describe(
        ProgressStatus.RUNNING,
        DatabaseType.CASSANDRA,
        OperationType.WRITE,
        record_count=10000,
    )
    assert message == "Running write of 10,000 records on Cassandra..."

    message = describe(
        ProgressStatus.RUNNING,
        DatabaseType.MONGO,
        OperationType.READ,
        repeated=True,
        iteration=2,
        total=10,
    )
    assert message == "MongoDB read run 2/10..."


@pytest.mark.parametrize(
    "completed, total, expected",
    [(0, 9, 0), (1, 9, 11), (9, 9, 100), (1, 8, 13), (45, 90, 50), (0, 0, 100)],
)
def test_percent(completed: int, total: int, expected: int) -> None:
    assert percent(completed, total) == expected


def test_repeat_count_must_be_positive(orchestrator: TestOrchestrator) -> None:
    with pytest.raises(ValueError):
        SequentialRunner(orchestrator, repeat_count=0)


# =============================================================================
# Buffered mode
# =============================================================================


class TestRunAll:
    """Tests for SequentialRunner.run_all()."""

    @pytest.mark.asyncio
    async def test_runs_matrix_in_order(self, runner: SequentialRunner) -> None:
        outcome = await runner.run_all()

        assert [(r.database, r.operation) for r in outcome.results] == MATRIX
        assert all(r.succeeded for r in outcome.results)
        assert outcome.summary.total_tests == 9
        assert outcome.summary.successful_tests == 9
        assert outcome.summary.failed_tests == 0
        assert outcome.summary.total_time == pytest.approx(
            sum(r.time_taken for r in outcome.results)
        )

    @pytest.mark.asyncio
    async def test_pauses_between_cells(self, runner: SequentialRunner, sleeps) -> None:
        await runner.run_all()

        assert sleeps == [0.5] * 8

    @pytest.mark.asyncio
    async def test_failed_backend_does_not_abort_matrix(self, runner, adapters) -> None:
        adapters[DatabaseType.MONGO].insert_error = RuntimeError("disk full")

        outcome = await runner.run_all()

        assert len(outcome.results) == 9
        mongo = [r for r in outcome.results if r.database == "MongoDB"]
        assert mongo[0].error == "disk full"
        assert all(not r.succeeded for r in mongo)
        assert outcome.summary.failed_tests == 3
        assert outcome.summary.successful_tests == 6


# =============================================================================
# Streamed mode
# =============================================================================


class TestStreamMatrix:
    """Tests for SequentialRunner.stream_matrix()."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, runner: SequentialRunner) -> None:
        events = await _collect(runner.stream_matrix())

        progress_events = [e for e in events if isinstance(e, ProgressEvent)]
        assert len(progress_events) == 9 * 4
        assert [e.status for e in progress_events[:4]] == [
            "starting",
            "running",
            "verifying",
            "completed",
        ]
        assert progress_events[1].record_count == 25
        assert progress_events[0].progress == 0
        assert progress_events[-1].progress == 100

        final = events[-1]
        assert isinstance(final, CompleteEvent)
        assert [(r.database, r.operation) for r in final.results] == MATRIX

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, runner: SequentialRunner) -> None:
        events = await _collect(runner.stream_matrix())

        values = [e.progress for e in events if isinstance(e, ProgressEvent)]
        assert values == sorted(values)

    @pytest.mark.asyncio
    async def test_pauses_between_cells(self, runner: SequentialRunner, sleeps) -> None:
        await _collect(runner.stream_matrix())

        assert sleeps == [0.3] * 8

    @pytest.mark.asyncio
    async def test_crashing_cell_emits_error_and_continues(self, registry, adapters) -> None:
        orchestrator = _CrashingOrchestrator(
            registry,
            adapters=adapters,
            write_count=10,
            read_limit=10,
            crash_cells={(DatabaseType.CASSANDRA, OperationType.READ)},
        )

        events = await _collect(_no_pause_runner(orchestrator).stream_matrix())

        cell = [
            e.status
            for e in events
            if isinstance(e, ProgressEvent)
            and e.current_database == "Cassandra"
            and e.current_operation == "read"
        ]
        assert cell == ["starting", "running", "error"]

        final = events[-1]
        assert isinstance(final, CompleteEvent)
        assert len(final.results) == 9
        crashed = final.results[1]
        assert crashed.error == "adapter crashed"
        assert crashed.time_taken == 0
        assert crashed.record_count == 0

    @pytest.mark.asyncio
    async def test_error_result_ends_cell_in_error(self, runner, adapters) -> None:
        adapters[DatabaseType.COCKROACH].insert_error = RuntimeError("node draining")

        events = await _collect(runner.stream_matrix())

        cell = [
            e
            for e in events
            if isinstance(e, ProgressEvent)
            and e.current_database == "CockroachDB"
            and e.current_operation == "write"
        ]
        assert [e.status for e in cell] == ["starting", "running", "verifying", "error"]
        assert "node draining" in cell[-1].message

    @pytest.mark.asyncio
    async def test_runner_failure_becomes_error_event(self, runner, monkeypatch) -> None:
        async def _broken(*args, **kwargs):
            raise RuntimeError("runner state corrupted")

        monkeypatch.setattr(runner, "run_matrix", _broken)

        events = await _collect(runner.stream_matrix())

        assert events == [ErrorEvent(error="runner state corrupted")]


# =============================================================================
# Repeated mode
# =============================================================================


class TestStreamRepeated:
    """Tests for SequentialRunner.stream_repeated()."""

    @pytest.mark.asyncio
    async def test_event_sequence_per_cell(self, runner: SequentialRunner) -> None:
        events = await _collect(runner.stream_repeated())

        first_cell = [
            e
            for e in events
            if isinstance(e, ProgressEvent)
            and e.current_database == "Cassandra"
            and e.current_operation == "write"
        ]
        assert [e.status for e in first_cell] == (
            ["starting"] + ["running"] * REPEAT_COUNT + ["verifying", "completed"]
        )
        assert [e.iteration for e in first_cell if e.status == "running"] == [1, 2, 3]
        assert all(e.total == REPEAT_COUNT for e in first_cell)
        assert isinstance(first_cell[-1].result, RepeatTestResult)

    @pytest.mark.asyncio
    async def test_results_aggregate_each_cell(self, runner: SequentialRunner) -> None:
        events = await _collect(runner.stream_repeated())

        final = events[-1]
        assert isinstance(final, CompleteEvent)
        assert [(r.database, r.operation) for r in final.results] == MATRIX
        for result in final.results:
            assert isinstance(result, RepeatTestResult)
            assert len(result.times) == REPEAT_COUNT
            assert result.min <= result.average <= result.max
            assert result.min > 0

    @pytest.mark.asyncio
    async def test_progress_counts_individual_runs(self, runner: SequentialRunner) -> None:
        events = await _collect(runner.stream_repeated())

        values = [e.progress for e in events if isinstance(e, ProgressEvent)]
        assert values == sorted(values)
        assert values[0] == 0
        assert values[-1] == 100
        # After the first cell: 3 of 27 runs done.
        completed = [e for e in events if isinstance(e, ProgressEvent) and e.status == "completed"]
        assert completed[0].progress == 11

    @pytest.mark.asyncio
    async def test_failed_iterations_recorded_as_zero(self, runner, adapters) -> None:
        adapters[DatabaseType.MONGO].insert_error = RuntimeError("disk full")

        events = await _collect(runner.stream_repeated())

        mongo_write = events[-1].results[3]
        assert mongo_write.database == "MongoDB"
        assert mongo_write.times == [0.0] * REPEAT_COUNT
        assert (mongo_write.average, mongo_write.min, mongo_write.max) == (0.0, 0.0, 0.0)

    @pytest.mark.asyncio
    async def test_crashing_iterations_recorded_as_zero(self, registry, adapters) -> None:
        orchestrator = _CrashingOrchestrator(
            registry,
            adapters=adapters,
            write_count=10,
            read_limit=10,
            crash_cells={(DatabaseType.COCKROACH, OperationType.UPDATE)},
        )

        results = await _no_pause_runner(orchestrator).run_repeated()

        assert results[-1].times == [0.0] * REPEAT_COUNT
        assert results[0].average > 0

    @pytest.mark.asyncio
    async def test_pauses(self, runner: SequentialRunner, sleeps) -> None:
        await _collect(runner.stream_repeated())

        assert sleeps.count(0.2) == 9 * (REPEAT_COUNT - 1)
        assert sleeps.count(0.3) == 8


@pytest.mark.asyncio
async def test_results_match_buffered_shape(runner: SequentialRunner) -> None:
    events = await _collect(runner.stream_matrix())

    assert all(isinstance(r, TestResult) for r in events[-1].results)
