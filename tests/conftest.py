"""
Global pytest configuration and fixtures for Tri-Store Benchmark tests.

This module provides:
- In-memory backend handles and an adapter that stores rows in them
- A ConnectionRegistry wired to those handles
- Orchestrator / runner fixtures with small workloads and no pauses
- FastAPI test client fixture using the fakes

No test here needs a live Cassandra, MongoDB or CockroachDB.
"""

from __future__ import annotations

import asyncio
from typing import Any, Generator, Optional

import pytest
from fastapi.testclient import TestClient

from backend.connectors.registry import ConnectionRegistry
from backend.core.adapters.base import BackendAdapter
from backend.core.orchestrator import TestOrchestrator
from backend.core.sequential_runner import SequentialRunner
from backend.models import DatabaseType, TestRecord

WRITE_COUNT = 25
READ_LIMIT = 20
BATCH_SIZE = 10
REPEAT_COUNT = 3


# =============================================================================
# In-memory backend
# =============================================================================


class FakeHandle:
    """Stands in for a driver connection; rows live in a dict keyed by id."""

    def __init__(self, *, connect_error: Optional[Exception] = None) -> None:
        self.rows: dict[Any, dict[str, Any]] = {}
        self.connect_error = connect_error
        self.connect_calls = 0
        self.close_calls = 0
        self.alive = True

    async def connect(self) -> None:
        self.connect_calls += 1
        await asyncio.sleep(0)
        if self.connect_error is not None:
            raise self.connect_error

    async def ping(self) -> bool:
        return self.alive

    async def close(self) -> None:
        self.close_calls += 1


class InMemoryAdapter(BackendAdapter):
    """BackendAdapter whose primitives read and write FakeHandle.rows."""

    def __init__(
        self,
        database: DatabaseType,
        registry: ConnectionRegistry,
        *,
        insert_error: Optional[Exception] = None,
        drop_updates: bool = False,
        **kwargs: Any,
    ) -> None:
        self.database = database
        super().__init__(registry, **kwargs)
        self.insert_error = insert_error
        self.drop_updates = drop_updates
        self.in_flight = 0
        self.max_in_flight = 0

    async def insert_record(self, handle: FakeHandle, record: TestRecord) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.insert_error is not None:
                raise self.insert_error
            handle.rows[record.id] = record.model_dump()
        finally:
            self.in_flight -= 1

    async def fetch_record(self, handle: FakeHandle, record_id: Any) -> Optional[dict[str, Any]]:
        row = handle.rows.get(record_id)
        return dict(row) if row is not None else None

    async def existing_ids(self, handle: FakeHandle, limit: int) -> list[Any]:
        return list(handle.rows)[:limit]

    async def update_record(self, handle: FakeHandle, record_id: Any, name: str, age: int) -> None:
        await asyncio.sleep(0)
        if not self.drop_updates:
            handle.rows[record_id].update(name=name, age=age)


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def fake_handles() -> dict[DatabaseType, FakeHandle]:
    return {db: FakeHandle() for db in DatabaseType}


@pytest.fixture
def registry(fake_handles: dict[DatabaseType, FakeHandle]) -> ConnectionRegistry:
    return ConnectionRegistry({db: (lambda h=handle: h) for db, handle in fake_handles.items()})


@pytest.fixture
def adapters(registry: ConnectionRegistry) -> dict[DatabaseType, InMemoryAdapter]:
    return {
        db: InMemoryAdapter(db, registry, batch_size=BATCH_SIZE, read_limit=READ_LIMIT)
        for db in DatabaseType
    }


@pytest.fixture
def orchestrator(
    registry: ConnectionRegistry, adapters: dict[DatabaseType, InMemoryAdapter]
) -> TestOrchestrator:
    return TestOrchestrator(
        registry,
        adapters=adapters,
        write_count=WRITE_COUNT,
        read_limit=READ_LIMIT,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Durations passed to the runner's sleep function."""
    return []


@pytest.fixture
def runner(orchestrator: TestOrchestrator, sleeps: list[float]) -> SequentialRunner:
    async def _record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return SequentialRunner(
        orchestrator,
        repeat_count=REPEAT_COUNT,
        cell_pause=0.3,
        buffered_pause=0.5,
        iteration_pause=0.2,
        sleep=_record_sleep,
    )


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def client(
    registry: ConnectionRegistry,
    orchestrator: TestOrchestrator,
    runner: SequentialRunner,
) -> Generator[TestClient, None, None]:
    """
    Synchronous FastAPI test client backed by the in-memory fakes.
    """
    from backend.main import app

    app.state.registry = registry
    app.state.orchestrator = orchestrator
    app.state.runner = runner
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        del app.state.registry
        del app.state.orchestrator
        del app.state.runner
