"""
Base Backend Adapter

Implements the shared write/read/update protocol once; each backend only
supplies four primitive calls (insert, fetch by id, list stored ids, update).

Protocol per operation:
- write: fixed-size chunks run sequentially, inserts inside a chunk run
  concurrently, then the first record is read back and its name compared
- read: discover up to N stored ids, read them all concurrently, check that
  every read found a row and the first row is well formed
- update: same discovery, update all concurrently, optional settling delay,
  re-read one record and check the sentinel age and the updated name

Every call returns a TestResult; no exception escapes an adapter operation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from backend.config import settings
from backend.connectors.registry import ConnectionRegistry
from backend.core.exceptions import BackendNotConnectedError, UnsupportedOperationError
from backend.models.test_config import DatabaseType, OperationType, TestRecord
from backend.models.test_result import TestResult

logger = logging.getLogger(__name__)

NO_RECORDS_ERROR = "No records found in database. Please run Write test first."
UPDATED_NAME_PREFIX = "Updated User"
UPDATED_AGE = 99


def chunked(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    """Split `items` into consecutive slices of at most `size`."""
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


def coerce_int(value: Any) -> Optional[int]:
    """Numeric view of a value regardless of the driver's native type."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass
class _Outcome:
    record_count: int = 0
    data_integrity: bool = False
    error: Optional[str] = None


class BackendAdapter(ABC):
    """
    Abstract base class for per-backend benchmark adapters.

    Subclasses set `database` and implement the primitive operations; handles
    come from the ConnectionRegistry and are never created here.
    """

    database: DatabaseType
    # Pause between the update fan-out and its verification read.
    settle_delay_seconds: float = 0.0

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        batch_size: Optional[int] = None,
        read_limit: Optional[int] = None,
    ):
        self.registry = registry
        self.batch_size = batch_size or settings.WRITE_BATCH_SIZE
        self.read_limit = read_limit or settings.READ_RECORD_LIMIT

    @property
    def label(self) -> str:
        return self.database.label

    def _handle(self) -> Any:
        handle = self.registry.get_handle(self.database)
        if handle is None:
            raise BackendNotConnectedError(self.label)
        return handle

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def insert_record(self, handle: Any, record: TestRecord) -> None:
        """Insert one workload record."""

    @abstractmethod
    async def fetch_record(self, handle: Any, record_id: Any) -> Optional[dict[str, Any]]:
        """Point read by id; None when absent."""

    @abstractmethod
    async def existing_ids(self, handle: Any, limit: int) -> list[Any]:
        """Up to `limit` ids currently stored in the backend."""

    @abstractmethod
    async def update_record(self, handle: Any, record_id: Any, name: str, age: int) -> None:
        """Set name and age on one record."""

    def row_is_well_formed(self, row: dict[str, Any]) -> bool:
        return bool(row.get("id")) and bool(row.get("name"))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def run(self, operation: OperationType, payload: Sequence[Any]) -> TestResult:
        """Dispatch to write/read/update."""
        if operation == OperationType.WRITE:
            return await self.write(payload)
        if operation == OperationType.READ:
            return await self.read(payload)
        if operation == OperationType.UPDATE:
            return await self.update(payload)
        raise UnsupportedOperationError(self.database.value, operation)

    async def write(self, records: Sequence[TestRecord]) -> TestResult:
        async def body(outcome: _Outcome) -> None:
            outcome.record_count = len(records)
            handle = self._handle()

            for chunk in chunked(records, self.batch_size):
                await asyncio.gather(*(self.insert_record(handle, r) for r in chunk))

            if not records:
                return
            expected = records[0]
            row = await self.fetch_record(handle, expected.id)
            outcome.data_integrity = row is not None and str(row.get("name")) == expected.name

        return await self._measure(OperationType.WRITE, body)

    async def read(self, candidate_ids: Sequence[Any]) -> TestResult:
        async def body(outcome: _Outcome) -> None:
            handle = self._handle()
            ids = await self._discover_ids(handle, candidate_ids)
            if not ids:
                outcome.error = NO_RECORDS_ERROR
                return
            outcome.record_count = len(ids)

            rows = await asyncio.gather(*(self.fetch_record(handle, i) for i in ids))
            outcome.data_integrity = all(r is not None for r in rows) and self.row_is_well_formed(
                rows[0]
            )

        return await self._measure(OperationType.READ, body)

    async def update(self, candidate_ids: Sequence[Any]) -> TestResult:
        async def body(outcome: _Outcome) -> None:
            handle = self._handle()
            ids = await self._discover_ids(handle, candidate_ids)
            if not ids:
                outcome.error = NO_RECORDS_ERROR
                return
            outcome.record_count = len(ids)

            await asyncio.gather(
                *(
                    self.update_record(handle, i, f"{UPDATED_NAME_PREFIX} {i}", UPDATED_AGE)
                    for i in ids
                )
            )

            if self.settle_delay_seconds > 0:
                await asyncio.sleep(self.settle_delay_seconds)

            row = await self.fetch_record(handle, ids[0])
            outcome.data_integrity = (
                row is not None
                and coerce_int(row.get("age")) == UPDATED_AGE
                and UPDATED_NAME_PREFIX in str(row.get("name") or "")
            )

        return await self._measure(OperationType.UPDATE, body)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _discover_ids(self, handle: Any, candidate_ids: Sequence[Any]) -> list[Any]:
        # Tests run against what is persisted, not against the caller's ids.
        limit = min(len(candidate_ids), self.read_limit)
        if limit <= 0:
            return []
        ids = await self.existing_ids(handle, limit)
        return list(ids)[:limit]

    async def _measure(
        self,
        operation: OperationType,
        body: Callable[[_Outcome], Awaitable[None]],
    ) -> TestResult:
        outcome = _Outcome()
        start = time.perf_counter()
        try:
            await body(outcome)
        except Exception as e:
            logger.warning(f"{self.label} {operation.value} test failed: {e}")
            outcome.data_integrity = False
            outcome.error = str(e) or e.__class__.__name__
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        if outcome.error is not None:
            outcome.data_integrity = False

        return TestResult(
            database=self.label,
            operation=operation,
            time_taken=elapsed_ms,
            record_count=outcome.record_count,
            data_integrity=outcome.data_integrity,
            error=outcome.error,
        )
