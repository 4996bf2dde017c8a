"""
Test Orchestrator

Runs one (backend, operation) cell:
1. ensure the backend is connected (ConnectionRegistry)
2. generate the workload for the operation
3. delegate to the backend's adapter

Adapters already convert their own failures into TestResults; anything that
fails outside them (unknown cell, connection/bootstrap errors) is converted
here with zero time and zero records.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

from backend.config import settings
from backend.connectors.registry import ConnectionRegistry
from backend.core.adapters import BackendAdapter, create_adapter
from backend.core.exceptions import UnsupportedOperationError
from backend.core.workload_generators import WorkloadGenerator
from backend.models.test_config import DatabaseType, OperationType
from backend.models.test_result import TestResult

logger = logging.getLogger(__name__)


def _coerce_cell(
    database: Union[DatabaseType, str], operation: Union[OperationType, str]
) -> tuple[DatabaseType, OperationType]:
    try:
        return DatabaseType(database), OperationType(operation)
    except ValueError:
        raise UnsupportedOperationError(database, operation) from None


def _label(database: Union[DatabaseType, str]) -> str:
    """Display label for a known backend, the raw value otherwise."""
    try:
        return DatabaseType(database).label
    except ValueError:
        return str(database)


def _value(operation: Union[OperationType, str]) -> str:
    try:
        return OperationType(operation).value
    except ValueError:
        return str(operation)


class TestOrchestrator:
    """Executes single benchmark cells against a shared ConnectionRegistry."""

    __test__ = False

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        generator: Optional[WorkloadGenerator] = None,
        adapters: Optional[Mapping[DatabaseType, BackendAdapter]] = None,
        write_count: Optional[int] = None,
        read_limit: Optional[int] = None,
    ):
        self.registry = registry
        self.generator = generator or WorkloadGenerator()
        self.write_count = write_count if write_count is not None else settings.WRITE_RECORD_COUNT
        self.read_limit = read_limit if read_limit is not None else settings.READ_RECORD_LIMIT
        self._adapters: dict[DatabaseType, BackendAdapter] = dict(adapters or {})

    def adapter_for(self, database: DatabaseType) -> BackendAdapter:
        adapter = self._adapters.get(database)
        if adapter is None:
            adapter = create_adapter(database, self.registry)
            self._adapters[database] = adapter
        return adapter

    def planned_record_count(self, operation: OperationType) -> int:
        """Records a cell is expected to touch (used for progress messages)."""
        return self.write_count if operation == OperationType.WRITE else self.read_limit

    async def run(
        self,
        database: Union[DatabaseType, str],
        operation: Union[OperationType, str],
    ) -> TestResult:
        """
        Run one cell and return its TestResult.

        Never raises for cell-level failures. Unknown cells and connection or
        adapter errors come back as a result with zero time, zero records and
        failed integrity.
        """
        try:
            database, operation = _coerce_cell(database, operation)
            adapter = self.adapter_for(database)
            await self.registry.connect(database)

            if operation == OperationType.WRITE:
                records = self.generator.generate(self.write_count)
                return await adapter.write(records)

            candidate_ids = self.generator.generate_ids(self.read_limit)
            if operation == OperationType.READ:
                return await adapter.read(candidate_ids)
            return await adapter.update(candidate_ids)

        except Exception as e:
            label = _label(database)
            logger.warning(f"{label} {_value(operation)} test aborted: {e}")
            return TestResult(
                database=label,
                operation=_value(operation),
                time_taken=0,
                record_count=0,
                data_integrity=False,
                error=str(e) or e.__class__.__name__,
            )
