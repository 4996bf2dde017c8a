"""
CockroachDB Adapter (distributed SQL)

Differences from the other adapters:
- a fixed settling delay before update verification
- read integrity also requires a non-null age
"""

from __future__ import annotations

from datetime import UTC
from typing import Any, Optional

from backend.config import settings
from backend.connectors.cockroach_pool import CockroachConnectionPool
from backend.connectors.registry import ConnectionRegistry
from backend.core.adapters.base import BackendAdapter
from backend.models.test_config import DatabaseType, TestRecord


class CockroachAdapter(BackendAdapter):
    """Runs the benchmark protocol through asyncpg parameterized statements."""

    database = DatabaseType.COCKROACH

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        batch_size: Optional[int] = None,
        read_limit: Optional[int] = None,
        settle_delay_seconds: Optional[float] = None,
    ):
        super().__init__(registry, batch_size=batch_size, read_limit=read_limit)
        self.settle_delay_seconds = (
            settings.COCKROACH_SETTLE_DELAY_SECONDS
            if settle_delay_seconds is None
            else settle_delay_seconds
        )

    async def insert_record(self, handle: CockroachConnectionPool, record: TestRecord) -> None:
        # TIMESTAMP column: asyncpg wants a naive UTC datetime.
        created_at = record.created_at
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone(UTC).replace(tzinfo=None)

        await handle.execute_query(
            f"""
            INSERT INTO {handle.table} (id, user_id, name, email, age, created_at, data)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            record.id,
            record.user_id,
            record.name,
            record.email,
            record.age,
            created_at,
            record.data,
        )

    async def fetch_record(
        self, handle: CockroachConnectionPool, record_id: Any
    ) -> Optional[dict[str, Any]]:
        row = await handle.fetch_one(
            f"SELECT * FROM {handle.table} WHERE id = $1",
            record_id,
        )
        return dict(row) if row is not None else None

    async def existing_ids(self, handle: CockroachConnectionPool, limit: int) -> list[Any]:
        rows = await handle.fetch_all(f"SELECT id FROM {handle.table} LIMIT $1", limit)
        return [row["id"] for row in rows]

    async def update_record(
        self, handle: CockroachConnectionPool, record_id: Any, name: str, age: int
    ) -> None:
        await handle.execute_query(
            f"UPDATE {handle.table} SET name = $1, age = $2 WHERE id = $3",
            name,
            age,
            record_id,
        )

    def row_is_well_formed(self, row: dict[str, Any]) -> bool:
        return super().row_is_well_formed(row) and row.get("age") is not None
