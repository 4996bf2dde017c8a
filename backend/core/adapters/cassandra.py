"""
Cassandra Adapter (wide-column store)
"""

from __future__ import annotations

from typing import Any, Optional

from backend.connectors.cassandra_session import CassandraSession
from backend.core.adapters.base import BackendAdapter
from backend.models.test_config import DatabaseType, TestRecord


class CassandraAdapter(BackendAdapter):
    """Runs the benchmark protocol through prepared CQL statements."""

    database = DatabaseType.CASSANDRA

    async def insert_record(self, handle: CassandraSession, record: TestRecord) -> None:
        await handle.execute(
            f"INSERT INTO {handle.table} (id, user_id, name, email, age, created_at, data) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                record.id,
                record.user_id,
                record.name,
                record.email,
                record.age,
                record.created_at,
                record.data,
            ],
        )

    async def fetch_record(
        self, handle: CassandraSession, record_id: Any
    ) -> Optional[dict[str, Any]]:
        rows = await handle.execute(
            f"SELECT * FROM {handle.table} WHERE id = ?",
            [record_id],
        )
        return rows[0] if rows else None

    async def existing_ids(self, handle: CassandraSession, limit: int) -> list[Any]:
        # LIMIT is inlined; the statement is not prepared.
        rows = await handle.execute(
            f"SELECT id FROM {handle.table} LIMIT {int(limit)}",
            prepare=False,
        )
        return [row["id"] for row in rows]

    async def update_record(
        self, handle: CassandraSession, record_id: Any, name: str, age: int
    ) -> None:
        await handle.execute(
            f"UPDATE {handle.table} SET name = ?, age = ? WHERE id = ?",
            [name, age, record_id],
        )
