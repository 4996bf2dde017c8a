"""
MongoDB Adapter (document store)

Ids are stored as strings in the `id` field (unique index); Mongo's own `_id`
is never exposed to the protocol.
"""

from __future__ import annotations

from typing import Any, Optional

from backend.connectors.mongo_client import MongoClientManager
from backend.core.adapters.base import BackendAdapter
from backend.models.test_config import DatabaseType, TestRecord

_HIDE_OBJECT_ID = {"_id": 0}


class MongoAdapter(BackendAdapter):
    """Runs the benchmark protocol against one collection."""

    database = DatabaseType.MONGO

    async def insert_record(self, handle: MongoClientManager, record: TestRecord) -> None:
        document = record.model_dump()
        document["id"] = str(record.id)
        await handle.collection.insert_one(document)

    async def fetch_record(
        self, handle: MongoClientManager, record_id: Any
    ) -> Optional[dict[str, Any]]:
        return await handle.collection.find_one({"id": str(record_id)}, _HIDE_OBJECT_ID)

    async def existing_ids(self, handle: MongoClientManager, limit: int) -> list[Any]:
        cursor = handle.collection.find({}, {"id": 1, "_id": 0}).limit(limit)
        documents = await cursor.to_list(length=limit)
        return [doc["id"] for doc in documents if doc.get("id")]

    async def update_record(
        self, handle: MongoClientManager, record_id: Any, name: str, age: int
    ) -> None:
        await handle.collection.update_one(
            {"id": str(record_id)},
            {"$set": {"name": name, "age": age}},
        )
