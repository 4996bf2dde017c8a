"""
MongoDB Client Manager

Owns one motor client and the benchmark database; ensures the unique index on
the workload `id` field exists.
"""

import logging
from typing import Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import DuplicateKeyError, OperationFailure

from backend.config import settings

logger = logging.getLogger(__name__)


def _is_already_exists(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "already exists" in msg or "duplicate key" in msg


class MongoClientManager:
    """Async MongoDB client bound to one database."""

    def __init__(self, uri: str, db_name: str, collection: str = "test_data"):
        self.uri = uri
        self.db_name = db_name
        self.collection_name = collection

        self._client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Create the client and ensure the `id` index."""
        if self._db is not None:
            return

        client: AsyncIOMotorClient = AsyncIOMotorClient(self.uri)
        db = client[self.db_name]
        try:
            await db[self.collection_name].create_index("id", unique=True)
        except (OperationFailure, DuplicateKeyError) as e:
            if not _is_already_exists(e):
                client.close()
                raise
            logger.debug(f"MongoDB index on {self.collection_name}.id already exists")
        except Exception:
            client.close()
            raise

        self._client = client
        self._db = db
        logger.info("MongoDB connected successfully")

    @property
    def db(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise RuntimeError("MongoDB client not connected")
        return self._db

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.db[self.collection_name]

    async def ping(self) -> bool:
        try:
            await self.db.command("ping")
            return True
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("MongoDB client closed")


def client_from_settings() -> MongoClientManager:
    """Build an (unconnected) client manager from application settings."""
    return MongoClientManager(
        uri=settings.MONGODB_URI,
        db_name=settings.MONGODB_DB_NAME,
        collection=settings.TEST_TABLE_NAME,
    )
