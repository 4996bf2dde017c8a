"""
Connection Registry

Lazily creates and memoizes one live connection per backend. The registry is
an explicit object owned by the application (or a CLI run); nothing here is
module-level state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional, Protocol

from backend.connectors.cassandra_session import session_from_settings
from backend.connectors.cockroach_pool import pool_from_settings
from backend.connectors.mongo_client import client_from_settings
from backend.core.exceptions import BenchmarkError
from backend.models.test_config import DatabaseType

logger = logging.getLogger(__name__)


class BackendHandle(Protocol):
    """Anything the registry can open and close."""

    async def connect(self) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


HandleFactory = Callable[[], BackendHandle]


def default_factories() -> dict[DatabaseType, HandleFactory]:
    """Handle factories wired to application settings."""
    return {
        DatabaseType.CASSANDRA: session_from_settings,
        DatabaseType.MONGO: client_from_settings,
        DatabaseType.COCKROACH: pool_from_settings,
    }


class ConnectionRegistry:
    """
    At most one live handle per backend for the registry's lifetime.

    - connect(): create-and-cache on first call, cached handle afterwards
    - get_handle(): cached handle or None, never connects
    - close_all(): release everything; idempotent
    """

    def __init__(self, factories: Optional[Mapping[DatabaseType, HandleFactory]] = None):
        self._factories: dict[DatabaseType, HandleFactory] = dict(
            factories if factories is not None else default_factories()
        )
        self._handles: dict[DatabaseType, BackendHandle] = {}
        self._locks: dict[DatabaseType, asyncio.Lock] = {}

    async def connect(self, database: DatabaseType) -> Any:
        """
        Return the live handle for `database`, connecting on first use.

        Bootstrap failures other than "already exists" propagate and leave
        nothing cached, so a later call retries.
        """
        handle = self._handles.get(database)
        if handle is not None:
            return handle

        lock = self._locks.setdefault(database, asyncio.Lock())
        async with lock:
            handle = self._handles.get(database)
            if handle is not None:
                return handle

            factory = self._factories.get(database)
            if factory is None:
                raise BenchmarkError(f"No connector registered for {database.value}")

            logger.info(f"Connecting to {database.label}...")
            handle = factory()
            await handle.connect()
            self._handles[database] = handle
            logger.info(f"{database.label} connection cached")
            return handle

    def get_handle(self, database: DatabaseType) -> Any:
        """Cached handle or None. Never attempts to connect."""
        return self._handles.get(database)

    def is_connected(self, database: DatabaseType) -> bool:
        return database in self._handles

    def connection_states(self) -> dict[str, str]:
        return {
            db.value: "connected" if db in self._handles else "not_connected"
            for db in DatabaseType
        }

    async def health_checks(self) -> dict[str, str]:
        """Liveness of each backend; only connected handles are probed."""
        checks: dict[str, str] = {}
        for db in DatabaseType:
            handle = self._handles.get(db)
            if handle is None:
                checks[db.value] = "not_connected"
            else:
                checks[db.value] = "healthy" if await handle.ping() else "unhealthy"
        return checks

    async def close_all(self) -> None:
        """Close every cached handle (best effort) and reset to empty."""
        handles = list(self._handles.items())
        self._handles = {}
        for database, handle in handles:
            try:
                logger.info(f"Closing {database.label} connection...")
                await handle.close()
            except Exception as e:
                logger.warning(f"Error closing {database.label} connection: {e}")
