"""
CockroachDB Connection Pool Manager

Manages async connection pooling for CockroachDB (Postgres wire protocol) with
database/table bootstrap and retry logic.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import asyncpg
from asyncpg import Pool
from asyncpg.exceptions import (
    CannotConnectNowError,
    DuplicateDatabaseError,
    TooManyConnectionsError,
)

from backend.config import settings

logger = logging.getLogger(__name__)

# CockroachDB always ships this database; used to create the target one.
BOOTSTRAP_DATABASE = "defaultdb"


def create_table_sql(table: str) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id INT,
            name TEXT,
            email TEXT,
            age INT,
            created_at TIMESTAMP DEFAULT NOW(),
            data TEXT
        )
    """


class CockroachConnectionPool:
    """
    Async connection pool for CockroachDB with schema bootstrap.
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        ssl: bool = False,
        table: str = "test_data",
        min_size: int = 5,
        max_size: int = 100,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        command_timeout: float = 60.0,
    ):
        """
        Initialize CockroachDB connection pool.

        Args:
            host: Database host
            port: Database port (SQL port, 26257 by default)
            database: Target database name (created if missing)
            user: Username
            password: Password (empty for insecure clusters)
            ssl: Require TLS without certificate verification
            table: Workload table name (created if missing)
            min_size: Minimum pool size
            max_size: Maximum pool size; bounds in-flight statements per fan-out
            max_retries: Max retry attempts for transient failures
            retry_delay: Delay between retries in seconds
            command_timeout: Command timeout in seconds
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.ssl = ssl
        self.table = table
        self.min_size = min_size
        self.max_size = max_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.command_timeout = command_timeout

        self._pool: Optional[Pool] = None
        self._initialized = False

        logger.info(
            f"CockroachDB pool configured: {user}@{host}:{port}/{database}, "
            f"size={min_size}-{max_size}"
        )

    def _connect_kwargs(self, database: str) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "database": database,
            "user": self.user,
            "password": self.password or None,
            "ssl": "require" if self.ssl else False,
        }

    async def _ensure_database(self) -> None:
        """Create the target database; an existing database is not an error."""
        conn = await asyncpg.connect(**self._connect_kwargs(BOOTSTRAP_DATABASE))
        try:
            await conn.execute(f"CREATE DATABASE {self.database}")
            logger.info(f"Created CockroachDB database {self.database}")
        except DuplicateDatabaseError:
            logger.debug(f"CockroachDB database {self.database} already exists")
        finally:
            await conn.close()

    async def initialize(self):
        """Bootstrap the database, create the pool and ensure the table exists."""
        if self._initialized:
            return

        logger.info("Creating CockroachDB connection pool...")

        for attempt in range(self.max_retries):
            try:
                await self._ensure_database()
                self._pool = await asyncpg.create_pool(
                    **self._connect_kwargs(self.database),
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self.command_timeout,
                )
                break

            except (CannotConnectNowError, TooManyConnectionsError) as e:
                if attempt < self.max_retries - 1:
                    logger.warning(
                        f"Pool creation attempt {attempt + 1} failed, retrying: {e}"
                    )
                    await asyncio.sleep(self.retry_delay * (attempt + 1))
                else:
                    logger.error(
                        f"Failed to create pool after {self.max_retries} attempts"
                    )
                    raise
            except Exception as e:
                logger.error(f"Unexpected error creating pool: {e}")
                raise

        try:
            await self.execute_query(create_table_sql(self.table))
        except Exception as e:
            logger.error(f"CockroachDB table bootstrap failed: {e}")
            await self._pool.close()
            self._pool = None
            raise

        self._initialized = True
        logger.info(
            f"CockroachDB pool ready (size: {self.min_size}-{self.max_size})"
        )

    async def connect(self) -> None:
        await self.initialize()

    @asynccontextmanager
    async def get_connection(self):
        """
        Get a connection from the pool (async context manager).

        Unlike a lazily-initialized pool this never connects on demand: callers
        must go through the connection registry first.

        Yields:
            Connection: Connection from pool
        """
        if self._pool is None:
            raise RuntimeError("CockroachDB pool not initialized")

        async with self._pool.acquire() as conn:
            yield conn

    async def execute_query(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Execute a statement that doesn't return rows (INSERT, UPDATE, DDL).

        Returns:
            Status string (e.g., "INSERT 0 1")
        """
        async with self.get_connection() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def fetch_all(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None,
    ) -> List[asyncpg.Record]:
        """Fetch all rows from a query."""
        async with self.get_connection() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def fetch_one(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None,
    ) -> Optional[asyncpg.Record]:
        """Fetch a single row from a query, or None."""
        async with self.get_connection() as conn:
            return await conn.fetchrow(query, *args, timeout=timeout)

    async def fetch_val(
        self,
        query: str,
        *args,
        timeout: Optional[float] = None,
    ) -> Any:
        """Fetch a single value from a query."""
        async with self.get_connection() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)

    async def ping(self) -> bool:
        """
        Check if the connection pool is healthy.

        Returns:
            bool: True if pool is healthy
        """
        if not self._initialized or self._pool is None:
            return False

        try:
            result = await self.fetch_val("SELECT 1")
            return result == 1
        except Exception as e:
            logger.error(f"CockroachDB health check failed: {e}")
            return False

    async def close(self):
        """Close the connection pool."""
        if self._pool is not None:
            logger.info("Closing CockroachDB connection pool...")
            await self._pool.close()
            self._pool = None
            self._initialized = False
            logger.info("CockroachDB pool closed")


def pool_from_settings() -> CockroachConnectionPool:
    """Build an (uninitialized) pool from application settings."""
    return CockroachConnectionPool(
        host=settings.COCKROACHDB_HOST,
        port=settings.COCKROACHDB_PORT,
        database=settings.COCKROACHDB_DATABASE,
        user=settings.COCKROACHDB_USER,
        password=settings.COCKROACHDB_PASSWORD,
        ssl=settings.COCKROACHDB_SSL,
        table=settings.TEST_TABLE_NAME,
        min_size=settings.COCKROACHDB_POOL_MIN_SIZE,
        max_size=settings.COCKROACHDB_POOL_MAX_SIZE,
    )
