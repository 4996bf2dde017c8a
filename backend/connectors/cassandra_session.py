"""
Cassandra Session Manager

Wraps a cassandra-driver Session so statements can be awaited from asyncio
code. The driver runs I/O on its own event thread; results are handed back to
the caller's loop via call_soon_threadsafe.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from cassandra.cluster import Cluster, ResponseFuture, Session
from cassandra.policies import DCAwareRoundRobinPolicy
from cassandra.query import PreparedStatement, dict_factory

from backend.config import settings

logger = logging.getLogger(__name__)


def create_keyspace_cql(keyspace: str) -> str:
    return f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{
            'class': 'SimpleStrategy',
            'replication_factor': 1
        }}
    """


def create_table_cql(table: str) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id UUID PRIMARY KEY,
            user_id INT,
            name TEXT,
            email TEXT,
            age INT,
            created_at TIMESTAMP,
            data TEXT
        )
    """


def _bridge(response_future: ResponseFuture) -> "asyncio.Future[List[Dict[str, Any]]]":
    """Turn a driver ResponseFuture into an asyncio future on the running loop."""
    loop = asyncio.get_running_loop()
    fut: asyncio.Future = loop.create_future()

    def _set_result(rows: Any) -> None:
        if not fut.done():
            fut.set_result(list(rows or []))

    def _set_exception(exc: BaseException) -> None:
        if not fut.done():
            fut.set_exception(exc)

    response_future.add_callbacks(
        callback=lambda rows: loop.call_soon_threadsafe(_set_result, rows),
        errback=lambda exc: loop.call_soon_threadsafe(_set_exception, exc),
    )
    return fut


class CassandraSession:
    """
    Keyspace-bound Cassandra session with awaitable execution.

    Rows are returned as dicts (dict_factory) so adapters can treat every
    backend's rows the same way.
    """

    def __init__(
        self,
        host: str,
        port: int,
        keyspace: str,
        datacenter: str,
        table: str = "test_data",
    ):
        self.host = host
        self.port = port
        self.keyspace = keyspace
        self.datacenter = datacenter
        self.table = table

        self._cluster: Optional[Cluster] = None
        self._session: Optional[Session] = None
        self._prepared: Dict[str, PreparedStatement] = {}
        self._prepare_lock = asyncio.Lock()

    def _build_cluster(self) -> Cluster:
        return Cluster(
            contact_points=[self.host],
            port=self.port,
            load_balancing_policy=DCAwareRoundRobinPolicy(local_dc=self.datacenter),
            protocol_version=4,
        )

    def _connect_blocking(self) -> None:
        cluster = self._build_cluster()
        try:
            # Keyspace must exist before a keyspace-bound session can be opened.
            bootstrap = cluster.connect()
            bootstrap.execute(create_keyspace_cql(self.keyspace))
            bootstrap.shutdown()

            session = cluster.connect(self.keyspace)
            session.row_factory = dict_factory
            session.execute(create_table_cql(self.table))
        except Exception:
            cluster.shutdown()
            raise

        self._cluster = cluster
        self._session = session

    async def connect(self) -> None:
        """Open the cluster connection and bootstrap keyspace + table."""
        if self._session is not None:
            return
        logger.info(
            f"Connecting to Cassandra at {self.host}:{self.port} "
            f"(keyspace={self.keyspace}, dc={self.datacenter})"
        )
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._connect_blocking)
        logger.info("Cassandra connected successfully")

    async def _prepare(self, query: str) -> PreparedStatement:
        stmt = self._prepared.get(query)
        if stmt is not None:
            return stmt
        async with self._prepare_lock:
            stmt = self._prepared.get(query)
            if stmt is None:
                loop = asyncio.get_running_loop()
                stmt = await loop.run_in_executor(None, self.session.prepare, query)
                self._prepared[query] = stmt
        return stmt

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("Cassandra session not connected")
        return self._session

    async def execute(
        self,
        query: str,
        params: Optional[Sequence[Any]] = None,
        *,
        prepare: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Execute a CQL statement and return its (first page of) rows as dicts.

        Args:
            query: CQL text, `?` placeholders when prepared
            params: Positional parameters
            prepare: Use a cached prepared statement
        """
        if prepare:
            stmt = await self._prepare(query)
            future = self.session.execute_async(stmt, list(params or []))
        else:
            future = self.session.execute_async(query, params)
        return await _bridge(future)

    async def ping(self) -> bool:
        if self._session is None:
            return False
        try:
            await self.execute("SELECT release_version FROM system.local", prepare=False)
            return True
        except Exception as e:
            logger.error(f"Cassandra health check failed: {e}")
            return False

    async def close(self) -> None:
        """Shut down the session and cluster."""
        if self._cluster is None:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._cluster.shutdown)
        self._cluster = None
        self._session = None
        self._prepared.clear()
        logger.info("Cassandra session closed")


def session_from_settings() -> CassandraSession:
    """Build an (unconnected) session from application settings."""
    return CassandraSession(
        host=settings.CASSANDRA_HOST,
        port=settings.CASSANDRA_PORT,
        keyspace=settings.CASSANDRA_KEYSPACE,
        datacenter=settings.CASSANDRA_DATACENTER,
        table=settings.TEST_TABLE_NAME,
    )
