"""
Backend adapters.

One adapter per backend; all share the protocol in `base.BackendAdapter`.
"""

from backend.connectors.registry import ConnectionRegistry
from backend.core.adapters.base import (
    NO_RECORDS_ERROR,
    UPDATED_AGE,
    UPDATED_NAME_PREFIX,
    BackendAdapter,
)
from backend.core.adapters.cassandra import CassandraAdapter
from backend.core.adapters.cockroach import CockroachAdapter
from backend.core.adapters.mongo import MongoAdapter
from backend.core.exceptions import UnsupportedOperationError
from backend.models.test_config import DatabaseType

ADAPTER_CLASSES: dict[DatabaseType, type[BackendAdapter]] = {
    DatabaseType.CASSANDRA: CassandraAdapter,
    DatabaseType.MONGO: MongoAdapter,
    DatabaseType.COCKROACH: CockroachAdapter,
}


def create_adapter(database: DatabaseType, registry: ConnectionRegistry) -> BackendAdapter:
    """
    Factory function to create the adapter for a backend.

    Raises:
        UnsupportedOperationError: if no adapter exists for `database`
    """
    adapter_cls = ADAPTER_CLASSES.get(database)
    if adapter_cls is None:
        raise UnsupportedOperationError(database, "*")
    return adapter_cls(registry)


__all__ = [
    "ADAPTER_CLASSES",
    "NO_RECORDS_ERROR",
    "UPDATED_AGE",
    "UPDATED_NAME_PREFIX",
    "BackendAdapter",
    "CassandraAdapter",
    "CockroachAdapter",
    "MongoAdapter",
    "create_adapter",
]
