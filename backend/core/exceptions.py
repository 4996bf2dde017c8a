"""
Benchmark error types.
"""


class BenchmarkError(Exception):
    """Base class for benchmark failures."""


class BackendNotConnectedError(BenchmarkError):
    """An adapter was invoked before its backend connection exists."""

    def __init__(self, label: str):
        super().__init__(f"{label} client not initialized")
        self.label = label


class UnsupportedOperationError(BenchmarkError):
    """No adapter handles the requested backend/operation combination."""

    def __init__(self, database: object, operation: object):
        super().__init__(
            f"Unsupported database/operation combination: {database}/{operation}"
        )
        self.database = database
        self.operation = operation
