"""
Data models for Tri-Store Benchmark.

This package contains Pydantic models for:
- Matrix axes and the workload record
- Single-run, repeated-run and full-matrix results
- Live progress events
"""

from backend.models.test_config import (
    DATABASE_LABELS,
    DATABASE_ORDER,
    OPERATION_ORDER,
    DatabaseType,
    OperationType,
    TestRecord,
)

from backend.models.test_result import (
    AllTestsResult,
    RepeatTestResult,
    TestResult,
    TestSummary,
)

from backend.models.progress import (
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    ProgressStatus,
    StreamEvent,
)

__all__ = [
    # test_config
    "DATABASE_LABELS",
    "DATABASE_ORDER",
    "OPERATION_ORDER",
    "DatabaseType",
    "OperationType",
    "TestRecord",
    # test_result
    "AllTestsResult",
    "RepeatTestResult",
    "TestResult",
    "TestSummary",
    # progress
    "CompleteEvent",
    "ErrorEvent",
    "ProgressEvent",
    "ProgressStatus",
    "StreamEvent",
]
