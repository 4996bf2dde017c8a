"""
Progress Event Models

Wire shapes for the live progress stream:
- ProgressEvent: per-cell status update (no `type` discriminator)
- CompleteEvent: final event carrying every result
- ErrorEvent: fatal run error, terminates the stream
"""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.models.test_config import OperationType
from backend.models.test_result import RepeatTestResult, TestResult


class ProgressStatus(str, Enum):
    """Lifecycle of one matrix cell."""

    STARTING = "starting"
    RUNNING = "running"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """Point-in-time orchestration status for one cell."""

    current_database: str = Field(..., description="Backend label")
    current_operation: OperationType = Field(..., description="Operation")
    status: ProgressStatus = Field(..., description="Cell status")
    progress: int = Field(..., ge=0, le=100, description="Overall progress %")
    message: str = Field(..., description="Human-readable status")
    record_count: Optional[int] = Field(None, description="Records in flight")
    iteration: Optional[int] = Field(None, description="Repeat index (1-based)")
    total: Optional[int] = Field(None, description="Repeat count")
    result: Optional[RepeatTestResult] = Field(
        None, description="Cell aggregate (repeated mode, completed only)"
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        frozen=True,
    )


class CompleteEvent(BaseModel):
    """Final event of a successful run."""

    type: Literal["complete"] = "complete"
    results: List[Union[TestResult, RepeatTestResult]] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ErrorEvent(BaseModel):
    """Fatal run error; no further events follow."""

    type: Literal["error"] = "error"
    error: str

    model_config = ConfigDict(frozen=True)


StreamEvent = Union[ProgressEvent, CompleteEvent, ErrorEvent]
