"""
Statistical utilities for repeated runs.

Contains pure Python reductions over per-iteration durations where a zero
entry marks a failed iteration.
"""

from __future__ import annotations

from typing import Sequence

from backend.models.test_config import OperationType
from backend.models.test_result import RepeatTestResult


def successful_times(times: Sequence[float]) -> list[float]:
    """Durations of iterations that did not fail (non-zero entries)."""
    return [float(t) for t in times if t > 0]


def summarize_times(times: Sequence[float]) -> tuple[float, float, float]:
    """
    Compute (average, min, max) over successful iterations.

    Returns:
        (0.0, 0.0, 0.0) if every iteration failed.

    Example:
        >>> summarize_times([100, 0, 300])
        (200.0, 100.0, 300.0)
        >>> summarize_times([0, 0])
        (0.0, 0.0, 0.0)
    """
    valid = successful_times(times)
    if not valid:
        return 0.0, 0.0, 0.0
    fastest, slowest = min(valid), max(valid)
    # Clamp: float summation can push the mean a ulp outside [min, max].
    average = min(max(sum(valid) / len(valid), fastest), slowest)
    return average, fastest, slowest


def aggregate_repeat_result(
    database: str,
    operation: OperationType,
    times: Sequence[float],
) -> RepeatTestResult:
    """Build a RepeatTestResult, preserving `times` as given."""
    average, fastest, slowest = summarize_times(times)
    return RepeatTestResult(
        database=database,
        operation=operation,
        times=list(times),
        average=average,
        min=fastest,
        max=slowest,
    )
