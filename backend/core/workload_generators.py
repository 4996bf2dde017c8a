"""
Workload Generator for the fixed benchmark workload.

Every write run inserts the same shape of data: sequential user ids, names and
emails derived from the index, ages cycling over [20, 69] and a fresh UUID per
record. Read and update runs only need candidate identifiers.
"""

from datetime import UTC, datetime
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from backend.models.test_config import TestRecord

AGE_BASE = 20
AGE_SPAN = 50


class WorkloadGenerator:
    """
    Produces deterministic-shape, randomized-content batches of TestRecords.

    `id_factory` and `clock` are injectable so tests can pin ids and timestamps.
    """

    def __init__(
        self,
        id_factory: Optional[Callable[[], UUID]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._id_factory = id_factory or uuid4
        self._clock = clock or (lambda: datetime.now(UTC))

    def generate(self, count: int) -> List[TestRecord]:
        """
        Generate `count` records with user_id 1..count.

        Args:
            count: Number of records (>= 0)

        Returns:
            List of TestRecords in user_id order
        """
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")

        records: List[TestRecord] = []
        for index in range(count):
            n = index + 1
            records.append(
                TestRecord(
                    id=self._id_factory(),
                    user_id=n,
                    name=f"User {n}",
                    email=f"user{n}@example.com",
                    age=AGE_BASE + (index % AGE_SPAN),
                    created_at=self._clock(),
                    data=f"Test data for user {n}",
                )
            )
        return records

    def generate_ids(self, count: int) -> List[UUID]:
        """Generate only the identifiers for read/update candidate sets."""
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        return [self._id_factory() for _ in range(count)]
