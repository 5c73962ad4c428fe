"""
hrms_batch.domain.types -- Frozen dataclasses for batch runs.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, NamedTuple
from uuid import UUID


class BatchItemStatus(str, Enum):
    """Per-item outcome within a batch run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # e.g. already processed by another trigger


class BatchRunStatus(str, Enum):
    COMPLETED = "completed"  # every item succeeded or there were none
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"  # no item succeeded


@dataclass(frozen=True)
class BatchItemResult:
    """Result of one item.  Each item runs in its own SAVEPOINT."""

    item_index: int
    item_key: str
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchRunResult:
    """Result of ``BatchExecutor.run()``."""

    task_type: str
    status: BatchRunStatus
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0


class SweepFailure(NamedTuple):
    employment_id: UUID
    error_code: str
    message: str


@dataclass(frozen=True)
class SweepResult:
    """Summary of one probation sweep."""

    as_of: date
    processed_count: int
    skipped_count: int
    failed: tuple[SweepFailure, ...] = ()
    dry_run: bool = False
    # Employments that were eligible when the sweep started
    candidates: tuple[UUID, ...] = ()
    processed_ids: tuple[UUID, ...] = ()
    skipped_ids: tuple[UUID, ...] = ()
    duration_ms: int = 0

    @property
    def failed_count(self) -> int:
        return len(self.failed)
