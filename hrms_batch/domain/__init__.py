"""Pure batch DTOs and schedule evaluation."""

from hrms_batch.domain.schedule import should_run_sweep
from hrms_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    SweepFailure,
    SweepResult,
)

__all__ = [
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunResult",
    "BatchRunStatus",
    "SweepFailure",
    "SweepResult",
    "should_run_sweep",
]
