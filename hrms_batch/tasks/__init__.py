"""
hrms_batch.tasks -- Task protocol, registry and task implementations.
"""

from hrms_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
    default_task_registry,
)
from hrms_batch.tasks.probation_tasks import ProbationSweepTask

__all__ = [
    "BatchItemInput",
    "BatchTask",
    "BatchTaskResult",
    "TaskRegistry",
    "default_task_registry",
    "ProbationSweepTask",
]
