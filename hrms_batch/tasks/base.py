"""
BatchTask protocol, supporting types, and TaskRegistry.

Contract:
    ``BatchTask`` defines the interface every batch task implements.
    ``TaskRegistry`` stores registered tasks keyed by ``task_type``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from hrms_batch.domain.types import BatchItemStatus
from hrms_kernel.exceptions import TaskNotRegisteredError

if TYPE_CHECKING:
    from hrms_config.schema import AllocationSettings
    from hrms_kernel.domain.clock import Clock


@dataclass(frozen=True)
class BatchItemInput:
    """One item to process, created by ``BatchTask.prepare_items()``."""

    item_index: int
    item_key: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchTaskResult:
    """Returned by ``BatchTask.execute_item()``."""

    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None


@runtime_checkable
class BatchTask(Protocol):
    """Interface for batch task implementations.

    Contract:
        - ``task_type``: unique key in the TaskRegistry.
        - ``prepare_items()``: selects eligible records, returns a tuple.
        - ``execute_item()``: processes ONE item inside a SAVEPOINT.

    Non-goals:
        - Does NOT manage transactions; the executor owns the SAVEPOINT.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: date,
    ) -> tuple[BatchItemInput, ...]: ...

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: date,
    ) -> BatchTaskResult: ...


class TaskRegistry:
    """Registry mapping task_type strings to BatchTask implementations."""

    def __init__(self) -> None:
        self._tasks: dict[str, BatchTask] = {}

    def register(self, task: BatchTask) -> None:
        """
        Raises:
            ValueError: a task with the same task_type is already registered.
        """
        if task.task_type in self._tasks:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._tasks[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        """
        Raises:
            TaskNotRegisteredError: no task for ``task_type``.
        """
        try:
            return self._tasks[task_type]
        except KeyError:
            raise TaskNotRegisteredError(task_type, self.list_tasks()) from None

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(sorted(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_type: str) -> bool:
        return task_type in self._tasks


def default_task_registry(
    settings: AllocationSettings | None = None,
    clock: Clock | None = None,
) -> TaskRegistry:
    """A registry holding every task this package ships, bound to ``settings`` and ``clock``."""
    from hrms_batch.tasks.probation_tasks import ProbationSweepTask

    registry = TaskRegistry()
    registry.register(ProbationSweepTask(settings, clock))
    return registry
