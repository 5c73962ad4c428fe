"""
BatchExecutor -- SAVEPOINT-per-item batch execution.

Contract:
    ``run(task, parameters, as_of)`` prepares the task's items and executes
    each inside its own SAVEPOINT.  A failing item rolls back only its own
    SAVEPOINT; the remaining items still run.

Invariants enforced:
    - SAVEPOINT isolation per item.
    - All timestamps come from the injected Clock.
    - With ``commit_each_item=True`` every succeeded item is committed
      before the next one starts, so a crash mid-run loses no finished work.
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from hrms_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
)
from hrms_batch.tasks.base import BatchItemInput, BatchTask
from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.logging_config import get_logger

logger = get_logger("batch.executor")


class BatchExecutor:
    """Runs batch tasks item by item.

    Non-goals:
        - Does NOT manage background threads; see DailySweepScheduler.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        commit_each_item: bool = False,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._commit_each_item = commit_each_item

    def prepare(
        self,
        task: BatchTask,
        parameters: dict[str, Any],
        as_of: date,
    ) -> tuple[BatchItemInput, ...]:
        return task.prepare_items(parameters=parameters, session=self._session, as_of=as_of)

    def run(
        self,
        task: BatchTask,
        parameters: dict[str, Any] | None = None,
        as_of: date | None = None,
        items: tuple[BatchItemInput, ...] | None = None,
    ) -> BatchRunResult:
        start_time = time.monotonic()
        started_at = self._clock.now()
        parameters = parameters or {}
        as_of = as_of or started_at.date()

        if items is None:
            items = self.prepare(task, parameters, as_of)

        succeeded = failed = skipped = 0
        item_results: list[BatchItemResult] = []

        for batch_item in items:
            item_start = time.monotonic()
            item_started_at = self._clock.now()

            savepoint = self._session.begin_nested()
            try:
                result = task.execute_item(
                    item=batch_item,
                    parameters=parameters,
                    session=self._session,
                    as_of=as_of,
                )
                if result.status == BatchItemStatus.SUCCEEDED:
                    savepoint.commit()
                    if self._commit_each_item:
                        self._session.commit()
                    succeeded += 1
                elif result.status == BatchItemStatus.SKIPPED:
                    savepoint.rollback()
                    skipped += 1
                else:
                    savepoint.rollback()
                    failed += 1

                item_result = BatchItemResult(
                    item_index=batch_item.item_index,
                    item_key=batch_item.item_key,
                    status=result.status,
                    error_code=result.error_code,
                    error_message=result.error_message,
                    result_data=result.result_data,
                    duration_ms=int((time.monotonic() - item_start) * 1000),
                    started_at=item_started_at,
                    completed_at=self._clock.now(),
                )
            except Exception as exc:
                if savepoint.is_active:
                    savepoint.rollback()
                failed += 1
                logger.warning(
                    "batch_item_unhandled_exception",
                    extra={"task_type": task.task_type, "item_key": batch_item.item_key},
                    exc_info=True,
                )
                item_result = BatchItemResult(
                    item_index=batch_item.item_index,
                    item_key=batch_item.item_key,
                    status=BatchItemStatus.FAILED,
                    error_code="UNHANDLED_EXCEPTION",
                    error_message=str(exc),
                    duration_ms=int((time.monotonic() - item_start) * 1000),
                    started_at=item_started_at,
                    completed_at=self._clock.now(),
                )

            item_results.append(item_result)

        if failed == 0:
            status = BatchRunStatus.COMPLETED
        elif succeeded == 0 and skipped == 0:
            status = BatchRunStatus.FAILED
        else:
            status = BatchRunStatus.PARTIALLY_COMPLETED

        result = BatchRunResult(
            task_type=task.task_type,
            status=status,
            total_items=len(items),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            item_results=tuple(item_results),
            started_at=started_at,
            completed_at=self._clock.now(),
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        logger.info(
            "batch_run_completed",
            extra={
                "task_type": task.task_type,
                "status": status.value,
                "total_items": result.total_items,
                "succeeded": succeeded,
                "failed": failed,
                "skipped": skipped,
            },
        )
        return result
