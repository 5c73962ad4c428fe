"""
ProbationSweepDriver -- the once-a-day probation completion run.

Contract:
    ``run_daily_sweep(as_of=None, dry_run=False, employment_id=None)``
    finds every employment whose probation is due, completes each one
    independently and returns a SweepResult.  One employment's failure
    never stops the others.

Restart safety:
    The ``probation_completed`` flag, not sweep bookkeeping, decides what
    is left to do.  Each succeeded employment is committed before the next
    starts, so a crash leaves the rest DUE for the next run.
"""

from __future__ import annotations

import time
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from hrms_batch.domain.types import BatchItemStatus, SweepFailure, SweepResult
from hrms_batch.services.executor import BatchExecutor
from hrms_batch.tasks.base import TaskRegistry, default_task_registry
from hrms_batch.tasks.probation_tasks import ProbationSweepTask
from hrms_config.loader import compute_checksum
from hrms_config.schema import AllocationSettings
from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.logging_config import LogContext, get_logger
from hrms_services._helpers import SYSTEM_ACTOR_ID

logger = get_logger("batch.sweep")


class ProbationSweepDriver:
    """Runs the registered probation sweep task through a committing BatchExecutor."""

    def __init__(
        self,
        session: Session,
        settings: AllocationSettings | None = None,
        clock: Clock | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
        registry: TaskRegistry | None = None,
    ):
        self._session = session
        self._settings = settings or AllocationSettings()
        self._clock = clock or SystemClock()
        self._actor_id = actor_id
        if registry is None:
            registry = default_task_registry(self._settings, self._clock)
        self._task = registry.get(ProbationSweepTask.TASK_TYPE)
        self._executor = BatchExecutor(session, self._clock, commit_each_item=True)

    def run_daily_sweep(
        self,
        as_of: date | None = None,
        dry_run: bool = False,
        employment_id: UUID | None = None,
    ) -> SweepResult:
        as_of = as_of or self._clock.today()
        parameters: dict = {"actor_id": str(self._actor_id)}
        if employment_id is not None:
            parameters["employment_id"] = str(employment_id)

        with LogContext.bind(
            correlation_id=str(uuid4()),
            job_name="probation_sweep",
            actor_id=str(self._actor_id),
        ):
            start = time.monotonic()
            items = self._executor.prepare(self._task, parameters, as_of)
            candidates = tuple(UUID(item.item_key) for item in items)
            logger.info(
                "probation_sweep_started",
                extra={
                    "as_of": as_of.isoformat(),
                    "candidate_count": len(candidates),
                    "dry_run": dry_run,
                    "settings_checksum": compute_checksum(self._settings),
                },
            )

            if dry_run:
                # Release the read transaction; nothing was written.
                self._session.rollback()
                result = SweepResult(
                    as_of=as_of,
                    processed_count=0,
                    skipped_count=0,
                    dry_run=True,
                    candidates=candidates,
                    duration_ms=int((time.monotonic() - start) * 1000),
                )
                logger.info(
                    "probation_sweep_dry_run",
                    extra={"candidates": [str(c) for c in candidates]},
                )
                return result

            run = self._executor.run(self._task, parameters, as_of, items=items)
            # Nothing is pending after the last item; end the read transaction.
            self._session.commit()

            failures: list[SweepFailure] = []
            processed_ids: list[UUID] = []
            skipped_ids: list[UUID] = []
            for item in run.item_results:
                if item.status == BatchItemStatus.FAILED:
                    failures.append(
                        SweepFailure(
                            employment_id=UUID(item.item_key),
                            error_code=item.error_code or "UNKNOWN",
                            message=item.error_message or "",
                        )
                    )
                    logger.error(
                        "sweep_item_failed",
                        extra={
                            "employment_id": item.item_key,
                            "error_code": item.error_code,
                            "error_message": item.error_message,
                        },
                    )
                elif item.status == BatchItemStatus.SKIPPED:
                    skipped_ids.append(UUID(item.item_key))
                    logger.info(
                        "sweep_item_skipped",
                        extra={"employment_id": item.item_key, "reason": item.error_code},
                    )
                else:
                    processed_ids.append(UUID(item.item_key))
                    logger.info(
                        "sweep_item_processed",
                        extra={"employment_id": item.item_key, **(item.result_data or {})},
                    )

            result = SweepResult(
                as_of=as_of,
                processed_count=run.succeeded,
                skipped_count=run.skipped,
                failed=tuple(failures),
                candidates=candidates,
                processed_ids=tuple(processed_ids),
                skipped_ids=tuple(skipped_ids),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info(
                "probation_sweep_completed",
                extra={
                    "as_of": as_of.isoformat(),
                    "processed_count": result.processed_count,
                    "skipped_count": result.skipped_count,
                    "failed_count": result.failed_count,
                    "duration_ms": result.duration_ms,
                },
            )
            return result
