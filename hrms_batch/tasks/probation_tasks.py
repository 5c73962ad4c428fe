"""
Batch task: probation completion sweep.

Selects every employment whose probation has reached its end date and is
still open, then completes each one through ProbationService inside the
executor's per-item SAVEPOINT.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from hrms_batch.domain.types import BatchItemStatus
from hrms_batch.tasks.base import BatchItemInput, BatchTaskResult
from hrms_config.schema import AllocationSettings
from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.exceptions import AlreadyProcessedError, HrmsKernelError
from hrms_kernel.models.employment import EmploymentModel, ProbationStatus
from hrms_services._helpers import SYSTEM_ACTOR_ID
from hrms_services.probation_service import ProbationService


class ProbationSweepTask:
    """Complete every probation that is due as of the run date.

    Parameters:
        employment_id: restrict the run to one employment (optional).
        actor_id: actor recorded on the writes (defaults to the system actor).
    """

    TASK_TYPE = "probation.completion_sweep"

    def __init__(
        self,
        settings: AllocationSettings | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings or AllocationSettings()
        self._clock = clock or SystemClock()

    @property
    def task_type(self) -> str:
        return self.TASK_TYPE

    @property
    def description(self) -> str:
        return "Move allocations of employments past probation to the post-probation salary"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: date,
    ) -> tuple[BatchItemInput, ...]:
        # Catches up on days a previous sweep missed; the flag keeps it idempotent.
        # An employment still held on its probation end date stays due even if
        # it has ended by the time a catch-up run reaches it.
        stmt = (
            select(EmploymentModel.id, EmploymentModel.probation_end_date)
            .where(
                EmploymentModel.probation_completed == False,  # noqa: E712
                EmploymentModel.probation_status != ProbationStatus.FAILED.value,
                EmploymentModel.probation_end_date.is_not(None),
                EmploymentModel.probation_end_date <= as_of,
                or_(
                    EmploymentModel.end_date.is_(None),
                    EmploymentModel.end_date >= EmploymentModel.probation_end_date,
                ),
            )
            .order_by(EmploymentModel.probation_end_date, EmploymentModel.id)
        )
        employment_id = parameters.get("employment_id")
        if employment_id is not None:
            stmt = stmt.where(EmploymentModel.id == UUID(str(employment_id)))

        rows = session.execute(stmt).all()
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(row.id),
                payload={"probation_end_date": row.probation_end_date.isoformat()},
            )
            for i, row in enumerate(rows)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: date,
    ) -> BatchTaskResult:
        actor_id = UUID(str(parameters.get("actor_id") or SYSTEM_ACTOR_ID))
        service = ProbationService(
            session, self._settings, self._clock, auto_commit=False
        )
        try:
            result = service.complete_probation(UUID(item.item_key), actor_id)
        except AlreadyProcessedError as exc:
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                error_code=exc.code,
                error_message=str(exc),
            )
        except HrmsKernelError as exc:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code=exc.code,
                error_message=str(exc),
            )

        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "transition_date": result.transition_date.isoformat(),
                "allocation_count": len(result.changes),
                "new_amounts": [str(c.new_amount) for c in result.changes],
            },
        )
