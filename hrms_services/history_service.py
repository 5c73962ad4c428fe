"""
Employment history recorder.

Every employment mutation and every probation lifecycle event appends one
immutable EmploymentHistoryModel row holding the post-change snapshot and a
field-level diff against the pre-change snapshot.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.logging_config import get_logger
from hrms_kernel.models.employment import EmploymentModel
from hrms_kernel.models.employment_history import EmploymentHistoryModel
from hrms_services._helpers import allocation_state

logger = get_logger("services.history")


def diff_snapshots(
    before: dict[str, Any] | None,
    after: dict[str, Any],
) -> dict[str, dict[str, Any]]:
    """{field: {"old": .., "new": ..}} for every key whose value moved."""
    if before is None:
        return {}
    changes: dict[str, dict[str, Any]] = {}
    for key in sorted(set(before) | set(after)):
        old, new = before.get(key), after.get(key)
        if old != new:
            changes[key] = {"old": old, "new": new}
    return changes


class EmploymentHistoryService:
    """Appends history entries; never updates or deletes them."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def snapshot(self, employment: EmploymentModel) -> dict[str, Any]:
        """Employment fields plus the current allocation rows."""
        data = employment.snapshot()
        data["allocations"] = [allocation_state(a) for a in employment.allocations]
        return data

    def record(
        self,
        employment: EmploymentModel,
        reason: str,
        actor_id: UUID,
        *,
        before: dict[str, Any] | None = None,
        extra_changes: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> EmploymentHistoryModel:
        # Flush so generated ids appear in the snapshot.
        self._session.flush()
        after = self.snapshot(employment)
        changes = diff_snapshots(before, after)
        if extra_changes:
            changes.update(extra_changes)

        entry = EmploymentHistoryModel(
            employment_id=employment.id,
            employee_id=employment.employee_id,
            reason=reason,
            snapshot=after,
            changes=changes,
            notes=notes,
            changed_by=actor_id,
            recorded_at=self._clock.now(),
        )
        self._session.add(entry)

        logger.info(
            "employment_history_recorded",
            extra={
                "employment_id": str(employment.id),
                "reason": reason,
                "changed_fields": sorted(changes),
            },
        )
        return entry

    def entries_for(self, employment_id: UUID) -> list[EmploymentHistoryModel]:
        return list(
            self._session.execute(
                select(EmploymentHistoryModel)
                .where(EmploymentHistoryModel.employment_id == employment_id)
                .order_by(EmploymentHistoryModel.recorded_at)
            ).scalars()
        )
