"""
Probation Service (``hrms_services.probation_service``).

Responsibility
--------------
Moves an employment's active allocations from the probation salary basis to
the post-probation basis exactly once, and records the other probation
lifecycle events: extension, failure and early termination.

Architecture position
---------------------
**Services layer** -- imperative shell around ``hrms_engines.allocation``
and ``hrms_engines.probation``.  Called directly for manual completion and
by ``hrms_batch.tasks.probation_tasks.ProbationSweepTask`` from the daily
sweep (with ``auto_commit=False`` inside a SAVEPOINT).

Invariants enforced
-------------------
* The employment row is locked (SELECT ... FOR UPDATE) before any check.
* Every check and every recalculation completes before the first write.
* ``probation_completed`` is flipped with a compare-and-set UPDATE; the
  loser of a race sees ``AlreadyProcessedError`` and writes nothing.
* Allocations, history entry, probation record and flag commit together.

Failure modes
-------------
* AlreadyProcessedError  -> flag already set; zero writes.
* ProbationAlreadyDecidedError  -> probation failed earlier.
* MissingProbationSalaryError  -> nothing to transition from.
* NoActiveAllocationsError  -> nothing to transition.
* PersistenceConflictError  -> rolled back; the employment stays DUE.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from hrms_config.schema import AllocationSettings
from hrms_engines.allocation import SalaryBasis
from hrms_engines.probation import ProbationState, probation_state
from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.exceptions import (
    AlreadyProcessedError,
    InvalidProbationDateError,
    MissingProbationSalaryError,
    NoActiveAllocationsError,
    ProbationAlreadyDecidedError,
)
from hrms_kernel.logging_config import LogContext, get_logger
from hrms_kernel.models.employment import EmploymentModel, ProbationStatus
from hrms_kernel.models.funding_allocation import AllocationStatus, FundingAllocationModel
from hrms_kernel.models.probation_record import ProbationEventType, ProbationRecordModel
from hrms_services._helpers import finish, iso, load_employment, translate_conflicts
from hrms_services.allocation_service import AllocationService, apply_recalculation
from hrms_services.history_service import EmploymentHistoryService

logger = get_logger("services.probation")


@dataclass(frozen=True)
class AllocationChange:
    allocation_id: UUID
    fte_percentage: Decimal
    old_amount: Decimal
    new_amount: Decimal
    old_basis: str
    new_basis: str


@dataclass(frozen=True)
class ProbationTransitionResult:
    """Outcome of a completed probation transition."""

    employment: EmploymentModel
    transition_date: date
    updated_allocations: tuple[FundingAllocationModel, ...]
    changes: tuple[AllocationChange, ...]


@dataclass(frozen=True)
class ProbationHistory:
    employment_id: UUID
    current_status: str
    probation_end_date: date | None
    total_extensions: int
    records: tuple[ProbationRecordModel, ...]


class ProbationService:
    """
    Probation lifecycle operations.

    Transaction boundary: ``auto_commit=True`` commits each operation once
    and rolls back on any failure.  ``auto_commit=False`` leaves the
    boundary to the caller (the sweep's per-item SAVEPOINT).
    """

    def __init__(
        self,
        session: Session,
        settings: AllocationSettings | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._settings = settings or AllocationSettings()
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._history = EmploymentHistoryService(session, self._clock)
        self._allocations = AllocationService(
            session, self._settings, self._clock, auto_commit=False
        )

    # -------------------------------------------------------------------------
    # Transition
    # -------------------------------------------------------------------------

    def state_of(self, employment_id: UUID, as_of: date | None = None) -> ProbationState:
        employment = load_employment(self._session, employment_id)
        return probation_state(
            probation_end_date=employment.probation_end_date,
            probation_completed=employment.probation_completed,
            as_of=as_of or self._clock.today(),
        )

    def complete_probation(
        self,
        employment_id: UUID,
        actor_id: UUID,
    ) -> ProbationTransitionResult:
        """
        Recompute every active allocation on the post-probation salary as of
        the probation end date and mark probation as completed.
        """
        with LogContext.bind(employment_id=str(employment_id), actor_id=str(actor_id)):
            try:
                with translate_conflicts("Employment", employment_id):
                    result = self._complete(employment_id, actor_id)
                    finish(
                        self._session,
                        auto_commit=self._auto_commit,
                        entity_type="Employment",
                        entity_id=employment_id,
                    )
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                raise

            logger.info(
                "probation_transition_completed",
                extra={
                    "transition_date": result.transition_date.isoformat(),
                    "allocation_count": len(result.changes),
                    "new_total": str(sum(c.new_amount for c in result.changes)),
                },
            )
        return result

    def _complete(self, employment_id: UUID, actor_id: UUID) -> ProbationTransitionResult:
        employment = load_employment(self._session, employment_id, for_update=True)

        if employment.probation_completed:
            raise AlreadyProcessedError(str(employment_id))
        if employment.probation_status == ProbationStatus.FAILED.value:
            raise ProbationAlreadyDecidedError(str(employment_id), employment.probation_status)
        if employment.probation_salary is None:
            raise MissingProbationSalaryError(str(employment_id))
        if employment.probation_end_date is None:
            raise InvalidProbationDateError(
                str(employment_id), "null", "probation end date is not set"
            )
        if not employment.active_allocations:
            raise NoActiveAllocationsError(str(employment_id))

        transition_date = employment.probation_end_date
        before = self._history.snapshot(employment)
        recalculated = self._allocations.recalculate_active(
            employment,
            transition_date,
            actor_id,
            force_basis=SalaryBasis.POST_PROBATION,
            apply=False,
        )

        # Compare-and-set: only one trigger may flip the flag.
        flipped = self._session.execute(
            update(EmploymentModel)
            .where(
                EmploymentModel.id == employment_id,
                EmploymentModel.probation_completed == False,  # noqa: E712
            )
            .values(probation_completed=True)
        )
        if flipped.rowcount != 1:
            raise AlreadyProcessedError(str(employment_id))

        apply_recalculation(recalculated, actor_id)
        employment.probation_status = ProbationStatus.PASSED.value
        employment.updated_by_id = actor_id

        self._append_record(
            employment,
            ProbationEventType.PASSED,
            event_date=transition_date,
            actor_id=actor_id,
            decision_reason="Probation completed",
        )

        changes = tuple(
            AllocationChange(
                allocation_id=r.allocation.id,
                fte_percentage=r.allocation.fte_percentage,
                old_amount=r.old_amount,
                new_amount=r.calculation.allocated_amount,
                old_basis=r.old_basis,
                new_basis=r.calculation.salary_basis.value,
            )
            for r in recalculated
        )
        self._history.record(
            employment,
            "Probation completed - allocations moved to post-probation salary",
            actor_id,
            before=before,
            extra_changes={
                "transition": {
                    "transition_date": transition_date.isoformat(),
                    "old_basis": sorted({c.old_basis for c in changes}),
                    "new_basis": SalaryBasis.POST_PROBATION.value,
                    "new_amounts": {
                        str(c.allocation_id): str(c.new_amount) for c in changes
                    },
                }
            },
        )
        return ProbationTransitionResult(
            employment=employment,
            transition_date=transition_date,
            updated_allocations=tuple(r.allocation for r in recalculated),
            changes=changes,
        )

    # -------------------------------------------------------------------------
    # Other lifecycle events
    # -------------------------------------------------------------------------

    def extend_probation(
        self,
        employment_id: UUID,
        new_end_date: date,
        actor_id: UUID,
        reason: str | None = None,
        notes: str | None = None,
    ) -> EmploymentModel:
        """Move the probation end date later; allocations are recomputed as of today."""
        try:
            with translate_conflicts("Employment", employment_id):
                employment = load_employment(self._session, employment_id, for_update=True)
                self._require_open(employment)
                previous = employment.probation_end_date
                if previous is not None and new_end_date <= previous:
                    raise InvalidProbationDateError(
                        str(employment_id),
                        new_end_date.isoformat(),
                        f"must be after the current end date {previous.isoformat()}",
                    )
                if new_end_date < employment.start_date:
                    raise InvalidProbationDateError(
                        str(employment_id), new_end_date.isoformat(), "precedes start date"
                    )

                before = self._history.snapshot(employment)
                employment.probation_end_date = new_end_date
                recalculated = self._allocations.recalculate_active(
                    employment, self._clock.today(), actor_id, apply=False
                )
                apply_recalculation(recalculated, actor_id)
                employment.probation_status = ProbationStatus.EXTENDED.value
                employment.updated_by_id = actor_id

                record = self._append_record(
                    employment,
                    ProbationEventType.EXTENSION,
                    event_date=self._clock.today(),
                    actor_id=actor_id,
                    previous_end_date=previous,
                    decision_reason=reason,
                    notes=notes,
                )
                self._history.record(
                    employment,
                    reason or "Probation extended",
                    actor_id,
                    before=before,
                    notes=notes,
                )
                finish(
                    self._session,
                    auto_commit=self._auto_commit,
                    entity_type="Employment",
                    entity_id=employment_id,
                )
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

        logger.info(
            "probation_extended",
            extra={
                "employment_id": str(employment_id),
                "previous_end_date": iso(previous),
                "new_end_date": new_end_date.isoformat(),
                "extension_number": record.extension_number,
            },
        )
        return employment

    def fail_probation(
        self,
        employment_id: UUID,
        actor_id: UUID,
        decision_date: date | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> EmploymentModel:
        """Record a failed probation and terminate the active allocations."""
        decision_date = decision_date or self._clock.today()
        return self._close_probation(
            employment_id,
            actor_id,
            decision_date,
            reason or "Probation failed",
            notes,
            end_employment=False,
        )

    def handle_early_termination(
        self,
        employment_id: UUID,
        end_date: date,
        actor_id: UUID,
        reason: str | None = None,
    ) -> EmploymentModel:
        """Employment ends during probation: set end_date and terminate allocations."""
        return self._close_probation(
            employment_id,
            actor_id,
            end_date,
            reason or "Employment terminated during probation",
            None,
            end_employment=True,
        )

    def _close_probation(
        self,
        employment_id: UUID,
        actor_id: UUID,
        decision_date: date,
        reason: str,
        notes: str | None,
        end_employment: bool,
    ) -> EmploymentModel:
        try:
            with translate_conflicts("Employment", employment_id):
                employment = load_employment(self._session, employment_id, for_update=True)
                self._require_open(employment)
                if decision_date < employment.start_date:
                    raise InvalidProbationDateError(
                        str(employment_id), decision_date.isoformat(), "precedes start date"
                    )

                before = self._history.snapshot(employment)
                terminated = 0
                for allocation in employment.active_allocations:
                    allocation.status = AllocationStatus.TERMINATED.value
                    allocation.end_date = decision_date
                    allocation.updated_by_id = actor_id
                    terminated += 1
                if end_employment:
                    employment.end_date = decision_date
                employment.probation_status = ProbationStatus.FAILED.value
                employment.updated_by_id = actor_id

                self._append_record(
                    employment,
                    ProbationEventType.FAILED,
                    event_date=decision_date,
                    actor_id=actor_id,
                    decision_reason=reason,
                    notes=notes,
                )
                self._history.record(employment, reason, actor_id, before=before, notes=notes)
                finish(
                    self._session,
                    auto_commit=self._auto_commit,
                    entity_type="Employment",
                    entity_id=employment_id,
                )
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

        logger.info(
            "probation_failed",
            extra={
                "employment_id": str(employment_id),
                "decision_date": decision_date.isoformat(),
                "terminated_allocations": terminated,
                "early_termination": end_employment,
            },
        )
        return employment

    def probation_history(self, employment_id: UUID) -> ProbationHistory:
        employment = load_employment(self._session, employment_id)
        records = tuple(
            self._session.execute(
                select(ProbationRecordModel)
                .where(ProbationRecordModel.employment_id == employment_id)
                .order_by(
                    ProbationRecordModel.extension_number,
                    ProbationRecordModel.event_date,
                )
            ).scalars()
        )
        return ProbationHistory(
            employment_id=employment.id,
            current_status=employment.probation_status,
            probation_end_date=employment.probation_end_date,
            total_extensions=sum(
                1 for r in records if r.event_type == ProbationEventType.EXTENSION.value
            ),
            records=records,
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _require_open(self, employment: EmploymentModel) -> None:
        if employment.probation_completed or employment.probation_status in (
            ProbationStatus.PASSED.value,
            ProbationStatus.FAILED.value,
        ):
            raise ProbationAlreadyDecidedError(
                str(employment.id), employment.probation_status
            )

    def _append_record(
        self,
        employment: EmploymentModel,
        event_type: ProbationEventType,
        *,
        event_date: date,
        actor_id: UUID,
        previous_end_date: date | None = None,
        decision_reason: str | None = None,
        notes: str | None = None,
    ) -> ProbationRecordModel:
        """Deactivate the current record and append the next one."""
        active = self._session.execute(
            select(ProbationRecordModel).where(
                ProbationRecordModel.employment_id == employment.id,
                ProbationRecordModel.is_active == True,  # noqa: E712
            )
        ).scalars().all()
        extension_number = max((r.extension_number for r in active), default=0)
        for record in active:
            record.is_active = False
            record.updated_by_id = actor_id
        if event_type == ProbationEventType.EXTENSION:
            extension_number += 1

        record = ProbationRecordModel(
            employment_id=employment.id,
            employee_id=employment.employee_id,
            event_type=event_type.value,
            event_date=event_date,
            probation_start_date=employment.start_date,
            probation_end_date=employment.probation_end_date or event_date,
            previous_end_date=previous_end_date,
            extension_number=extension_number,
            decision_reason=decision_reason,
            notes=notes,
            is_active=True,
            created_by_id=actor_id,
        )
        self._session.add(record)
        return record
