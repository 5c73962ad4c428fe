"""
Allocation Service (``hrms_services.allocation_service``).

Responsibility
--------------
Computes, replaces and summarizes an employment's funding allocations by
composing the pure calculator and validator from ``hrms_engines`` with
SQLAlchemy persistence.

Invariants enforced
-------------------
* Validation (set rules, FTE range, salary presence) runs before any write.
* Replacement is delete-all-then-insert in one transaction together with
  the history entry; readers never see a partial set.
* ``allocated_amount`` and ``salary_basis`` are always calculator output.

Failure modes
-------------
* AllocationError / SalaryError subclasses  -> nothing written.
* EmploymentNotFoundError  -> nothing written.
* PersistenceConflictError  -> transaction rolled back, safe to retry.

Usage::

    service = AllocationService(session, settings=settings, clock=clock)
    rows = service.create_or_replace_allocations(
        employment_id,
        [AllocationRequest.grant_slot(slot_id, Decimal("70")),
         AllocationRequest.org_fund(fund_id, Decimal("30"))],
        actor_id=actor_id,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from hrms_config.schema import AllocationSettings
from hrms_engines.allocation import (
    AllocationCalculation,
    SalaryBasis,
    SalarySnapshot,
    calculate_allocation,
)
from hrms_engines.allocation_validator import AllocationRequest, validate_allocation_set
from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.logging_config import get_logger
from hrms_kernel.models.employment import EmploymentModel
from hrms_kernel.models.funding_allocation import AllocationStatus, FundingAllocationModel
from hrms_services._helpers import (
    finish,
    load_employment,
    salary_snapshot,
    translate_conflicts,
)
from hrms_services.history_service import EmploymentHistoryService

logger = get_logger("services.allocation")

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AllocationLine:
    allocation_id: UUID
    funding_source_type: str
    funding_source_id: UUID
    fte_percentage: Decimal
    allocated_amount: Decimal
    salary_basis: str
    status: str


@dataclass(frozen=True)
class AllocationSummary:
    """Active allocations of one employment with their totals."""

    employment_id: UUID
    total_fte_percentage: Decimal
    total_allocated_amount: Decimal
    is_complete: bool
    lines: tuple[AllocationLine, ...]


@dataclass(frozen=True)
class RecalculatedAllocation:
    allocation: FundingAllocationModel
    old_amount: Decimal
    old_basis: str
    calculation: AllocationCalculation


class AllocationService:
    """
    Funding allocation operations for one session.

    Transaction boundary: with ``auto_commit=True`` each public write commits
    on success and rolls back on failure.  With ``auto_commit=False`` the
    caller owns the boundary and the service only flushes.
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

    # -------------------------------------------------------------------------
    # Read-only
    # -------------------------------------------------------------------------

    def calculate_allocation(
        self,
        employment_id: UUID,
        fte_percentage: Decimal,
        as_of_date: date | None = None,
    ) -> AllocationCalculation:
        """Preview the amount an FTE share would get. Writes nothing."""
        employment = load_employment(self._session, employment_id)
        as_of = as_of_date or self._clock.today()
        calc = calculate_allocation(
            snapshot=salary_snapshot(employment),
            fte_percentage=fte_percentage,
            as_of_date=as_of,
            currency_places=self._settings.currency_places,
        )
        logger.info(
            "allocation_calculated",
            extra={
                "employment_id": str(employment_id),
                "fte_percentage": str(calc.fte_percentage),
                "salary_basis": calc.salary_basis.value,
                "allocated_amount": str(calc.allocated_amount),
                "as_of_date": as_of.isoformat(),
            },
        )
        return calc

    def allocation_summary(self, employment_id: UUID) -> AllocationSummary:
        employment = load_employment(self._session, employment_id)
        active = employment.active_allocations
        lines = tuple(
            AllocationLine(
                allocation_id=a.id,
                funding_source_type=a.funding_source_type,
                funding_source_id=a.funding_source_id,
                fte_percentage=a.fte_percentage,
                allocated_amount=Decimal(a.allocated_amount).quantize(Decimal("0.01")),
                salary_basis=a.salary_basis,
                status=a.status,
            )
            for a in active
        )
        total_fte = sum((line.fte_percentage for line in lines), Decimal("0"))
        total_amount = sum((line.allocated_amount for line in lines), Decimal("0"))
        return AllocationSummary(
            employment_id=employment.id,
            total_fte_percentage=total_fte,
            total_allocated_amount=total_amount,
            is_complete=abs(total_fte - _HUNDRED) <= self._settings.fte_tolerance,
            lines=lines,
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create_or_replace_allocations(
        self,
        employment_id: UUID,
        requests: Sequence[AllocationRequest],
        actor_id: UUID,
    ) -> list[FundingAllocationModel]:
        """
        Replace the whole allocation set of an employment.

        Validates the set, computes every amount, then deletes the previous
        rows and inserts the new ones in one transaction.
        """
        validated = validate_allocation_set(
            requests=requests, tolerance=self._settings.fte_tolerance
        )
        try:
            with translate_conflicts("Employment", employment_id):
                employment = load_employment(self._session, employment_id, for_update=True)
                before = self._history.snapshot(employment)
                rows = self.replace_allocations(employment, validated, actor_id)
                self._history.record(
                    employment,
                    "Funding allocations replaced",
                    actor_id,
                    before=before,
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
            "allocations_replaced",
            extra={
                "employment_id": str(employment_id),
                "allocation_count": len(rows),
                "total_allocated": str(sum(r.allocated_amount for r in rows)),
            },
        )
        return rows

    # -------------------------------------------------------------------------
    # Building blocks shared with EmploymentService / ProbationService
    # -------------------------------------------------------------------------

    def build_allocations(
        self,
        employment: EmploymentModel,
        requests: Sequence[AllocationRequest],
        actor_id: UUID,
        as_of: date | None = None,
    ) -> list[FundingAllocationModel]:
        """Calculate and construct (not persist) rows for a validated set."""
        as_of = as_of or self._clock.today()
        snapshot = salary_snapshot(employment)
        rows: list[FundingAllocationModel] = []
        for position, request in enumerate(requests):
            calc = calculate_allocation(
                snapshot=snapshot,
                fte_percentage=request.fte_percentage,
                as_of_date=as_of,
                currency_places=self._settings.currency_places,
            )
            rows.append(
                FundingAllocationModel(
                    employee_id=employment.employee_id,
                    position=position,
                    funding_source_type=request.funding_source_type.value,
                    grant_slot_id=request.grant_slot_id,
                    org_fund_id=request.org_fund_id,
                    fte=calc.fte_percentage / _HUNDRED,
                    allocated_amount=calc.allocated_amount,
                    salary_basis=calc.salary_basis.value,
                    status=AllocationStatus.ACTIVE.value,
                    start_date=max(employment.start_date, as_of),
                    created_by_id=actor_id,
                )
            )
        return rows

    def replace_allocations(
        self,
        employment: EmploymentModel,
        requests: Sequence[AllocationRequest],
        actor_id: UUID,
        as_of: date | None = None,
    ) -> list[FundingAllocationModel]:
        """Delete every existing row and attach the new set (no commit)."""
        # All calculations happen before the old rows are touched.
        rows = self.build_allocations(employment, requests, actor_id, as_of)
        employment.allocations.clear()
        self._session.flush()
        employment.allocations.extend(rows)
        self._session.flush()
        return rows

    def recalculate_active(
        self,
        employment: EmploymentModel,
        as_of: date,
        actor_id: UUID,
        force_basis: SalaryBasis | None = None,
        apply: bool = True,
        snapshot: SalarySnapshot | None = None,
    ) -> list[RecalculatedAllocation]:
        """
        Recompute every active allocation against the salary state.

        ``snapshot`` defaults to the employment's stored salary fields.
        With ``apply=False`` nothing is modified, so callers can finish all
        checks before the first write.
        """
        snapshot = snapshot or salary_snapshot(employment)
        results = [
            RecalculatedAllocation(
                allocation=allocation,
                old_amount=Decimal(allocation.allocated_amount),
                old_basis=allocation.salary_basis,
                calculation=calculate_allocation(
                    snapshot=snapshot,
                    fte_percentage=allocation.fte_percentage,
                    as_of_date=as_of,
                    force_basis=force_basis,
                    currency_places=self._settings.currency_places,
                ),
            )
            for allocation in employment.active_allocations
        ]
        if apply:
            apply_recalculation(results, actor_id)
        return results


def apply_recalculation(results: Sequence[RecalculatedAllocation], actor_id: UUID) -> None:
    for result in results:
        result.allocation.allocated_amount = result.calculation.allocated_amount
        result.allocation.salary_basis = result.calculation.salary_basis.value
        result.allocation.updated_by_id = actor_id
