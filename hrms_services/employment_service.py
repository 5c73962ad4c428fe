"""
Employment Service (``hrms_services.employment_service``).

Creates and updates employments together with their allocation sets.  A
change to a salary or to the probation end date recomputes every active
allocation; passing an allocation list replaces the set.  Each call writes
one history entry and commits once.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from hrms_config.schema import AllocationSettings
from hrms_engines.allocation import SalarySnapshot
from hrms_engines.allocation_validator import AllocationRequest, validate_allocation_set
from hrms_engines.probation import default_probation_end_date
from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.domain.values import to_decimal
from hrms_kernel.exceptions import InvalidEmploymentError
from hrms_kernel.logging_config import LogContext, get_logger
from hrms_kernel.models.employment import EmploymentModel, ProbationStatus
from hrms_kernel.models.probation_record import ProbationEventType, ProbationRecordModel
from hrms_services._helpers import finish, load_employment, translate_conflicts
from hrms_services.allocation_service import AllocationService, apply_recalculation
from hrms_services.history_service import EmploymentHistoryService

logger = get_logger("services.employment")

# Fields whose change triggers an allocation recompute.
RECALCULATION_TRIGGERS = frozenset(
    {"probation_salary", "post_probation_salary", "probation_end_date", "start_date"}
)


@dataclass(frozen=True)
class EmploymentData:
    """Input for a new employment."""

    employee_id: UUID
    start_date: date
    post_probation_salary: Decimal
    probation_salary: Decimal | None = None
    probation_end_date: date | None = None
    end_date: date | None = None
    health_welfare: bool = False
    health_welfare_percentage: Decimal | None = None
    pvd: bool = False
    pvd_percentage: Decimal | None = None
    saving_fund: bool = False
    saving_fund_percentage: Decimal | None = None


UPDATABLE_FIELDS = frozenset(f.name for f in fields(EmploymentData)) - {"employee_id"}

_DECIMAL_FIELDS = frozenset(
    {
        "post_probation_salary",
        "probation_salary",
        "health_welfare_percentage",
        "pvd_percentage",
        "saving_fund_percentage",
    }
)


def _check_terms(values: Mapping[str, Any]) -> None:
    post = values.get("post_probation_salary")
    if post is None or post <= 0:
        raise InvalidEmploymentError("post_probation_salary", "must be greater than 0")
    probation = values.get("probation_salary")
    if probation is not None and probation <= 0:
        raise InvalidEmploymentError("probation_salary", "must be greater than 0 when set")
    start = values["start_date"]
    probation_end = values.get("probation_end_date")
    if probation_end is not None and probation_end < start:
        raise InvalidEmploymentError("probation_end_date", "must not precede start_date")
    end = values.get("end_date")
    if end is not None and end < start:
        raise InvalidEmploymentError("end_date", "must not precede start_date")


def _benefit_defaults(data: EmploymentData, settings: AllocationSettings) -> dict[str, Any]:
    return {
        "health_welfare_percentage": data.health_welfare_percentage
        if data.health_welfare_percentage is not None or not data.health_welfare
        else settings.health_welfare_percentage,
        "pvd_percentage": data.pvd_percentage
        if data.pvd_percentage is not None or not data.pvd
        else settings.pvd_percentage,
        "saving_fund_percentage": data.saving_fund_percentage
        if data.saving_fund_percentage is not None or not data.saving_fund
        else settings.saving_fund_percentage,
    }


class EmploymentService:
    """Employment create/update with allocation recompute and history."""

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

    def get_employment(self, employment_id: UUID) -> EmploymentModel:
        return load_employment(self._session, employment_id)

    def create_employment(
        self,
        data: EmploymentData,
        allocations: Sequence[AllocationRequest],
        actor_id: UUID,
    ) -> EmploymentModel:
        """
        Create an employment, its initial probation record and its
        allocation set in one transaction.

        Raises:
            InvalidEmploymentError: inconsistent salary or date fields.
            AllocationError / SalaryError: the allocation set is invalid.
        """
        values = {f.name: getattr(data, f.name) for f in fields(data)}
        for name in _DECIMAL_FIELDS:
            if values[name] is not None:
                values[name] = to_decimal(values[name])
        if values["probation_end_date"] is None:
            values["probation_end_date"] = default_probation_end_date(
                data.start_date, self._settings.probation_months
            )
        values.update(_benefit_defaults(data, self._settings))
        _check_terms(values)
        validated = validate_allocation_set(
            requests=allocations, tolerance=self._settings.fte_tolerance
        )

        employment = EmploymentModel(
            **values,
            probation_completed=False,
            probation_status=ProbationStatus.ONGOING.value,
            created_by_id=actor_id,
        )
        try:
            # Amounts are computed before the employment is added.
            rows = self._allocations.build_allocations(employment, validated, actor_id)
            self._session.add(employment)
            employment.allocations.extend(rows)
            self._session.flush()

            self._session.add(
                ProbationRecordModel(
                    employment_id=employment.id,
                    employee_id=employment.employee_id,
                    event_type=ProbationEventType.INITIAL.value,
                    event_date=employment.start_date,
                    probation_start_date=employment.start_date,
                    probation_end_date=employment.probation_end_date,
                    extension_number=0,
                    is_active=True,
                    created_by_id=actor_id,
                )
            )
            self._history.record(employment, "Employment created", actor_id)
            finish(
                self._session,
                auto_commit=self._auto_commit,
                entity_type="Employment",
                entity_id=employment.id,
            )
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

        logger.info(
            "employment_created",
            extra={
                "employment_id": str(employment.id),
                "employee_id": str(employment.employee_id),
                "probation_end_date": employment.probation_end_date.isoformat(),
                "allocation_count": len(rows),
            },
        )
        return employment

    def update_employment(
        self,
        employment_id: UUID,
        changes: Mapping[str, Any],
        actor_id: UUID,
        allocations: Sequence[AllocationRequest] | None = None,
        reason: str = "Employment updated",
    ) -> EmploymentModel:
        """
        Apply field changes; recompute or replace allocations as needed.

        Raises:
            InvalidEmploymentError: unknown field or inconsistent result.
            EmploymentNotFoundError: no such employment.
            PersistenceConflictError: concurrent modification.
        """
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise InvalidEmploymentError(", ".join(unknown), "field cannot be updated")
        validated = None
        if allocations is not None:
            validated = validate_allocation_set(
                requests=allocations, tolerance=self._settings.fte_tolerance
            )

        try:
            with translate_conflicts("Employment", employment_id):
                employment = load_employment(self._session, employment_id, for_update=True)
                with LogContext.bind(employment_id=str(employment_id), actor_id=str(actor_id)):
                    updated = self._apply_update(employment, changes, actor_id, validated, reason)
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
        return updated

    def _apply_update(
        self,
        employment: EmploymentModel,
        changes: Mapping[str, Any],
        actor_id: UUID,
        validated: list[AllocationRequest] | None,
        reason: str,
    ) -> EmploymentModel:
        normalized = {
            key: to_decimal(value) if key in _DECIMAL_FIELDS and value is not None else value
            for key, value in changes.items()
        }
        current = {name: getattr(employment, name) for name in UPDATABLE_FIELDS}
        proposed = {**current, **normalized}
        _check_terms(proposed)

        moved = {key for key, value in normalized.items() if current[key] != value}
        if employment.probation_completed and "probation_end_date" in moved:
            raise InvalidEmploymentError(
                "probation_end_date", "cannot change once probation is completed"
            )
        before = self._history.snapshot(employment)
        as_of = self._clock.today()

        # Recompute against the proposed terms before touching the row.
        recalculated = []
        if validated is None and moved & RECALCULATION_TRIGGERS:
            recalculated = self._allocations.recalculate_active(
                employment,
                as_of,
                actor_id,
                apply=False,
                snapshot=SalarySnapshot(
                    post_probation_salary=proposed["post_probation_salary"],
                    probation_salary=proposed["probation_salary"],
                    probation_end_date=proposed["probation_end_date"],
                    start_date=proposed["start_date"],
                    probation_completed=bool(employment.probation_completed),
                ),
            )
        for key in moved:
            setattr(employment, key, proposed[key])
        employment.updated_by_id = actor_id

        if validated is not None:
            self._allocations.replace_allocations(employment, validated, actor_id, as_of)
        else:
            apply_recalculation(recalculated, actor_id)

        self._history.record(employment, reason, actor_id, before=before)

        logger.info(
            "employment_updated",
            extra={
                "employment_id": str(employment.id),
                "changed_fields": sorted(moved),
                "allocations_replaced": validated is not None,
                "allocations_recalculated": len(recalculated),
            },
        )
        return employment
