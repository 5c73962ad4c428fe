"""
Shared helpers for the HRMS services.

Loading employments (optionally under a row lock) and closing a service
operation with commit or flush, mapping concurrent-writer failures to
PersistenceConflictError.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hrms_engines.allocation import SalarySnapshot
from hrms_kernel.exceptions import EmploymentNotFoundError, PersistenceConflictError
from hrms_kernel.logging_config import get_logger
from hrms_kernel.models.employment import EmploymentModel
from hrms_kernel.models.funding_allocation import FundingAllocationModel

logger = get_logger("services.helpers")

# Actor recorded for writes made by the scheduled sweep.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def load_employment(
    session: Session,
    employment_id: UUID,
    *,
    for_update: bool = False,
) -> EmploymentModel:
    """Fetch an employment, optionally with SELECT ... FOR UPDATE."""
    stmt = select(EmploymentModel).where(EmploymentModel.id == employment_id)
    if for_update:
        stmt = stmt.with_for_update()
    employment = session.execute(stmt).scalar_one_or_none()
    if employment is None:
        raise EmploymentNotFoundError(str(employment_id))
    return employment


def salary_snapshot(employment: EmploymentModel) -> SalarySnapshot:
    return SalarySnapshot(
        post_probation_salary=employment.post_probation_salary,
        probation_salary=employment.probation_salary,
        probation_end_date=employment.probation_end_date,
        start_date=employment.start_date,
        probation_completed=bool(employment.probation_completed),
    )


def allocation_state(allocation: FundingAllocationModel) -> dict[str, Any]:
    """JSON-ready view of one allocation for history snapshots."""
    return {
        "id": str(allocation.id) if allocation.id is not None else None,
        "funding_source_type": allocation.funding_source_type,
        "funding_source_id": str(allocation.funding_source_id),
        "fte_percentage": str(allocation.fte_percentage),
        "allocated_amount": str(Decimal(allocation.allocated_amount).quantize(Decimal("0.01"))),
        "salary_basis": allocation.salary_basis,
        "status": allocation.status,
        "end_date": allocation.end_date.isoformat() if allocation.end_date else None,
    }


@contextmanager
def translate_conflicts(entity_type: str, entity_id: UUID) -> Iterator[None]:
    """
    Surface concurrent-writer failures from any flush as PersistenceConflictError.

    StaleDataError comes from the version check on employments;
    OperationalError from lock timeouts and serialization failures.
    """
    try:
        yield
    except (StaleDataError, OperationalError) as exc:
        logger.warning(
            "persistence_conflict",
            extra={"entity_type": entity_type, "entity_id": str(entity_id)},
        )
        raise PersistenceConflictError(entity_type, str(entity_id), str(exc)) from exc


def finish(
    session: Session,
    *,
    auto_commit: bool,
    entity_type: str,
    entity_id: UUID,
) -> None:
    """
    Commit (auto_commit) or flush (caller owns the boundary).

    Raises:
        PersistenceConflictError: another writer changed the row first, or
            the database refused the write for a locking reason.
    """
    with translate_conflicts(entity_type, entity_id):
        if auto_commit:
            session.commit()
        else:
            session.flush()


def iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
