"""
Module: hrms_kernel.models.employment
Responsibility: ORM persistence for an employee's employment terms: salary
    figures, key dates, probation lifecycle state and benefit flags.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - post_probation_salary > 0 (ck_employment_post_salary_positive).
    - probation_completed flips false -> true exactly once.  The flip is a
      compare-and-set UPDATE issued by the probation service.
    - version is a SQLAlchemy version_id_col: an ORM flush against a stale
      row raises StaleDataError, surfaced as PersistenceConflictError.

Failure modes:
    - IntegrityError when post_probation_salary is not positive.
    - StaleDataError on concurrent modification of the same row.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from hrms_kernel.models.funding_allocation import FundingAllocationModel


class ProbationStatus(str, Enum):
    """Probation lifecycle status.

    Contract: ONGOING -> EXTENDED* -> PASSED | FAILED.  PASSED and FAILED
    are terminal.
    """

    ONGOING = "ongoing"
    EXTENDED = "extended"
    PASSED = "passed"
    FAILED = "failed"


# Fields captured in history snapshots and diffs.
SNAPSHOT_FIELDS = (
    "employee_id",
    "start_date",
    "end_date",
    "probation_end_date",
    "probation_salary",
    "post_probation_salary",
    "probation_completed",
    "probation_status",
    "health_welfare",
    "health_welfare_percentage",
    "pvd",
    "pvd_percentage",
    "saving_fund",
    "saving_fund_percentage",
)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, Decimal, UUID)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


class EmploymentModel(TrackedBase):
    """
    Employment terms for one employee.

    Guarantees:
        - probation_salary may be NULL: the post-probation salary then
          applies for the whole period.
        - allocations holds every funding allocation row, active or not.
    """

    __tablename__ = "employments"

    __table_args__ = (
        CheckConstraint(
            "post_probation_salary > 0",
            name="ck_employment_post_salary_positive",
        ),
        Index("idx_employment_employee", "employee_id"),
        Index(
            "idx_employment_probation_due",
            "probation_completed",
            "probation_end_date",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    probation_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    probation_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    post_probation_salary: Mapped[Decimal] = mapped_column(nullable=False)

    probation_completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    probation_status: Mapped[ProbationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ProbationStatus.ONGOING.value,
    )

    # Benefits -- orthogonal to allocation math
    health_welfare: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    health_welfare_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    pvd: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pvd_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    saving_fund: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    saving_fund_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    allocations: Mapped[list["FundingAllocationModel"]] = relationship(
        "FundingAllocationModel",
        back_populates="employment",
        cascade="all, delete-orphan",
        order_by="FundingAllocationModel.position",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def active_allocations(self) -> list["FundingAllocationModel"]:
        return [a for a in self.allocations if a.is_active]

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready copy of the employment state for history entries."""
        data = {name: _jsonable(getattr(self, name)) for name in SNAPSHOT_FIELDS}
        data["id"] = str(self.id) if self.id is not None else None
        return data

    def __repr__(self) -> str:
        return (
            f"<Employment {self.id} employee={self.employee_id} "
            f"status={self.probation_status}>"
        )
