"""
Module: hrms_kernel.models.funding_allocation
Responsibility: ORM persistence for the split of an employment's salary
    across grant slots and organization funds.
Architecture position: Kernel > Models.  May import from db/ and domain/values.py.

Invariants enforced:
    - Exactly one of grant_slot_id / org_fund_id is set
      (ck_allocation_single_source).
    - fte is a fraction in (0, 1]; fte_percentage is the interface value.
    - allocated_amount and salary_basis are written by the calculator only.
    - Active allocations of one employment sum to 100% FTE.  Checked by the
      allocation validator before every full replace, not by the database.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_kernel.db.base import TrackedBase, UUIDString
from hrms_kernel.domain.values import strip_trailing_zeros

if TYPE_CHECKING:
    from hrms_kernel.models.employment import EmploymentModel

_HUNDRED = Decimal("100")


class AllocationStatus(str, Enum):
    ACTIVE = "active"
    TERMINATED = "terminated"


class FundingAllocationModel(TrackedBase):
    """One funding source's share of an employment."""

    __tablename__ = "funding_allocations"

    __table_args__ = (
        CheckConstraint(
            "(grant_slot_id IS NOT NULL AND org_fund_id IS NULL) OR "
            "(grant_slot_id IS NULL AND org_fund_id IS NOT NULL)",
            name="ck_allocation_single_source",
        ),
        CheckConstraint("fte > 0 AND fte <= 1", name="ck_allocation_fte_range"),
        Index("idx_allocation_employment", "employment_id"),
        Index("idx_allocation_status", "status"),
    )

    employment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("employments.id"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Order within the submitted allocation set
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    # Funding source discriminator + reference
    funding_source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    grant_slot_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    org_fund_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    fte: Mapped[Decimal] = mapped_column(nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)
    salary_basis: Mapped[str] = mapped_column(String(20), nullable=False)

    status: Mapped[AllocationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AllocationStatus.ACTIVE.value,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    employment: Mapped["EmploymentModel"] = relationship(
        "EmploymentModel",
        back_populates="allocations",
    )

    @property
    def fte_percentage(self) -> Decimal:
        return strip_trailing_zeros(Decimal(self.fte) * _HUNDRED)

    @property
    def funding_source_id(self) -> UUID:
        return self.grant_slot_id if self.grant_slot_id is not None else self.org_fund_id

    @property
    def is_active(self) -> bool:
        return self.status == AllocationStatus.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<FundingAllocation {self.funding_source_type}:{self.funding_source_id} "
            f"fte={self.fte_percentage}% amount={self.allocated_amount}>"
        )
