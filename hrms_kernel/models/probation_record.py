"""
Module: hrms_kernel.models.probation_record
Responsibility: Lifecycle records of an employment's probation: the initial
    period, each extension and the final pass/fail decision.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one active record per employment.  Services deactivate the
      current record before appending the next one.
    - Event fields are immutable after insert; only is_active may change.
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hrms_kernel.db.base import TrackedBase, UUIDString


class ProbationEventType(str, Enum):
    INITIAL = "initial"
    EXTENSION = "extension"
    PASSED = "passed"
    FAILED = "failed"


class ProbationRecordModel(TrackedBase):
    """One probation lifecycle event."""

    __tablename__ = "probation_records"

    __table_args__ = (
        Index("idx_probation_record_employment", "employment_id", "is_active"),
    )

    employment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("employments.id"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    event_type: Mapped[ProbationEventType] = mapped_column(String(20), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    probation_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    probation_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    previous_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    extension_number: Mapped[int] = mapped_column(nullable=False, default=0)

    decision_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<ProbationRecord {self.employment_id} {self.event_type} "
            f"end={self.probation_end_date} active={self.is_active}>"
        )
