"""
Module: hrms_kernel.models.employment_history
Responsibility: Append-only audit trail of employment mutations and
    probation transitions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py listeners).
    - snapshot holds the employment state after the change; changes holds
      {field: {"old": ..., "new": ...}} for every field that moved.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hrms_kernel.db.base import Base, UUIDString


class EmploymentHistoryModel(Base):
    """Immutable employment history entry."""

    __tablename__ = "employment_histories"

    __table_args__ = (
        Index("idx_history_employment", "employment_id", "recorded_at"),
    )

    employment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("employments.id"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    changed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<EmploymentHistory {self.employment_id} '{self.reason}'>"
