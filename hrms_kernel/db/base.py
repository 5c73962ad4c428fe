"""
Module: hrms_kernel.db.base
Responsibility: Declarative bases for the employment, allocation, history
    and probation record tables.
Architecture position: Kernel > DB.  Model files import from here and
    nowhere else in db/.

Invariants enforced:
    - Every row has a uuid4 primary key stored as a 36-character string.
    - Salaries, FTE fractions and allocated amounts are Numeric(38, 9) and
      come back as Decimal.
    - Mutable rows (TrackedBase) carry created/updated timestamps and the
      acting user on both.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as String(36) so SQLite and PostgreSQL behave the same."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Accept "..." ids from CLI arguments as well as UUID objects.
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` plus the Decimal/datetime/UUID type map."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base for rows that services update in place.

    ``updated_at`` only moves when the row is actually written, so an
    operation that changes nothing leaves it untouched.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
