"""
Allocation set validator.

Enforces funding-source exclusivity and the 100% FTE total on a proposed
allocation set before anything is persisted.  Run identically on creation
and on full replacement; there is no incremental-patch path.

Rules, in order:
    1. The set is non-empty.                   EmptyAllocationSetError
    2. Each entry names exactly one source     InvalidFundingSourceError
       and has fte in (0, 100].                InvalidFteError
    3. No funding source appears twice.        DuplicateFundingSourceError
    4. Total FTE is within tolerance of 100.   FteTotalMismatchError(actual)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from hrms_engines.allocation import validate_fte
from hrms_engines.tracer import traced_engine
from hrms_kernel.domain.values import strip_trailing_zeros, to_decimal
from hrms_kernel.exceptions import (
    DuplicateFundingSourceError,
    EmptyAllocationSetError,
    FteTotalMismatchError,
    InvalidFundingSourceError,
)

_HUNDRED = Decimal("100")
DEFAULT_FTE_TOLERANCE = Decimal("0.01")
# Four places survive the fraction column (Numeric(38, 9)) without truncation.
FTE_PERCENT_QUANTUM = Decimal("0.0001")


class FundingSourceType(str, Enum):
    GRANT_SLOT = "grant_slot"
    ORG_FUND = "org_fund"


@dataclass(frozen=True)
class AllocationRequest:
    """One requested share of an employment's salary."""

    fte_percentage: Decimal
    grant_slot_id: UUID | None = None
    org_fund_id: UUID | None = None

    def __post_init__(self):
        fte = self.fte_percentage
        if isinstance(fte, Decimal) and fte.is_finite() and fte.as_tuple().exponent < -4:
            object.__setattr__(
                self, "fte_percentage", fte.quantize(FTE_PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
            )

    @classmethod
    def grant_slot(cls, grant_slot_id: UUID, fte_percentage: Decimal) -> AllocationRequest:
        return cls(fte_percentage=to_decimal(fte_percentage), grant_slot_id=grant_slot_id)

    @classmethod
    def org_fund(cls, org_fund_id: UUID, fte_percentage: Decimal) -> AllocationRequest:
        return cls(fte_percentage=to_decimal(fte_percentage), org_fund_id=org_fund_id)

    @property
    def funding_source_type(self) -> FundingSourceType | None:
        if self.grant_slot_id is not None and self.org_fund_id is None:
            return FundingSourceType.GRANT_SLOT
        if self.org_fund_id is not None and self.grant_slot_id is None:
            return FundingSourceType.ORG_FUND
        return None

    @property
    def funding_source_id(self) -> UUID | None:
        source_type = self.funding_source_type
        if source_type == FundingSourceType.GRANT_SLOT:
            return self.grant_slot_id
        if source_type == FundingSourceType.ORG_FUND:
            return self.org_fund_id
        return None


@traced_engine("allocation_validator", "1.0", fingerprint_fields=("requests", "tolerance"))
def validate_allocation_set(
    *,
    requests: Sequence[AllocationRequest],
    tolerance: Decimal = DEFAULT_FTE_TOLERANCE,
) -> list[AllocationRequest]:
    """
    Validate a proposed allocation set.

    Returns:
        The requests as a list, in submitted order, unchanged.
    """
    if not requests:
        raise EmptyAllocationSetError()

    for index, request in enumerate(requests, start=1):
        if request.grant_slot_id is None and request.org_fund_id is None:
            raise InvalidFundingSourceError(index, "no funding source specified")
        if request.grant_slot_id is not None and request.org_fund_id is not None:
            raise InvalidFundingSourceError(
                index, "grant slot and org fund are mutually exclusive"
            )
        validate_fte(request.fte_percentage)

    seen: set[tuple[FundingSourceType, UUID]] = set()
    for index, request in enumerate(requests, start=1):
        key = (request.funding_source_type, request.funding_source_id)
        if key in seen:
            raise DuplicateFundingSourceError(key[0].value, str(key[1]), index)
        seen.add(key)

    total = sum((to_decimal(r.fte_percentage) for r in requests), Decimal("0"))
    if abs(total - _HUNDRED) > tolerance:
        raise FteTotalMismatchError(strip_trailing_zeros(total), tolerance)

    return list(requests)
