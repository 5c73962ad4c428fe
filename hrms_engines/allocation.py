"""
Funding allocation calculator.

Module:
    hrms_engines.allocation

Responsibility:
    Given an employment's salary snapshot and a requested FTE percentage,
    select the applicable salary figure and compute the allocated amount,
    together with a human-readable formula string.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by
    ``hrms_services.allocation_service`` for live calculations and full
    replacements, and by ``hrms_services.probation_service`` for the
    probation transition recompute.

Invariants enforced:
    - Basis rule: PROBATION iff probation is not completed,
      probation_end_date is set, as_of_date is strictly before it and
      probation_salary is not None.  Otherwise POST_PROBATION.  A forced
      basis overrides the rule.
    - allocated_amount = round_half_up(base_salary * fte / 100, places).
    - Identical inputs always yield identical output.

Failure modes:
    - InvalidFteError when fte_percentage is outside (0, 100].
    - MissingSalaryError when the selected salary is None or <= 0.

Usage:
    from hrms_engines.allocation import SalarySnapshot, calculate_allocation

    calc = calculate_allocation(
        snapshot=SalarySnapshot(post_probation_salary=Decimal("50000")),
        fte_percentage=Decimal("60"),
        as_of_date=date(2024, 5, 1),
    )
    calc.allocated_amount  # Decimal("30000.00")
    calc.formula_text      # "(50000 × 60) / 100 = 30000"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from hrms_engines.tracer import traced_engine
from hrms_kernel.domain.values import round_currency, strip_trailing_zeros, to_decimal
from hrms_kernel.exceptions import InvalidFteError, MissingSalaryError

_HUNDRED = Decimal("100")


class SalaryBasis(str, Enum):
    """Which salary figure produced an allocated amount."""

    PROBATION = "probation"
    POST_PROBATION = "post_probation"


@dataclass(frozen=True)
class SalarySnapshot:
    """Salary state of one employment at calculation time."""

    post_probation_salary: Decimal | None
    probation_salary: Decimal | None = None
    probation_end_date: date | None = None
    start_date: date | None = None
    probation_completed: bool = False

    def salary_for(self, basis: SalaryBasis) -> Decimal | None:
        if basis == SalaryBasis.PROBATION:
            return self.probation_salary
        return self.post_probation_salary


@dataclass(frozen=True)
class AllocationCalculation:
    """Result of one allocation calculation."""

    base_salary: Decimal
    salary_basis: SalaryBasis
    allocated_amount: Decimal
    fte_percentage: Decimal
    formula_text: str


def validate_fte(fte_percentage: Decimal) -> Decimal:
    """Return fte_percentage as Decimal, or raise InvalidFteError."""
    fte = to_decimal(fte_percentage)
    if not (fte.is_finite() and Decimal("0") < fte <= _HUNDRED):
        raise InvalidFteError(fte)
    return fte


def select_salary_basis(snapshot: SalarySnapshot, as_of_date: date) -> SalaryBasis:
    """Apply the date-driven basis rule."""
    # A completed probation stays on the post-probation salary, even when
    # it was completed before the end date.
    if (
        not snapshot.probation_completed
        and snapshot.probation_end_date is not None
        and as_of_date < snapshot.probation_end_date
        and snapshot.probation_salary is not None
    ):
        return SalaryBasis.PROBATION
    return SalaryBasis.POST_PROBATION


def format_formula(base_salary: Decimal, fte_percentage: Decimal, amount: Decimal) -> str:
    return (
        f"({strip_trailing_zeros(base_salary)} × {strip_trailing_zeros(fte_percentage)})"
        f" / 100 = {strip_trailing_zeros(amount)}"
    )


@traced_engine(
    "allocation",
    "1.0",
    fingerprint_fields=("snapshot", "fte_percentage", "as_of_date", "force_basis"),
)
def calculate_allocation(
    *,
    snapshot: SalarySnapshot,
    fte_percentage: Decimal,
    as_of_date: date,
    force_basis: SalaryBasis | None = None,
    currency_places: int = 2,
) -> AllocationCalculation:
    """
    Compute the allocated amount for one funding allocation.

    Args:
        snapshot: Salary state of the employment.
        fte_percentage: Requested FTE in (0, 100].
        as_of_date: Date that decides the salary basis.
        force_basis: Use this basis regardless of the date rule.
        currency_places: Rounding precision of the amount.

    Raises:
        InvalidFteError: fte_percentage outside (0, 100].
        MissingSalaryError: selected salary is None or not positive.
    """
    fte = validate_fte(fte_percentage)

    basis = force_basis if force_basis is not None else select_salary_basis(
        snapshot, as_of_date
    )
    base_salary = snapshot.salary_for(basis)
    if base_salary is None or to_decimal(base_salary) <= 0:
        raise MissingSalaryError(basis.value, base_salary)
    base_salary = to_decimal(base_salary)

    amount = round_currency(base_salary * fte / _HUNDRED, currency_places)

    return AllocationCalculation(
        base_salary=base_salary,
        salary_basis=basis,
        allocated_amount=amount,
        fte_percentage=fte,
        formula_text=format_formula(base_salary, fte, amount),
    )
