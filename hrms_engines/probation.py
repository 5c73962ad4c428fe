"""
Probation state and 30-day pro-ration.

Module:
    hrms_engines.probation

Responsibility:
    Pure evaluation of an employment's probation state and of the payroll
    month salary around the probation boundary, using a standardized
    30-day month regardless of calendar length.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The probation service
    and the sweep use ``probation_state``; the payroll-month figures are a
    separate numeric path from allocated amounts.

Invariants enforced:
    - daily rate = salary / days_per_month (30 by default).
    - Transition month with the end date on day d: probation_days = d - 1,
      post_days = days_per_month - probation_days.  Each part is rounded
      half-up to cents before the two are summed.
    - First month for a hire on day s: working_days = 31 - s, never more
      than days_per_month and never negative.
    - default_probation_end_date clamps to month end (Nov 30 + 3 months
      gives the last day of February).

Failure modes:
    - MissingSalaryError when no usable salary exists for a month.

Usage:
    >>> prorated_transition_month_salary(
    ...     probation_salary=Decimal("40000"),
    ...     post_probation_salary=Decimal("50000"),
    ...     probation_end_date=date(2024, 1, 15),
    ... )
    Decimal('45333.34')
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from enum import Enum

from hrms_engines.allocation import SalarySnapshot
from hrms_engines.tracer import traced_engine
from hrms_kernel.domain.values import round_currency, to_decimal
from hrms_kernel.exceptions import MissingSalaryError

STANDARD_DAYS_PER_MONTH = 30


class ProbationState(str, Enum):
    NOT_DUE = "not_due"
    DUE = "due"
    COMPLETED = "completed"


def probation_state(
    *,
    probation_end_date: date | None,
    probation_completed: bool,
    as_of: date,
) -> ProbationState:
    """
    COMPLETED once the flag is set; DUE when as_of has reached the end
    date; NOT_DUE otherwise (including no end date at all).
    """
    if probation_completed:
        return ProbationState.COMPLETED
    if probation_end_date is not None and as_of >= probation_end_date:
        return ProbationState.DUE
    return ProbationState.NOT_DUE


def add_months(start: date, months: int) -> date:
    """Calendar-month addition clamped to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def default_probation_end_date(start_date: date, months: int = 3) -> date:
    return add_months(start_date, months)


def _same_month(a: date, b: date) -> bool:
    return (a.year, a.month) == (b.year, b.month)


def is_transition_month(probation_end_date: date | None, payroll_month: date) -> bool:
    if probation_end_date is None:
        return False
    return _same_month(probation_end_date, payroll_month)


def started_mid_month_in(start_date: date, month: date) -> bool:
    return _same_month(start_date, month) and start_date.day > 1


def calculate_working_days(
    start_date: date,
    days_per_month: int = STANDARD_DAYS_PER_MONTH,
) -> int:
    """Days paid in the first month: 31 - start day, capped at the standard month."""
    return max(0, min(31 - start_date.day, days_per_month))


def _require_salary(basis: str, value: Decimal | None) -> Decimal:
    if value is None or to_decimal(value) <= 0:
        raise MissingSalaryError(basis, value)
    return to_decimal(value)


@traced_engine(
    "probation_proration",
    "1.0",
    fingerprint_fields=("probation_salary", "post_probation_salary", "probation_end_date"),
)
def prorated_transition_month_salary(
    *,
    probation_salary: Decimal | None,
    post_probation_salary: Decimal,
    probation_end_date: date,
    days_per_month: int = STANDARD_DAYS_PER_MONTH,
    currency_places: int = 2,
) -> Decimal:
    """
    Salary for the month in which probation ends.

    Without a probation salary the post-probation salary is paid in full.
    """
    post = _require_salary("post_probation", post_probation_salary)
    if probation_salary is None:
        return round_currency(post, currency_places)
    probation = _require_salary("probation", probation_salary)

    probation_days = min(probation_end_date.day - 1, days_per_month)
    post_days = days_per_month - probation_days

    probation_part = round_currency(
        probation / days_per_month * probation_days, currency_places
    )
    post_part = round_currency(post / days_per_month * post_days, currency_places)
    return probation_part + post_part


@traced_engine(
    "probation_first_month",
    "1.0",
    fingerprint_fields=("start_date", "probation_salary", "post_probation_salary"),
)
def first_month_salary(
    *,
    start_date: date,
    probation_salary: Decimal | None,
    post_probation_salary: Decimal | None,
    days_per_month: int = STANDARD_DAYS_PER_MONTH,
    currency_places: int = 2,
) -> Decimal:
    """Pay for the first month of a hire; the probation salary applies when set."""
    if probation_salary is not None:
        salary = _require_salary("probation", probation_salary)
    else:
        salary = _require_salary("post_probation", post_probation_salary)
    working_days = calculate_working_days(start_date, days_per_month)
    return round_currency(salary / days_per_month * working_days, currency_places)


def monthly_salary(
    snapshot: SalarySnapshot,
    payroll_month: date,
    days_per_month: int = STANDARD_DAYS_PER_MONTH,
    currency_places: int = 2,
) -> Decimal:
    """
    Salary owed for ``payroll_month`` (any day inside the month).

    Order of rules: mid-month first month, transition month, months before
    the transition month, then everything after.
    """
    if snapshot.start_date is not None and started_mid_month_in(
        snapshot.start_date, payroll_month
    ):
        return first_month_salary(
            start_date=snapshot.start_date,
            probation_salary=snapshot.probation_salary,
            post_probation_salary=snapshot.post_probation_salary,
            days_per_month=days_per_month,
            currency_places=currency_places,
        )

    end = snapshot.probation_end_date
    if end is None:
        return round_currency(
            _require_salary("post_probation", snapshot.post_probation_salary),
            currency_places,
        )

    if is_transition_month(end, payroll_month):
        return prorated_transition_month_salary(
            probation_salary=snapshot.probation_salary,
            post_probation_salary=snapshot.post_probation_salary,
            probation_end_date=end,
            days_per_month=days_per_month,
            currency_places=currency_places,
        )

    if (payroll_month.year, payroll_month.month) < (end.year, end.month):
        salary = (
            snapshot.probation_salary
            if snapshot.probation_salary is not None
            else snapshot.post_probation_salary
        )
        basis = "probation" if snapshot.probation_salary is not None else "post_probation"
        return round_currency(_require_salary(basis, salary), currency_places)

    return round_currency(
        _require_salary("post_probation", snapshot.post_probation_salary),
        currency_places,
    )
