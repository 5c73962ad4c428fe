"""
Pure calculation engines for funding allocation and probation pay.

No engine imports SQLAlchemy or performs I/O; every entry point is a
function of its arguments and emits an HRMS_ENGINE_TRACE log record.
"""

from hrms_engines.allocation import (
    AllocationCalculation,
    SalaryBasis,
    SalarySnapshot,
    calculate_allocation,
    select_salary_basis,
)
from hrms_engines.allocation_validator import (
    AllocationRequest,
    FundingSourceType,
    validate_allocation_set,
)
from hrms_engines.probation import (
    ProbationState,
    add_months,
    calculate_working_days,
    default_probation_end_date,
    first_month_salary,
    is_transition_month,
    monthly_salary,
    probation_state,
    prorated_transition_month_salary,
    started_mid_month_in,
)

__all__ = [
    "AllocationCalculation",
    "SalaryBasis",
    "SalarySnapshot",
    "calculate_allocation",
    "select_salary_basis",
    "AllocationRequest",
    "FundingSourceType",
    "validate_allocation_set",
    "ProbationState",
    "add_months",
    "calculate_working_days",
    "default_probation_end_date",
    "first_month_salary",
    "is_transition_month",
    "monthly_salary",
    "probation_state",
    "prorated_transition_month_salary",
    "started_mid_month_in",
]
