"""ORM models for the HRMS kernel."""

from hrms_kernel.models.employment import EmploymentModel, ProbationStatus
from hrms_kernel.models.employment_history import EmploymentHistoryModel
from hrms_kernel.models.funding_allocation import (
    AllocationStatus,
    FundingAllocationModel,
)
from hrms_kernel.models.probation_record import (
    ProbationEventType,
    ProbationRecordModel,
)

__all__ = [
    "EmploymentModel",
    "ProbationStatus",
    "FundingAllocationModel",
    "AllocationStatus",
    "EmploymentHistoryModel",
    "ProbationRecordModel",
    "ProbationEventType",
    "import_all_models",
]


def import_all_models() -> tuple[type, ...]:
    """Return every mapped class so Base.metadata knows all tables."""
    return (
        EmploymentModel,
        FundingAllocationModel,
        EmploymentHistoryModel,
        ProbationRecordModel,
    )
