"""HRMS services: employment, allocation, probation and history."""

from hrms_services._helpers import SYSTEM_ACTOR_ID
from hrms_services.allocation_service import (
    AllocationLine,
    AllocationService,
    AllocationSummary,
)
from hrms_services.employment_service import EmploymentData, EmploymentService
from hrms_services.history_service import EmploymentHistoryService, diff_snapshots
from hrms_services.probation_service import (
    AllocationChange,
    ProbationHistory,
    ProbationService,
    ProbationTransitionResult,
)

__all__ = [
    "SYSTEM_ACTOR_ID",
    "AllocationLine",
    "AllocationService",
    "AllocationSummary",
    "EmploymentData",
    "EmploymentService",
    "EmploymentHistoryService",
    "diff_snapshots",
    "AllocationChange",
    "ProbationHistory",
    "ProbationService",
    "ProbationTransitionResult",
]
