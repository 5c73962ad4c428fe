"""
Typed Exception Hierarchy for the HRMS Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the allocation and probation services must be able to tell an
FTE total mismatch from a missing salary without parsing message strings.
Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (the offending value, the employment id)

Example:
    try:
        allocation_service.create_or_replace_allocations(emp_id, requests, actor)
    except FteTotalMismatchError as e:
        api_response(code=e.code, actual_total=str(e.actual_total))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    HrmsKernelError (base)
    |
    +-- AllocationError
    |   +-- InvalidFteError
    |   +-- FteTotalMismatchError
    |   +-- DuplicateFundingSourceError
    |   +-- InvalidFundingSourceError
    |   +-- EmptyAllocationSetError
    |
    +-- SalaryError
    |   +-- MissingSalaryError
    |   +-- MissingProbationSalaryError
    |
    +-- EmploymentError
    |   +-- EmploymentNotFoundError
    |   +-- InvalidEmploymentError
    |
    +-- ProbationError
    |   +-- AlreadyProcessedError
    |   +-- ProbationAlreadyDecidedError
    |   +-- NoActiveAllocationsError
    |   +-- InvalidProbationDateError
    |
    +-- ConcurrencyError
    |   +-- PersistenceConflictError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- BatchError
        +-- TaskNotRegisteredError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|------------------------------------------
Allocation   | INVALID_FTE                  | FTE outside (0, 100]
             | FTE_TOTAL_MISMATCH           | Allocation set does not sum to 100%
             | DUPLICATE_FUNDING_SOURCE     | Same funding reference twice in one set
             | INVALID_FUNDING_SOURCE       | Zero or two funding references on a row
             | EMPTY_ALLOCATION_SET         | No allocations submitted
-------------|------------------------------|------------------------------------------
Salary       | MISSING_SALARY               | Selected basis salary null or <= 0
             | MISSING_PROBATION_SALARY     | Transition without a probation salary
-------------|------------------------------|------------------------------------------
Employment   | EMPLOYMENT_NOT_FOUND         | Employment id does not exist
             | INVALID_EMPLOYMENT           | Employment fields inconsistent
-------------|------------------------------|------------------------------------------
Probation    | ALREADY_PROCESSED            | Transition re-triggered (conflict, not crash)
             | PROBATION_ALREADY_DECIDED    | Probation already passed or failed
             | NO_ACTIVE_ALLOCATIONS        | Nothing to transition
             | INVALID_PROBATION_DATE       | Extension/decision date out of range
-------------|------------------------------|------------------------------------------
Concurrency  | PERSISTENCE_CONFLICT         | Transaction could not commit; retry
-------------|------------------------------|------------------------------------------
Immutability | IMMUTABILITY_VIOLATION       | Update/delete of an audit history row
-------------|------------------------------|------------------------------------------
Batch        | TASK_NOT_REGISTERED          | Unknown batch task type

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation errors (Allocation*, Salary*) are raised before any write,
   so no rollback is needed by the caller.

2. AlreadyProcessedError is a user-visible conflict:

    try:
        probation_service.complete_probation(emp_id, actor)
    except AlreadyProcessedError:
        return conflict_response()

3. PersistenceConflictError means the whole operation may be retried.
"""

from decimal import Decimal


class HrmsKernelError(Exception):
    """
    Base exception for all HRMS kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "HRMS_KERNEL_ERROR"


# Allocation-related exceptions


class AllocationError(HrmsKernelError):
    """Base exception for allocation errors."""

    code: str = "ALLOCATION_ERROR"


class InvalidFteError(AllocationError):
    """Requested FTE percentage is outside (0, 100]."""

    code: str = "INVALID_FTE"

    def __init__(self, fte_percentage: Decimal | str):
        self.fte_percentage = str(fte_percentage)
        super().__init__(
            f"FTE percentage must be greater than 0 and at most 100, "
            f"got {fte_percentage}"
        )


class FteTotalMismatchError(AllocationError):
    """Allocation set does not sum to 100%."""

    code: str = "FTE_TOTAL_MISMATCH"

    def __init__(self, actual_total: Decimal, tolerance: Decimal):
        self.actual_total = actual_total
        self.tolerance = tolerance
        super().__init__(
            f"Total FTE of all allocations must equal 100%. "
            f"Current total: {actual_total}%"
        )


class DuplicateFundingSourceError(AllocationError):
    """The same funding reference appears twice in one allocation set."""

    code: str = "DUPLICATE_FUNDING_SOURCE"

    def __init__(self, source_type: str, source_id: str, index: int):
        self.source_type = source_type
        self.source_id = source_id
        self.index = index
        super().__init__(
            f"Allocation #{index}: funding source {source_type}:{source_id} "
            "is already used in this allocation set"
        )


class InvalidFundingSourceError(AllocationError):
    """An allocation row does not name exactly one funding source."""

    code: str = "INVALID_FUNDING_SOURCE"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Allocation #{index}: {reason}")


class EmptyAllocationSetError(AllocationError):
    """No allocations were submitted."""

    code: str = "EMPTY_ALLOCATION_SET"

    def __init__(self):
        super().__init__("At least one funding allocation is required")


# Salary-related exceptions


class SalaryError(HrmsKernelError):
    """Base exception for salary configuration errors."""

    code: str = "SALARY_ERROR"


class MissingSalaryError(SalaryError):
    """The salary figure for the selected basis is absent or not positive."""

    code: str = "MISSING_SALARY"

    def __init__(self, salary_basis: str, value: Decimal | None = None):
        self.salary_basis = salary_basis
        self.value = None if value is None else str(value)
        super().__init__(
            f"No usable {salary_basis} salary configured (value: {self.value})"
        )


class MissingProbationSalaryError(SalaryError):
    """Probation transition requested but no probation salary was ever set."""

    code: str = "MISSING_PROBATION_SALARY"

    def __init__(self, employment_id: str):
        self.employment_id = employment_id
        super().__init__(
            f"Employment {employment_id} has no probation salary to transition from"
        )


# Employment-related exceptions


class EmploymentError(HrmsKernelError):
    """Base exception for employment errors."""

    code: str = "EMPLOYMENT_ERROR"


class EmploymentNotFoundError(EmploymentError):
    """Employment with given ID was not found."""

    code: str = "EMPLOYMENT_NOT_FOUND"

    def __init__(self, employment_id: str):
        self.employment_id = employment_id
        super().__init__(f"Employment not found: {employment_id}")


class InvalidEmploymentError(EmploymentError):
    """Employment fields are inconsistent."""

    code: str = "INVALID_EMPLOYMENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid employment {field}: {reason}")


# Probation-related exceptions


class ProbationError(HrmsKernelError):
    """Base exception for probation lifecycle errors."""

    code: str = "PROBATION_ERROR"


class AlreadyProcessedError(ProbationError):
    """Probation transition was already completed for this employment."""

    code: str = "ALREADY_PROCESSED"

    def __init__(self, employment_id: str):
        self.employment_id = employment_id
        super().__init__(
            f"Probation transition already processed for employment {employment_id}"
        )


class ProbationAlreadyDecidedError(ProbationError):
    """Probation already has a final decision (passed or failed)."""

    code: str = "PROBATION_ALREADY_DECIDED"

    def __init__(self, employment_id: str, probation_status: str):
        self.employment_id = employment_id
        self.probation_status = probation_status
        super().__init__(
            f"Probation for employment {employment_id} is already {probation_status}"
        )


class NoActiveAllocationsError(ProbationError):
    """Employment has no active allocations to act on."""

    code: str = "NO_ACTIVE_ALLOCATIONS"

    def __init__(self, employment_id: str):
        self.employment_id = employment_id
        super().__init__(f"No active allocations found for employment {employment_id}")


class InvalidProbationDateError(ProbationError):
    """Probation date is out of range for the requested operation."""

    code: str = "INVALID_PROBATION_DATE"

    def __init__(self, employment_id: str, value: str, reason: str):
        self.employment_id = employment_id
        self.value = value
        self.reason = reason
        super().__init__(
            f"Invalid probation date {value} for employment {employment_id}: {reason}"
        )


# Concurrency-related exceptions


class ConcurrencyError(HrmsKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class PersistenceConflictError(ConcurrencyError):
    """Transaction could not commit because another writer got there first."""

    code: str = "PERSISTENCE_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, reason: str = ""):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Persistence conflict on {entity_type} {entity_id}: "
            f"{reason or 'entity was modified by another transaction'}"
        )


# Immutability-related exceptions


class ImmutabilityError(HrmsKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable audit record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Batch-related exceptions


class BatchError(HrmsKernelError):
    """Base exception for batch processing errors."""

    code: str = "BATCH_ERROR"


class TaskNotRegisteredError(BatchError):
    """No batch task registered for the requested task type."""

    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, task_type: str, available: tuple[str, ...] = ()):
        self.task_type = task_type
        self.available = available
        super().__init__(
            f"No batch task registered for '{task_type}'. "
            f"Available: {list(available)}"
        )
