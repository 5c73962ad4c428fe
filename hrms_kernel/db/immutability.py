"""
ORM-level immutability for the employment audit trail.

Employment history entries are append-only.  SQLAlchemy fires mapper events
before UPDATE/DELETE statements reach the database; the listeners here raise
ImmutabilityViolationError from those events so the flush aborts and the
surrounding transaction rolls back.

    session.flush()
         |
         v
    [before_update] --> _check_history_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_history_delete() ---------> ImmutabilityViolationError

Protected entities:

Entity                  | When immutable        | Why
------------------------|-----------------------|------------------------------
EmploymentHistoryModel  | ALWAYS                | Audit trail of every mutation
ProbationRecordModel    | Event fields, always  | Lifecycle evidence; only the
                        |                       | is_active flag may be cleared

Usage:

    from hrms_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent

    # TESTS ONLY
    unregister_immutability_listeners()

Bulk ``session.execute(update(...))`` statements bypass mapper events.  No
service issues bulk writes against these tables.
"""

from sqlalchemy import event, inspect

from hrms_kernel.exceptions import ImmutabilityViolationError
from hrms_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Probation record fields that may change after insert.
PROBATION_RECORD_MUTABLE_FIELDS = frozenset(
    {"is_active", "updated_at", "updated_by_id"}
)


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_history_immutability(mapper, connection, target):
    """Employment history entries are never modified."""
    _blocked(
        "EmploymentHistory",
        str(target.id),
        "UPDATE",
        "Employment history entries are immutable and cannot be modified",
    )


def _check_history_delete(mapper, connection, target):
    """Employment history entries are never deleted."""
    _blocked(
        "EmploymentHistory",
        str(target.id),
        "DELETE",
        "Employment history entries cannot be deleted",
    )


def _check_probation_record_immutability(mapper, connection, target):
    """Only the active flag of a probation record may change."""
    state = inspect(target)
    changed = [
        attr.key
        for attr in state.attrs
        if attr.key not in PROBATION_RECORD_MUTABLE_FIELDS
        and attr.history.has_changes()
    ]
    if changed:
        _blocked(
            "ProbationRecord",
            str(target.id),
            "UPDATE",
            f"Probation record fields are immutable: {sorted(changed)}",
        )


def _check_probation_record_delete(mapper, connection, target):
    _blocked(
        "ProbationRecord",
        str(target.id),
        "DELETE",
        "Probation records cannot be deleted",
    )


def _listeners():
    from hrms_kernel.models.employment_history import EmploymentHistoryModel
    from hrms_kernel.models.probation_record import ProbationRecordModel

    return (
        (EmploymentHistoryModel, "before_update", _check_history_immutability),
        (EmploymentHistoryModel, "before_delete", _check_history_delete),
        (ProbationRecordModel, "before_update", _check_probation_record_immutability),
        (ProbationRecordModel, "before_delete", _check_probation_record_delete),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners. Safe to call more than once."""
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
