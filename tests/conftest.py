"""
Pytest fixtures for the HRMS allocation test suite.

Provides:
- In-memory SQLite engine with SAVEPOINT support and immutability listeners
- Sessions, a deterministic clock and default settings
- Employment factories built through the real services
- Captured structured logs

The in-memory database uses a StaticPool, so every session created from
``session_factory`` talks to the same database.  Tests that need two
"concurrent" sessions use them one after the other.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hrms_config.schema import AllocationSettings
from hrms_engines.allocation_validator import AllocationRequest
from hrms_kernel.db.base import Base
from hrms_kernel.db.engine import enable_sqlite_savepoints
from hrms_kernel.db.immutability import register_immutability_listeners
from hrms_kernel.domain.clock import DeterministicClock
from hrms_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from hrms_kernel.models import import_all_models
from hrms_services.employment_service import EmploymentData, EmploymentService

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("11111111-1111-1111-1111-111111111111")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture hrms_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, probation_service):
            probation_service.complete_probation(...)
            logs = captured_logs()
            assert any(r["message"] == "probation_transition_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("hrms_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(eng)
    import_all_models()
    Base.metadata.create_all(eng)
    register_immutability_listeners()
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 1, 10, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return AllocationSettings()


@pytest.fixture
def actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Domain factories
# =============================================================================


def set_today(clock: DeterministicClock, day: date, hour: int = 9) -> None:
    clock.set_time(datetime(day.year, day.month, day.day, hour, 0, 0, tzinfo=timezone.utc))


def two_way_split(first: str = "70", second: str = "30") -> list[AllocationRequest]:
    return [
        AllocationRequest.grant_slot(uuid4(), Decimal(first)),
        AllocationRequest.org_fund(uuid4(), Decimal(second)),
    ]


@pytest.fixture
def employment_service(session, settings, clock):
    return EmploymentService(session, settings, clock)


@pytest.fixture
def create_employment(employment_service, actor_id):
    """
    Factory creating a committed employment through EmploymentService.

    Defaults: start 2024-01-01, probation ends 2024-04-01, probation salary
    40000, post-probation salary 50000, split 70/30.
    """

    def _create(
        start_date: date = date(2024, 1, 1),
        probation_end_date: date | None = date(2024, 4, 1),
        probation_salary: Decimal | None = Decimal("40000"),
        post_probation_salary: Decimal = Decimal("50000"),
        allocations: list[AllocationRequest] | None = None,
        end_date: date | None = None,
    ):
        return employment_service.create_employment(
            EmploymentData(
                employee_id=uuid4(),
                start_date=start_date,
                probation_end_date=probation_end_date,
                probation_salary=probation_salary,
                post_probation_salary=post_probation_salary,
                end_date=end_date,
            ),
            allocations if allocations is not None else two_way_split(),
            actor_id,
        )

    return _create
