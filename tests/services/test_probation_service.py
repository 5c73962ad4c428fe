"""
Tests for ProbationService: the one-time transition to the post-probation
salary and the other lifecycle events.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from hrms_engines.probation import ProbationState
from hrms_kernel.exceptions import (
    AlreadyProcessedError,
    EmploymentNotFoundError,
    InvalidEmploymentError,
    InvalidProbationDateError,
    MissingProbationSalaryError,
    NoActiveAllocationsError,
    ProbationAlreadyDecidedError,
)
from hrms_kernel.models import (
    EmploymentHistoryModel,
    EmploymentModel,
    FundingAllocationModel,
    ProbationRecordModel,
)
from hrms_services.allocation_service import AllocationService
from hrms_services.probation_service import ProbationService
from tests.conftest import set_today, two_way_split


@pytest.fixture
def service(session, settings, clock):
    return ProbationService(session, settings, clock)


def _records(session, employment_id):
    return list(
        session.execute(
            select(ProbationRecordModel)
            .where(ProbationRecordModel.employment_id == employment_id)
            .order_by(ProbationRecordModel.extension_number, ProbationRecordModel.event_date)
        ).scalars()
    )


def _history_count(session, employment_id):
    return session.scalar(
        select(func.count())
        .select_from(EmploymentHistoryModel)
        .where(EmploymentHistoryModel.employment_id == employment_id)
    )


class TestCompleteProbation:
    def test_moves_allocations_to_post_salary(
        self, create_employment, service, clock, actor_id
    ):
        employment = create_employment()
        set_today(clock, date(2024, 4, 1))

        result = service.complete_probation(employment.id, actor_id)

        assert result.transition_date == date(2024, 4, 1)
        assert [a.allocated_amount for a in result.updated_allocations] == [
            Decimal("35000.00"),
            Decimal("15000.00"),
        ]
        assert {a.salary_basis for a in result.updated_allocations} == {"post_probation"}
        assert [c.old_amount for c in result.changes] == [
            Decimal("28000.00"),
            Decimal("12000.00"),
        ]
        assert employment.probation_completed is True
        assert employment.probation_status == "passed"

    def test_persists_flag_and_amounts(
        self, create_employment, service, session, clock, actor_id
    ):
        employment = create_employment()
        set_today(clock, date(2024, 4, 2))
        service.complete_probation(employment.id, actor_id)

        session.expire_all()
        stored = session.get(EmploymentModel, employment.id)
        assert stored.probation_completed is True
        assert [a.allocated_amount for a in stored.allocations] == [
            Decimal("35000"),
            Decimal("15000"),
        ]

    def test_appends_passed_record_and_history(
        self, create_employment, service, session, clock, actor_id
    ):
        employment = create_employment()
        set_today(clock, date(2024, 4, 1))
        service.complete_probation(employment.id, actor_id)

        records = _records(session, employment.id)
        assert [r.event_type for r in records] == ["initial", "passed"]
        assert [r.is_active for r in records] == [False, True]

        entry = session.execute(
            select(EmploymentHistoryModel)
            .where(EmploymentHistoryModel.employment_id == employment.id)
            .order_by(EmploymentHistoryModel.recorded_at.desc())
        ).scalars().first()
        transition = entry.changes["transition"]
        assert transition["transition_date"] == "2024-04-01"
        assert transition["old_basis"] == ["probation"]
        assert transition["new_basis"] == "post_probation"
        assert sorted(transition["new_amounts"].values()) == ["15000.00", "35000.00"]
        assert entry.changes["probation_completed"] == {"old": False, "new": True}

    def test_manual_completion_before_end_date(
        self, create_employment, service, actor_id
    ):
        employment = create_employment()

        result = service.complete_probation(employment.id, actor_id)

        assert result.transition_date == date(2024, 4, 1)
        assert employment.probation_completed is True

    def test_logs_transition(self, create_employment, service, captured_logs, actor_id):
        employment = create_employment()
        service.complete_probation(employment.id, actor_id)

        records = [
            r for r in captured_logs() if r["message"] == "probation_transition_completed"
        ]
        assert len(records) == 1
        assert records[0]["employment_id"] == str(employment.id)
        assert records[0]["new_total"] == "50000.00"


class TestAfterEarlyCompletion:
    """Probation completed before its end date stays on the post-probation salary."""

    @pytest.fixture
    def completed(self, create_employment, service, actor_id):
        employment = create_employment()
        service.complete_probation(employment.id, actor_id)
        return employment

    def test_replacement_uses_post_salary(
        self, completed, session, settings, clock, actor_id
    ):
        rows = AllocationService(session, settings, clock).create_or_replace_allocations(
            completed.id, two_way_split(), actor_id
        )

        assert [(r.salary_basis, r.allocated_amount) for r in rows] == [
            ("post_probation", Decimal("35000.00")),
            ("post_probation", Decimal("15000.00")),
        ]

    def test_salary_update_uses_post_salary(
        self, completed, employment_service, actor_id
    ):
        employment_service.update_employment(
            completed.id, {"post_probation_salary": Decimal("60000")}, actor_id
        )

        assert [(a.salary_basis, a.allocated_amount) for a in completed.active_allocations] == [
            ("post_probation", Decimal("42000.00")),
            ("post_probation", Decimal("18000.00")),
        ]

    def test_probation_salary_update_leaves_amounts(
        self, completed, employment_service, actor_id
    ):
        employment_service.update_employment(
            completed.id, {"probation_salary": Decimal("45000")}, actor_id
        )

        assert {a.salary_basis for a in completed.active_allocations} == {"post_probation"}
        assert sum(a.allocated_amount for a in completed.active_allocations) == Decimal("50000")

    def test_probation_end_date_cannot_move(
        self, completed, employment_service, session, actor_id
    ):
        with pytest.raises(InvalidEmploymentError) as exc_info:
            employment_service.update_employment(
                completed.id, {"probation_end_date": date(2024, 6, 1)}, actor_id
            )

        assert exc_info.value.field == "probation_end_date"
        session.expire_all()
        assert session.get(EmploymentModel, completed.id).probation_end_date == date(2024, 4, 1)

    def test_live_calculation_uses_post_salary(
        self, completed, session, settings, clock
    ):
        calc = AllocationService(session, settings, clock).calculate_allocation(
            completed.id, Decimal("60")
        )

        assert calc.salary_basis.value == "post_probation"
        assert calc.allocated_amount == Decimal("30000.00")


class TestCompleteProbationIsIdempotent:
    def test_second_call_is_already_processed(
        self, create_employment, service, session, actor_id
    ):
        employment = create_employment()
        service.complete_probation(employment.id, actor_id)

        session.expire_all()
        before = session.execute(
            select(FundingAllocationModel.id, FundingAllocationModel.updated_at)
            .where(FundingAllocationModel.employment_id == employment.id)
            .order_by(FundingAllocationModel.id)
        ).all()
        version = session.get(EmploymentModel, employment.id).version
        history = _history_count(session, employment.id)
        session.commit()

        with pytest.raises(AlreadyProcessedError) as exc_info:
            service.complete_probation(employment.id, actor_id)
        assert exc_info.value.code == "ALREADY_PROCESSED"

        session.expire_all()
        after = session.execute(
            select(FundingAllocationModel.id, FundingAllocationModel.updated_at)
            .where(FundingAllocationModel.employment_id == employment.id)
            .order_by(FundingAllocationModel.id)
        ).all()
        assert after == before
        assert session.get(EmploymentModel, employment.id).version == version
        assert _history_count(session, employment.id) == history

    def test_stale_reader_loses_compare_and_set(
        self, create_employment, session_factory, settings, clock, actor_id
    ):
        employment = create_employment()

        loser = session_factory()
        winner = session_factory()
        try:
            # The loser has already read the employment as not completed.
            loser.get(EmploymentModel, employment.id)
            loser.commit()

            ProbationService(winner, settings, clock).complete_probation(
                employment.id, actor_id
            )

            with pytest.raises(AlreadyProcessedError):
                ProbationService(loser, settings, clock).complete_probation(
                    employment.id, actor_id
                )
        finally:
            loser.close()
            winner.close()

        check = session_factory()
        try:
            passed = check.scalar(
                select(func.count())
                .select_from(ProbationRecordModel)
                .where(
                    ProbationRecordModel.employment_id == employment.id,
                    ProbationRecordModel.event_type == "passed",
                )
            )
            assert passed == 1
        finally:
            check.close()


class TestCompleteProbationRejections:
    def test_missing_probation_salary(self, create_employment, service, session, actor_id):
        employment = create_employment(probation_salary=None)
        with pytest.raises(MissingProbationSalaryError):
            service.complete_probation(employment.id, actor_id)

        session.expire_all()
        assert session.get(EmploymentModel, employment.id).probation_completed is False

    def test_no_active_allocations(self, create_employment, service, session, actor_id):
        employment = create_employment()
        for allocation in employment.allocations:
            allocation.status = "terminated"
        session.commit()

        with pytest.raises(NoActiveAllocationsError):
            service.complete_probation(employment.id, actor_id)

    def test_failed_probation(self, create_employment, service, actor_id):
        employment = create_employment()
        service.fail_probation(employment.id, actor_id)
        with pytest.raises(ProbationAlreadyDecidedError):
            service.complete_probation(employment.id, actor_id)

    def test_unknown_employment(self, service, actor_id):
        with pytest.raises(EmploymentNotFoundError):
            service.complete_probation(uuid4(), actor_id)


class TestExtendProbation:
    def test_extension_moves_end_date(self, create_employment, service, session, actor_id):
        employment = create_employment()

        service.extend_probation(
            employment.id, date(2024, 5, 1), actor_id, reason="Needs more time"
        )

        assert employment.probation_end_date == date(2024, 5, 1)
        assert employment.probation_status == "extended"
        records = _records(session, employment.id)
        assert [r.event_type for r in records] == ["initial", "extension"]
        assert records[-1].extension_number == 1
        assert records[-1].previous_end_date == date(2024, 4, 1)
        assert records[-1].decision_reason == "Needs more time"

    def test_second_extension_is_numbered(self, create_employment, service, session, actor_id):
        employment = create_employment()
        service.extend_probation(employment.id, date(2024, 5, 1), actor_id)
        service.extend_probation(employment.id, date(2024, 6, 1), actor_id)

        history = service.probation_history(employment.id)
        assert history.total_extensions == 2
        assert history.current_status == "extended"
        assert history.records[-1].extension_number == 2
        assert sum(1 for r in history.records if r.is_active) == 1

    def test_extension_after_missed_end_date_restores_probation_amounts(
        self, create_employment, employment_service, service, clock, actor_id
    ):
        employment = create_employment()
        set_today(clock, date(2024, 4, 5))
        # A salary update after the end date moved amounts to the post basis.
        employment_service.update_employment(
            employment.id, {"post_probation_salary": Decimal("55000")}, actor_id
        )
        assert employment.allocations[0].salary_basis == "post_probation"

        service.extend_probation(employment.id, date(2024, 5, 1), actor_id)

        assert employment.allocations[0].salary_basis == "probation"
        assert employment.allocations[0].allocated_amount == Decimal("28000.00")
        assert (
            service.state_of(employment.id) == ProbationState.NOT_DUE
        )

    def test_earlier_date_rejected(self, create_employment, service, actor_id):
        employment = create_employment()
        with pytest.raises(InvalidProbationDateError):
            service.extend_probation(employment.id, date(2024, 3, 1), actor_id)

    def test_completed_probation_cannot_be_extended(
        self, create_employment, service, actor_id
    ):
        employment = create_employment()
        service.complete_probation(employment.id, actor_id)
        with pytest.raises(ProbationAlreadyDecidedError):
            service.extend_probation(employment.id, date(2024, 6, 1), actor_id)


class TestFailAndTerminate:
    def test_fail_terminates_allocations(self, create_employment, service, session, actor_id):
        employment = create_employment()

        service.fail_probation(
            employment.id, actor_id, decision_date=date(2024, 3, 15), reason="Performance"
        )

        assert employment.probation_status == "failed"
        assert employment.end_date is None
        assert {a.status for a in employment.allocations} == {"terminated"}
        assert {a.end_date for a in employment.allocations} == {date(2024, 3, 15)}
        records = _records(session, employment.id)
        assert records[-1].event_type == "failed"
        assert records[-1].decision_reason == "Performance"

    def test_early_termination_sets_end_date(self, create_employment, service, actor_id):
        employment = create_employment()

        service.handle_early_termination(employment.id, date(2024, 2, 20), actor_id)

        assert employment.end_date == date(2024, 2, 20)
        assert employment.probation_status == "failed"
        assert not employment.active_allocations

    def test_cannot_fail_twice(self, create_employment, service, actor_id):
        employment = create_employment()
        service.fail_probation(employment.id, actor_id)
        with pytest.raises(ProbationAlreadyDecidedError):
            service.fail_probation(employment.id, actor_id)

    def test_decision_before_start_rejected(self, create_employment, service, actor_id):
        employment = create_employment()
        with pytest.raises(InvalidProbationDateError):
            service.fail_probation(employment.id, actor_id, decision_date=date(2023, 1, 1))


class TestProbationState:
    def test_state_follows_clock(self, create_employment, service, clock, actor_id):
        employment = create_employment()
        assert service.state_of(employment.id) == ProbationState.NOT_DUE
        set_today(clock, date(2024, 4, 1))
        assert service.state_of(employment.id) == ProbationState.DUE
        service.complete_probation(employment.id, actor_id)
        assert service.state_of(employment.id) == ProbationState.COMPLETED
