"""
Tests for probation state, month arithmetic and 30-day pro-ration.
"""

from datetime import date
from decimal import Decimal

import pytest

from hrms_engines.allocation import SalarySnapshot
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
from hrms_kernel.exceptions import MissingSalaryError


class TestProbationState:
    def test_not_due_before_end_date(self):
        assert (
            probation_state(
                probation_end_date=date(2024, 4, 1),
                probation_completed=False,
                as_of=date(2024, 3, 31),
            )
            == ProbationState.NOT_DUE
        )

    def test_due_on_end_date(self):
        assert (
            probation_state(
                probation_end_date=date(2024, 4, 1),
                probation_completed=False,
                as_of=date(2024, 4, 1),
            )
            == ProbationState.DUE
        )

    def test_due_stays_due_after_missed_days(self):
        assert (
            probation_state(
                probation_end_date=date(2024, 4, 1),
                probation_completed=False,
                as_of=date(2024, 6, 1),
            )
            == ProbationState.DUE
        )

    def test_completed_flag_wins(self):
        assert (
            probation_state(
                probation_end_date=date(2024, 4, 1),
                probation_completed=True,
                as_of=date(2024, 1, 1),
            )
            == ProbationState.COMPLETED
        )

    def test_no_end_date_is_never_due(self):
        assert (
            probation_state(
                probation_end_date=None,
                probation_completed=False,
                as_of=date(2030, 1, 1),
            )
            == ProbationState.NOT_DUE
        )


class TestMonthArithmetic:
    def test_three_months_later(self):
        assert default_probation_end_date(date(2024, 1, 15)) == date(2024, 4, 15)

    def test_clamps_to_end_of_february(self):
        assert default_probation_end_date(date(2023, 11, 30)) == date(2024, 2, 29)
        assert default_probation_end_date(date(2022, 11, 30)) == date(2023, 2, 28)

    def test_crosses_year(self):
        assert add_months(date(2024, 11, 1), 3) == date(2025, 2, 1)

    def test_configurable_months(self):
        assert default_probation_end_date(date(2024, 1, 31), months=1) == date(2024, 2, 29)

    def test_transition_month(self):
        assert is_transition_month(date(2024, 4, 15), date(2024, 4, 1))
        assert not is_transition_month(date(2024, 4, 15), date(2024, 5, 1))
        assert not is_transition_month(None, date(2024, 4, 1))

    def test_started_mid_month(self):
        assert started_mid_month_in(date(2024, 1, 15), date(2024, 1, 31))
        assert not started_mid_month_in(date(2024, 1, 1), date(2024, 1, 31))
        assert not started_mid_month_in(date(2024, 1, 15), date(2024, 2, 1))


class TestTransitionMonthProration:
    def test_ends_on_fifteenth(self):
        amount = prorated_transition_month_salary(
            probation_salary=Decimal("40000"),
            post_probation_salary=Decimal("50000"),
            probation_end_date=date(2024, 1, 15),
        )
        # 18666.67 + 26666.67, each part rounded first
        assert amount == Decimal("45333.34")

    def test_calendar_length_is_ignored(self):
        feb = prorated_transition_month_salary(
            probation_salary=Decimal("40000"),
            post_probation_salary=Decimal("50000"),
            probation_end_date=date(2023, 2, 15),
        )
        jan = prorated_transition_month_salary(
            probation_salary=Decimal("40000"),
            post_probation_salary=Decimal("50000"),
            probation_end_date=date(2023, 1, 15),
        )
        assert feb == jan

    def test_ends_on_first_pays_post_salary_in_full(self):
        amount = prorated_transition_month_salary(
            probation_salary=Decimal("40000"),
            post_probation_salary=Decimal("50000"),
            probation_end_date=date(2024, 3, 1),
        )
        assert amount == Decimal("50000.00")

    def test_ends_on_thirty_first(self):
        amount = prorated_transition_month_salary(
            probation_salary=Decimal("40000"),
            post_probation_salary=Decimal("50000"),
            probation_end_date=date(2024, 1, 31),
        )
        assert amount == Decimal("40000.00")

    def test_without_probation_salary(self):
        amount = prorated_transition_month_salary(
            probation_salary=None,
            post_probation_salary=Decimal("50000"),
            probation_end_date=date(2024, 1, 15),
        )
        assert amount == Decimal("50000.00")

    def test_missing_post_salary(self):
        with pytest.raises(MissingSalaryError):
            prorated_transition_month_salary(
                probation_salary=Decimal("40000"),
                post_probation_salary=None,
                probation_end_date=date(2024, 1, 15),
            )


class TestFirstMonth:
    @pytest.mark.parametrize(
        "day, expected",
        [(1, 30), (2, 29), (15, 16), (30, 1), (31, 0)],
    )
    def test_working_days(self, day, expected):
        assert calculate_working_days(date(2024, 1, day)) == expected

    def test_working_days_in_february(self):
        assert calculate_working_days(date(2024, 2, 15)) == 16

    def test_first_month_uses_probation_salary(self):
        amount = first_month_salary(
            start_date=date(2024, 1, 15),
            probation_salary=Decimal("30000"),
            post_probation_salary=Decimal("45000"),
        )
        assert amount == Decimal("16000.00")

    def test_first_month_falls_back_to_post_salary(self):
        amount = first_month_salary(
            start_date=date(2024, 1, 21),
            probation_salary=None,
            post_probation_salary=Decimal("45000"),
        )
        # 45000 / 30 * 10
        assert amount == Decimal("15000.00")

    def test_first_month_without_any_salary(self):
        with pytest.raises(MissingSalaryError):
            first_month_salary(
                start_date=date(2024, 1, 21),
                probation_salary=None,
                post_probation_salary=None,
            )


class TestMonthlySalary:
    def setup_method(self):
        self.snapshot = SalarySnapshot(
            post_probation_salary=Decimal("50000"),
            probation_salary=Decimal("40000"),
            probation_end_date=date(2024, 4, 15),
            start_date=date(2024, 1, 15),
        )

    def test_first_month(self):
        assert monthly_salary(self.snapshot, date(2024, 1, 1)) == Decimal("21333.33")

    def test_probation_month(self):
        assert monthly_salary(self.snapshot, date(2024, 2, 1)) == Decimal("40000.00")

    def test_transition_month(self):
        assert monthly_salary(self.snapshot, date(2024, 4, 1)) == Decimal("45333.34")

    def test_after_transition(self):
        assert monthly_salary(self.snapshot, date(2024, 5, 1)) == Decimal("50000.00")

    def test_no_probation_salary(self):
        snapshot = SalarySnapshot(
            post_probation_salary=Decimal("50000"),
            probation_end_date=date(2024, 4, 15),
            start_date=date(2024, 1, 1),
        )
        assert monthly_salary(snapshot, date(2024, 2, 1)) == Decimal("50000.00")
