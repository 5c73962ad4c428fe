"""
Tests for the funding allocation calculator.

Covers:
- Amount and formula text
- Salary basis selection around the probation end date
- Forced basis
- FTE range and missing salary errors
"""

from datetime import date
from decimal import Decimal

import pytest

from hrms_engines.allocation import (
    SalaryBasis,
    SalarySnapshot,
    calculate_allocation,
    format_formula,
    select_salary_basis,
)
from hrms_kernel.exceptions import InvalidFteError, MissingSalaryError


def _snapshot(**overrides) -> SalarySnapshot:
    values = {
        "post_probation_salary": Decimal("50000"),
        "probation_salary": Decimal("40000"),
        "probation_end_date": date(2024, 4, 1),
    }
    values.update(overrides)
    return SalarySnapshot(**values)


class TestAllocatedAmount:
    def test_sixty_percent_of_fifty_thousand(self):
        calc = calculate_allocation(
            snapshot=SalarySnapshot(post_probation_salary=Decimal("50000")),
            fte_percentage=Decimal("60"),
            as_of_date=date(2024, 5, 1),
        )

        assert calc.allocated_amount == Decimal("30000.00")
        assert calc.base_salary == Decimal("50000")
        assert calc.salary_basis == SalaryBasis.POST_PROBATION
        assert calc.formula_text == "(50000 × 60) / 100 = 30000"

    def test_rounds_half_up_to_cents(self):
        calc = calculate_allocation(
            snapshot=SalarySnapshot(post_probation_salary=Decimal("10000.05")),
            fte_percentage=Decimal("50"),
            as_of_date=date(2024, 5, 1),
        )
        # 5000.025 -> 5000.03
        assert calc.allocated_amount == Decimal("5000.03")

    def test_fractional_fte_formula_keeps_decimals(self):
        calc = calculate_allocation(
            snapshot=SalarySnapshot(post_probation_salary=Decimal("30000")),
            fte_percentage=Decimal("33.33"),
            as_of_date=date(2024, 5, 1),
        )
        assert calc.allocated_amount == Decimal("9999.00")
        assert calc.formula_text == "(30000 × 33.33) / 100 = 9999"

    def test_full_fte_equals_salary(self):
        calc = calculate_allocation(
            snapshot=SalarySnapshot(post_probation_salary=Decimal("45000")),
            fte_percentage=Decimal("100"),
            as_of_date=date(2024, 5, 1),
        )
        assert calc.allocated_amount == Decimal("45000.00")

    def test_currency_places_are_configurable(self):
        calc = calculate_allocation(
            snapshot=SalarySnapshot(post_probation_salary=Decimal("1000")),
            fte_percentage=Decimal("33.333"),
            as_of_date=date(2024, 5, 1),
            currency_places=0,
        )
        assert calc.allocated_amount == Decimal("333")

    def test_formula_of_cents_amount(self):
        assert (
            format_formula(Decimal("40000.50"), Decimal("25"), Decimal("10000.13"))
            == "(40000.5 × 25) / 100 = 10000.13"
        )


class TestSalaryBasisSelection:
    def test_probation_before_end_date(self):
        assert select_salary_basis(_snapshot(), date(2024, 3, 31)) == SalaryBasis.PROBATION

    def test_post_probation_on_end_date(self):
        assert select_salary_basis(_snapshot(), date(2024, 4, 1)) == SalaryBasis.POST_PROBATION

    def test_post_probation_after_end_date(self):
        assert select_salary_basis(_snapshot(), date(2024, 6, 1)) == SalaryBasis.POST_PROBATION

    def test_post_probation_without_probation_salary(self):
        snap = _snapshot(probation_salary=None)
        assert select_salary_basis(snap, date(2024, 1, 15)) == SalaryBasis.POST_PROBATION

    def test_post_probation_without_end_date(self):
        snap = _snapshot(probation_end_date=None)
        assert select_salary_basis(snap, date(2024, 1, 15)) == SalaryBasis.POST_PROBATION

    def test_completed_probation_is_post_before_end_date(self):
        snap = _snapshot(probation_completed=True)
        assert select_salary_basis(snap, date(2024, 1, 15)) == SalaryBasis.POST_PROBATION

    def test_probation_amount_during_probation(self):
        calc = calculate_allocation(
            snapshot=_snapshot(),
            fte_percentage=Decimal("70"),
            as_of_date=date(2024, 2, 1),
        )
        assert calc.salary_basis == SalaryBasis.PROBATION
        assert calc.allocated_amount == Decimal("28000.00")

    def test_forced_basis_overrides_date_rule(self):
        calc = calculate_allocation(
            snapshot=_snapshot(),
            fte_percentage=Decimal("70"),
            as_of_date=date(2024, 2, 1),
            force_basis=SalaryBasis.POST_PROBATION,
        )
        assert calc.salary_basis == SalaryBasis.POST_PROBATION
        assert calc.allocated_amount == Decimal("35000.00")


class TestCalculatorErrors:
    @pytest.mark.parametrize("fte", ["0", "-5", "100.01", "250"])
    def test_fte_out_of_range(self, fte):
        with pytest.raises(InvalidFteError) as exc_info:
            calculate_allocation(
                snapshot=_snapshot(),
                fte_percentage=Decimal(fte),
                as_of_date=date(2024, 5, 1),
            )
        assert exc_info.value.code == "INVALID_FTE"

    def test_float_fte_is_rejected(self):
        with pytest.raises(TypeError):
            calculate_allocation(
                snapshot=_snapshot(),
                fte_percentage=60.0,
                as_of_date=date(2024, 5, 1),
            )

    def test_missing_post_probation_salary(self):
        with pytest.raises(MissingSalaryError) as exc_info:
            calculate_allocation(
                snapshot=SalarySnapshot(post_probation_salary=None),
                fte_percentage=Decimal("50"),
                as_of_date=date(2024, 5, 1),
            )
        assert exc_info.value.code == "MISSING_SALARY"

    def test_zero_salary_is_missing(self):
        with pytest.raises(MissingSalaryError):
            calculate_allocation(
                snapshot=SalarySnapshot(post_probation_salary=Decimal("0")),
                fte_percentage=Decimal("50"),
                as_of_date=date(2024, 5, 1),
            )

    def test_forced_probation_basis_without_probation_salary(self):
        with pytest.raises(MissingSalaryError):
            calculate_allocation(
                snapshot=_snapshot(probation_salary=None),
                fte_percentage=Decimal("50"),
                as_of_date=date(2024, 2, 1),
                force_basis=SalaryBasis.PROBATION,
            )
