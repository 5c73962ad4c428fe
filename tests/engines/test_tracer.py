"""Tests for the engine tracer decorator and input fingerprints."""

from datetime import date
from decimal import Decimal

import pytest

from hrms_engines.allocation import SalaryBasis, SalarySnapshot, calculate_allocation
from hrms_engines.tracer import compute_input_fingerprint, traced_engine


class TestFingerprint:
    def test_deterministic(self):
        kwargs = {"fte_percentage": Decimal("60"), "as_of_date": date(2024, 1, 1)}
        fields = ("fte_percentage", "as_of_date")
        assert compute_input_fingerprint(fields, kwargs) == compute_input_fingerprint(
            fields, dict(reversed(list(kwargs.items())))
        )

    def test_changes_with_input(self):
        fields = ("fte_percentage",)
        a = compute_input_fingerprint(fields, {"fte_percentage": Decimal("60")})
        b = compute_input_fingerprint(fields, {"fte_percentage": Decimal("61")})
        assert a != b
        assert len(a) == 16

    def test_dataclass_and_enum_inputs(self):
        snap = SalarySnapshot(post_probation_salary=Decimal("50000"))
        fields = ("snapshot", "force_basis")
        fp1 = compute_input_fingerprint(
            fields, {"snapshot": snap, "force_basis": SalaryBasis.POST_PROBATION}
        )
        fp2 = compute_input_fingerprint(
            fields,
            {
                "snapshot": SalarySnapshot(post_probation_salary=Decimal("50000")),
                "force_basis": SalaryBasis.POST_PROBATION,
            },
        )
        assert fp1 == fp2

    def test_missing_fields_are_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None}
        )


class TestTracedEngine:
    def test_emits_trace_record(self, captured_logs):
        calculate_allocation(
            snapshot=SalarySnapshot(post_probation_salary=Decimal("50000")),
            fte_percentage=Decimal("60"),
            as_of_date=date(2024, 5, 1),
        )
        traces = [r for r in captured_logs() if r["message"] == "HRMS_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "allocation"
        assert traces[0]["engine_version"] == "1.0"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_result_is_passed_through(self, captured_logs):
        @traced_engine("echo", "0.1", fingerprint_fields=("value",))
        def echo(*, value):
            return value

        assert echo(value=42) == 42
        assert captured_logs()[-1]["function"].endswith("echo")

    def test_no_trace_when_engine_raises(self, captured_logs):
        @traced_engine("boom", "0.1")
        def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            boom()
        assert not [r for r in captured_logs() if r.get("engine_name") == "boom"]
