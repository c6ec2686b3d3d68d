"""
Tests for the Payroll Generation Service.

Validates:
- Employee selection (explicit list, department filters, inactive employees)
- Preview: full line computation, degraded rows, no writes, parallel fan-out
- Confirm: persistence, recomputation, review flag, idempotency and
  all-or-nothing rollback on every failure path
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from uuid import UUID

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from hr_engines.adjustments import AdjustmentKind, PayrollAdjustment
from hr_engines.deductions import (
    AdvanceInstallment,
    AttendanceSummary,
    LoanInstallment,
    TaxRebate,
)
from hr_engines.salary_breakup import SalaryBreakupComponent
from hr_engines.tax import TaxSlab, TaxSlabSchedule
from hr_kernel.domain.period import MonthYear
from hr_kernel.exceptions import (
    DuplicateConfirmationError,
    EmptySelectionError,
    InvalidPeriodError,
    PersistenceError,
    UnresolvedPreviewLinesError,
    ValidationError,
)
from hr_modules.payroll.calculator import apply_adjustment_edit
from hr_modules.payroll.config import PayrollConfig
from hr_modules.payroll.orm import PayrollRecordModel, PayrollRunModel

MARCH = MonthYear(2025, 3)


def flat_tax(rate):
    def _tax(income):
        return income * Decimal(rate) / Decimal("100")
    return _tax


def record_count(session) -> int:
    return session.scalar(select(func.count()).select_from(PayrollRecordModel))


def run_count(session) -> int:
    return session.scalar(select(func.count()).select_from(PayrollRunModel))


@pytest.fixture
def staff(hr_data):
    """Three active employees across two departments plus one inactive."""
    hr_data.add_employee("e1", "50000", department_id="ENG", sub_department_id="BE")
    hr_data.add_employee("e2", "30000", department_id="ENG", sub_department_id="FE")
    hr_data.add_employee("e3", "40000", department_id="OPS")
    hr_data.add_employee("e4", "45000", department_id="ENG", is_active=False)
    return hr_data


# =============================================================================
# Selection
# =============================================================================


class TestSelectEmployees:

    def test_all_active_employees_by_default(self, service, staff):
        selection = service.select_employees(3, 2025)
        assert selection.employee_ids == ("e1", "e2", "e3")
        assert selection.month_year == MARCH

    def test_department_filter(self, service, staff):
        assert service.select_employees(3, 2025, department_id="ENG").employee_ids == ("e1", "e2")

    def test_sub_department_filter(self, service, staff):
        selection = service.select_employees(
            3, 2025, department_id="ENG", sub_department_id="FE",
        )
        assert selection.employee_ids == ("e2",)

    def test_explicit_list_wins_over_filter(self, service, staff):
        selection = service.select_employees(
            3, 2025, employee_ids=["e3"], department_id="ENG",
        )
        assert selection.employee_ids == ("e3",)

    def test_explicit_list_deduplicated_in_order(self, service, staff):
        selection = service.select_employees(3, 2025, employee_ids=["e2", "e1", "e2"])
        assert selection.employee_ids == ("e2", "e1")

    def test_inactive_included_when_configured(self, make_service, staff):
        service = make_service(config=PayrollConfig(include_inactive_employees=True))
        assert "e4" in service.select_employees(3, 2025).employee_ids

    def test_empty_department(self, service, staff):
        with pytest.raises(EmptySelectionError) as exc_info:
            service.select_employees(3, 2025, department_id="HR")
        assert exc_info.value.department_id == "HR"
        assert exc_info.value.code == "EMPTY_SELECTION"

    def test_empty_explicit_list(self, service, staff):
        with pytest.raises(EmptySelectionError):
            service.select_employees(3, 2025, employee_ids=[])

    def test_invalid_month(self, service, staff):
        with pytest.raises(InvalidPeriodError):
            service.select_employees(13, 2025)


# =============================================================================
# Preview
# =============================================================================


class TestPreviewPayroll:

    def test_one_line_per_employee_in_order(self, service, staff):
        lines = service.preview_payroll(3, 2025)

        assert [line.employee_id for line in lines] == ["e1", "e2", "e3"]
        e1 = lines[0]
        assert e1.basic_salary == Decimal("50000.00")
        assert [c.amount for c in e1.salary_breakup] == [
            Decimal("30000.00"), Decimal("20000.00"),
        ]
        assert e1.gross_salary == Decimal("50000.00")
        assert e1.net_salary == Decimal("50000.00")
        assert not e1.is_error

    def test_accepts_string_period(self, service, staff):
        lines = service.preview_payroll("03", "2025", employee_ids=["e1"])
        assert lines[0].month_year == MARCH

    def test_preview_writes_nothing(self, service, staff, session):
        service.preview_payroll(3, 2025)
        service.preview_payroll(3, 2025)
        assert record_count(session) == 0
        assert run_count(session) == 0

    def test_full_line_computation(self, make_service, hr_data):
        hr_data.add_employee(
            "e1", "50000", attended=False, eobi_enabled=True, provident_fund_enabled=True,
        )
        hr_data.attendance[("e1", MARCH)] = AttendanceSummary(
            "e1", MARCH, absent_days=Decimal("1"),
        )
        hr_data.adjustments += [
            PayrollAdjustment("e1", MARCH, AdjustmentKind.ALLOWANCE, Decimal("1000"), is_taxable=False),
            PayrollAdjustment("e1", MARCH, AdjustmentKind.OVERTIME, hours=Decimal("10")),
            PayrollAdjustment("e1", MARCH, AdjustmentKind.BONUS, percentage=Decimal("10")),
            PayrollAdjustment("e1", MARCH, AdjustmentKind.DEDUCTION, Decimal("200")),
        ]
        hr_data.installments += [
            LoanInstallment("e1", MARCH, Decimal("2000"), remaining_balance=Decimal("1500")),
            AdvanceInstallment("e1", MARCH, Decimal("1000")),
        ]
        hr_data.rebates.append(TaxRebate("e1", MARCH, Decimal("60.58")))
        service = make_service(
            tax_function=flat_tax("10"),
            config=PayrollConfig(
                eobi_amount=Decimal("370"),
                provident_fund_percentage=Decimal("10"),
            ),
        )

        (line,) = service.preview_payroll(3, 2025)

        assert line.total_allowances == Decimal("1000.00")
        assert line.overtime_amount == Decimal("3605.77")
        assert line.bonus_amount == Decimal("5000.00")
        assert line.total_deductions == Decimal("200.00")
        assert line.gross_salary == Decimal("59605.77")
        assert line.attendance_deduction == Decimal("2292.53")
        assert line.tax_deduction == Decimal("5800.00")
        assert line.loan_deduction == Decimal("1500.00")
        assert line.advance_salary_deduction == Decimal("1000.00")
        assert line.eobi_deduction == Decimal("370.00")
        assert line.provident_fund_deduction == Decimal("3000.00")
        assert line.net_salary == Decimal("45443.24")
        assert line.warnings == ()

    def test_percentage_bonus_follows_salary_change(self, service, hr_data):
        hr_data.add_employee("e1", "30000")
        hr_data.adjustments.append(
            PayrollAdjustment("e1", MARCH, AdjustmentKind.BONUS, percentage=Decimal("10")),
        )
        assert service.preview_payroll(3, 2025)[0].bonus_amount == Decimal("3000.00")

        hr_data.add_employee("e1", "40000")
        assert service.preview_payroll(3, 2025)[0].bonus_amount == Decimal("4000.00")

    def test_eobi_period_override(self, make_service, hr_data):
        hr_data.add_employee("e1", "50000", eobi_enabled=True)
        service = make_service(config=PayrollConfig(
            eobi_amount=Decimal("370"), eobi_amounts={"2025-03": Decimal("400")},
        ))
        assert service.preview_payroll(3, 2025)[0].eobi_deduction == Decimal("400.00")

    def test_missing_salary_degrades_one_row(self, service, staff, captured_logs):
        staff.add_employee("e2", None, department_id="ENG")

        lines = service.preview_payroll(3, 2025)

        by_id = {line.employee_id: line for line in lines}
        assert by_id["e2"].is_error
        assert "base salary" in by_id["e2"].error
        assert by_id["e2"].employee_name == "Employee e2"
        assert not by_id["e1"].is_error
        assert not by_id["e3"].is_error
        degraded = [r for r in captured_logs() if r["message"] == "payroll_line_degraded"]
        assert degraded[0]["employee_id"] == "e2"

    def test_unknown_employee_degrades_row(self, service, staff):
        lines = service.preview_payroll(3, 2025, employee_ids=["e1", "ghost"])
        assert lines[1].is_error
        assert "employee record" in lines[1].error

    def test_missing_tax_slab_degrades_row(self, make_service, staff):
        capped = TaxSlabSchedule(
            slabs=(TaxSlab("Capped", Decimal("0"), Decimal("45000"), Decimal("5")),),
        )
        lines = make_service(tax_function=capped).preview_payroll(3, 2025)
        by_id = {line.employee_id: line for line in lines}
        assert by_id["e1"].is_error
        assert not by_id["e2"].is_error
        assert by_id["e2"].tax_deduction == Decimal("1500.00")

    def test_missing_attendance_is_a_warning(self, service, hr_data):
        hr_data.add_employee("e1", "50000", attended=False)
        (line,) = service.preview_payroll(3, 2025)
        assert not line.is_error
        assert line.attendance_deduction == Decimal("0.00")
        assert line.warnings == ("No attendance summary for 2025-03",)

    def test_unbalanced_breakup_warns(self, service, hr_data):
        hr_data.add_employee("e1", "50000")
        hr_data.breakups["e1"] = [SalaryBreakupComponent("Basic", Decimal("90"))]
        (line,) = service.preview_payroll(3, 2025)
        assert any("deviation" in w for w in line.warnings)

    def test_parallel_preview_matches_sequential(self, make_service, staff):
        sequential = make_service().preview_payroll(3, 2025)
        parallel = make_service(config=PayrollConfig(max_workers=4)).preview_payroll(3, 2025)
        assert parallel == sequential

    def test_preview_logs_start_and_completion(self, service, staff, captured_logs):
        service.preview_payroll(3, 2025)
        messages = [r["message"] for r in captured_logs()]
        assert "payroll_preview_started" in messages
        assert "payroll_preview_completed" in messages
        completed = next(r for r in captured_logs() if r["message"] == "payroll_preview_completed")
        assert completed["month_year"] == "2025-03"
        assert completed["line_count"] == 3


# =============================================================================
# Confirm
# =============================================================================


class TestConfirmPayroll:

    def test_confirm_persists_records_and_run(
        self, service, staff, session, test_actor_id, deterministic_clock,
    ):
        lines = service.preview_payroll(3, 2025)
        records = service.confirm_payroll(3, 2025, test_actor_id, lines)

        assert len(records) == 3
        assert record_count(session) == 3
        assert run_count(session) == 1
        assert {r.run_id for r in records} == {records[0].run_id}
        assert all(r.generated_by == test_actor_id for r in records)
        assert all(r.confirmed_at == deterministic_clock.now() for r in records)

        stored = service.get_confirmed_records(3, 2025)
        assert [r.employee_id for r in stored] == ["e1", "e2", "e3"]
        assert stored[0].net_salary == lines[0].net_salary
        assert stored[0].salary_breakup == lines[0].salary_breakup

        (run,) = service.get_runs(3, 2025)
        assert run.employee_count == 3
        assert run.total_net == Decimal("120000.00")

    def test_confirm_keeps_edits(self, service, staff, test_actor_id):
        lines = service.preview_payroll(3, 2025, employee_ids=["e1"])
        lines[0] = apply_adjustment_edit(lines[0], "bonus_amount", "2500")

        (record,) = service.confirm_payroll(3, 2025, test_actor_id, lines)

        assert record.bonus_amount == Decimal("2500.00")
        assert record.gross_salary == Decimal("52500.00")

    def test_confirm_recomputes_totals(self, service, staff, test_actor_id, captured_logs):
        (line,) = service.preview_payroll(3, 2025, employee_ids=["e1"])
        tampered = replace(line, net_salary=Decimal("999999.00"))

        (record,) = service.confirm_payroll(3, 2025, test_actor_id, [tampered])

        assert record.net_salary == Decimal("50000.00")
        assert any(r["message"] == "payroll_line_totals_recomputed" for r in captured_logs())

    def test_negative_net_persisted_for_review(self, service, hr_data, test_actor_id):
        hr_data.add_employee("e1", "20000")
        (line,) = service.preview_payroll(3, 2025)
        line = apply_adjustment_edit(line, "total_deductions", "25000")

        (record,) = service.confirm_payroll(3, 2025, test_actor_id, [line])

        assert record.net_salary == Decimal("-5000.00")
        assert record.requires_review
        assert service.get_confirmed_records(3, 2025)[0].requires_review
        assert service.get_runs(3, 2025)[0].review_count == 1

    def test_negative_net_from_tax_and_loan(self, make_service, hr_data, test_actor_id):
        hr_data.add_employee("e1", "20000")
        hr_data.installments.append(
            LoanInstallment("e1", MARCH, Decimal("10000"), remaining_balance=Decimal("40000"))
        )
        service = make_service(tax_function=lambda income: Decimal("15000"))

        (line,) = service.preview_payroll(3, 2025)
        assert line.tax_deduction == Decimal("15000.00")
        assert line.loan_deduction == Decimal("10000.00")
        assert line.net_salary == Decimal("-5000.00")
        assert line.requires_review

        (record,) = service.confirm_payroll(3, 2025, test_actor_id, [line])

        assert record.net_salary == Decimal("-5000.00")
        assert record.requires_review
        (stored,) = service.get_confirmed_records(3, 2025)
        assert stored.net_salary == Decimal("-5000.00")
        assert stored.requires_review

    @pytest.mark.parametrize("field_name, amount", [
        ("tax_deduction", Decimal("-700")),
        ("total_allowances", Decimal("100.005")),
        ("basic_salary", Decimal("-1.00")),
        ("loan_deduction", Decimal("NaN")),
    ])
    def test_bad_line_amounts_rejected(
        self, service, staff, session, test_actor_id, field_name, amount,
    ):
        (line,) = service.preview_payroll(3, 2025, employee_ids=["e1"])
        tampered = replace(line, **{field_name: amount})

        with pytest.raises(ValidationError) as exc_info:
            service.confirm_payroll(3, 2025, test_actor_id, [tampered])

        assert exc_info.value.field == field_name
        assert record_count(session) == 0

    def test_trailing_zero_amounts_accepted(self, service, staff, test_actor_id):
        (line,) = service.preview_payroll(3, 2025, employee_ids=["e1"])
        padded = replace(line, total_allowances=Decimal("100.000"))

        (record,) = service.confirm_payroll(3, 2025, test_actor_id, [padded])

        (stored,) = service.get_confirmed_records(3, 2025)
        assert record.gross_salary == stored.gross_salary == Decimal("50100.00")

    def test_second_confirm_rejected(self, service, staff, session, test_actor_id):
        lines = service.preview_payroll(3, 2025)
        service.confirm_payroll(3, 2025, test_actor_id, lines)

        with pytest.raises(DuplicateConfirmationError) as exc_info:
            service.confirm_payroll(3, 2025, test_actor_id, lines)

        assert exc_info.value.employee_ids == ["e1", "e2", "e3"]
        assert exc_info.value.code == "ALREADY_GENERATED"
        assert record_count(session) == 3
        assert run_count(session) == 1

    def test_partial_overlap_writes_nothing(self, service, staff, session, test_actor_id):
        service.confirm_payroll(
            3, 2025, test_actor_id, service.preview_payroll(3, 2025, employee_ids=["e1"]),
        )

        with pytest.raises(DuplicateConfirmationError) as exc_info:
            service.confirm_payroll(
                3, 2025, test_actor_id,
                service.preview_payroll(3, 2025, employee_ids=["e1", "e2"]),
            )

        assert exc_info.value.employee_ids == ["e1"]
        assert [r.employee_id for r in service.get_confirmed_records(3, 2025)] == ["e1"]

    def test_other_month_is_independent(self, service, staff, test_actor_id):
        service.confirm_payroll(3, 2025, test_actor_id, service.preview_payroll(3, 2025))
        april = service.preview_payroll(4, 2025)
        assert len(service.confirm_payroll(4, 2025, test_actor_id, april)) == 3

    def test_unique_violation_reported_as_duplicate(
        self, service, staff, session, test_actor_id, monkeypatch,
    ):
        lines = service.preview_payroll(3, 2025, employee_ids=["e1"])
        service.confirm_payroll(3, 2025, test_actor_id, lines)

        real_find = service._find_confirmed
        calls = []

        def stale_precheck(employee_ids, month_year):
            calls.append(employee_ids)
            if len(calls) == 1:
                return []
            return real_find(employee_ids, month_year)

        monkeypatch.setattr(service, "_find_confirmed", stale_precheck)

        with pytest.raises(DuplicateConfirmationError) as exc_info:
            service.confirm_payroll(3, 2025, test_actor_id, lines)

        assert exc_info.value.employee_ids == ["e1"]
        assert record_count(session) == 1
        assert run_count(session) == 1

    def test_non_unique_integrity_failure_is_persistence_error(
        self, service, staff, session, test_actor_id, monkeypatch,
    ):
        lines = service.preview_payroll(3, 2025)
        real_flush = session.flush

        def failing_flush(*args, **kwargs):
            if session.new:
                raise IntegrityError(
                    "INSERT", {}, Exception("NOT NULL constraint failed: payroll_records.run_id"),
                )
            return real_flush(*args, **kwargs)

        monkeypatch.setattr(session, "flush", failing_flush)

        with pytest.raises(PersistenceError) as exc_info:
            service.confirm_payroll(3, 2025, test_actor_id, lines)

        assert "NOT NULL" in exc_info.value.reason
        monkeypatch.undo()
        assert record_count(session) == 0
        assert run_count(session) == 0

    def test_storage_failure_rolls_back(
        self, service, staff, session, test_actor_id, monkeypatch, captured_logs,
    ):
        lines = service.preview_payroll(3, 2025)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", failing_commit)

        with pytest.raises(PersistenceError) as exc_info:
            service.confirm_payroll(3, 2025, test_actor_id, lines)

        assert exc_info.value.month_year == "2025-03"
        monkeypatch.undo()
        assert record_count(session) == 0
        assert run_count(session) == 0
        assert any(r["message"] == "payroll_confirm_rolled_back" for r in captured_logs())

    def test_error_rows_block_confirm(self, service, staff, session, test_actor_id):
        lines = service.preview_payroll(3, 2025, employee_ids=["e1", "ghost"])

        with pytest.raises(UnresolvedPreviewLinesError) as exc_info:
            service.confirm_payroll(3, 2025, test_actor_id, lines)

        assert exc_info.value.employee_ids == ["ghost"]
        assert record_count(session) == 0

    def test_error_rows_removed_then_confirmed(self, service, staff, test_actor_id):
        lines = service.preview_payroll(3, 2025, employee_ids=["e1", "ghost"])
        resolved = [line for line in lines if not line.is_error]
        assert len(service.confirm_payroll(3, 2025, test_actor_id, resolved)) == 1

    def test_empty_batch_rejected(self, service, test_actor_id):
        with pytest.raises(ValidationError):
            service.confirm_payroll(3, 2025, test_actor_id, [])

    def test_actor_required(self, service, staff):
        lines = service.preview_payroll(3, 2025)
        with pytest.raises(ValidationError) as exc_info:
            service.confirm_payroll(3, 2025, None, lines)
        assert exc_info.value.field == "generated_by"

    def test_period_mismatch_rejected(self, service, staff, session, test_actor_id):
        lines = service.preview_payroll(3, 2025)
        with pytest.raises(ValidationError):
            service.confirm_payroll(4, 2025, test_actor_id, lines)
        assert record_count(session) == 0

    def test_repeated_employee_rejected(self, service, staff, test_actor_id):
        lines = service.preview_payroll(3, 2025, employee_ids=["e1"])
        with pytest.raises(ValidationError, match="more than once"):
            service.confirm_payroll(3, 2025, test_actor_id, lines + lines)

    def test_confirm_logs_commit_with_context(
        self, service, staff, test_actor_id, captured_logs,
    ):
        service.confirm_payroll(3, 2025, test_actor_id, service.preview_payroll(3, 2025))
        committed = next(
            r for r in captured_logs() if r["message"] == "payroll_confirm_committed"
        )
        assert committed["actor_id"] == str(test_actor_id)
        assert committed["month_year"] == "2025-03"
        assert UUID(committed["run_id"])
        assert committed["employee_count"] == 3
