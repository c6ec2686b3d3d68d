"""
External collaborators of payroll generation (``hr_modules.payroll.sources``).

The engine reads employee, breakup, attendance, adjustment, installment and
rebate data from systems it does not own.  Each is a structural
``Protocol``: any object with the right methods can be wired in, whether it
wraps an ORM, an HTTP API or an in-memory fixture.

When ``PayrollConfig.max_workers > 1`` the per-employee calls happen on
worker threads, so sources must then be safe to call concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

from hr_engines.adjustments import PayrollAdjustment
from hr_engines.deductions import AttendanceSummary, Installment, TaxRebate
from hr_engines.salary_breakup import SalaryBreakupComponent
from hr_kernel.domain.period import MonthYear
from hr_modules.payroll.models import EmployeeRecord


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Employee master data: salary, department, active status."""

    def get_employee(self, employee_id: str) -> EmployeeRecord | None: ...

    def list_employees(
        self,
        department_id: str | None = None,
        sub_department_id: str | None = None,
        include_inactive: bool = False,
    ) -> Sequence[EmployeeRecord]: ...


@runtime_checkable
class SalaryBreakupSource(Protocol):
    """Breakup components for an employee (or the organization default)."""

    def components_for(self, employee_id: str) -> Sequence[SalaryBreakupComponent]: ...


@runtime_checkable
class AttendanceSource(Protocol):
    """Absent/short/half/late counts for an employee and month."""

    def summary_for(
        self, employee_id: str, month_year: MonthYear
    ) -> AttendanceSummary | None: ...


@runtime_checkable
class AdjustmentSource(Protocol):
    """Allowances, overtime, bonuses and ad-hoc deductions."""

    def adjustments_for(
        self, employee_id: str, month_year: MonthYear
    ) -> Sequence[PayrollAdjustment]: ...


@runtime_checkable
class InstallmentSource(Protocol):
    """Loan and advance-salary installments due in a month."""

    def installments_for(
        self, employee_id: str, month_year: MonthYear
    ) -> Sequence[Installment]: ...


@runtime_checkable
class RebateSource(Protocol):
    """Tax rebates granted for a month."""

    def rebates_for(self, employee_id: str, month_year: MonthYear) -> Sequence[TaxRebate]: ...


@dataclass(frozen=True)
class PayrollSources:
    """All collaborators the payroll service reads from."""

    employees: EmployeeDirectory
    salary_breakups: SalaryBreakupSource
    attendance: AttendanceSource
    adjustments: AdjustmentSource
    installments: InstallmentSource
    rebates: RebateSource | None = None
