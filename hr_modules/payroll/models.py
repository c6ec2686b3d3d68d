"""
Payroll Domain Models (``hr_modules.payroll.models``).

Responsibility
--------------
Frozen dataclass value objects for payroll generation: the employee data the
engine reads, the editable preview line, and the confirmed, immutable
payroll record and run.  Engine input types (adjustments, installments,
attendance, breakup components) are re-exported from ``hr_engines`` so
callers import every payroll noun from one place.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``; a preview edit produces a new line.
* All monetary fields are ``Decimal`` -- a float is rejected at construction.
* A preview line has a fixed shape: every field is declared here and nothing
  is added by string key.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from hr_engines.adjustments import AdjustmentKind, OvertimeType, PayrollAdjustment
from hr_engines.deductions import (
    AdvanceInstallment,
    AttendanceSummary,
    Installment,
    LoanInstallment,
    TaxRebate,
)
from hr_engines.salary_breakup import ResolvedComponent, SalaryBreakupComponent
from hr_kernel.db.types import ZERO
from hr_kernel.domain.period import MonthYear
from hr_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.models")

__all__ = [
    "AdjustmentKind",
    "AdvanceInstallment",
    "AttendanceSummary",
    "EmployeeRecord",
    "Installment",
    "LoanInstallment",
    "OvertimeType",
    "PayrollAdjustment",
    "PayrollPreviewLine",
    "PayrollRecord",
    "PayrollRun",
    "ResolvedComponent",
    "SalaryBreakupComponent",
    "TaxRebate",
    "ADJUSTABLE_FIELDS",
    "DEDUCTION_FIELDS",
    "EARNING_FIELDS",
]


# Fields the caller may edit during preview.
ADJUSTABLE_FIELDS: tuple[str, ...] = (
    "total_allowances",
    "overtime_amount",
    "bonus_amount",
    "total_deductions",
)

# Fields summed into gross salary.
EARNING_FIELDS: tuple[str, ...] = (
    "basic_salary",
    "total_allowances",
    "overtime_amount",
    "bonus_amount",
)

# Fields summed into the deductions total.
DEDUCTION_FIELDS: tuple[str, ...] = (
    "total_deductions",
    "tax_deduction",
    "attendance_deduction",
    "loan_deduction",
    "advance_salary_deduction",
    "eobi_deduction",
    "provident_fund_deduction",
)

_AMOUNT_FIELDS = EARNING_FIELDS + DEDUCTION_FIELDS + ("gross_salary", "net_salary")


def _require_decimals(obj, names: tuple[str, ...]) -> None:
    for name in names:
        value = getattr(obj, name)
        if not isinstance(value, Decimal):
            raise TypeError(
                f"{type(obj).__name__}.{name} must be Decimal, got {type(value).__name__}"
            )


@dataclass(frozen=True)
class EmployeeRecord:
    """What the employee directory tells the engine about one employee."""

    id: str
    employee_code: str
    name: str
    base_salary: Decimal | None
    department_id: str | None = None
    sub_department_id: str | None = None
    is_active: bool = True
    eobi_enabled: bool = False
    provident_fund_enabled: bool = False

    def __post_init__(self):
        if self.base_salary is not None and self.base_salary < ZERO:
            logger.warning(
                "employee_negative_base_salary",
                extra={"employee_id": self.id, "base_salary": str(self.base_salary)},
            )
            raise ValueError("base_salary cannot be negative")


@dataclass(frozen=True)
class PayrollPreviewLine:
    """
    One employee's computed payroll for a period, before confirmation.

    Amount fields hold values already rounded to 2 places.  ``gross_salary``
    and ``net_salary`` are always produced by
    ``hr_modules.payroll.calculator`` -- build or edit lines through it.

    ``error`` set means the line could not be computed; such a line blocks
    confirmation until it is resolved or removed from the batch.
    """

    employee_id: str
    month_year: MonthYear
    basic_salary: Decimal = ZERO
    salary_breakup: tuple[ResolvedComponent, ...] = ()
    total_allowances: Decimal = ZERO
    overtime_amount: Decimal = ZERO
    bonus_amount: Decimal = ZERO
    total_deductions: Decimal = ZERO
    tax_deduction: Decimal = ZERO
    attendance_deduction: Decimal = ZERO
    loan_deduction: Decimal = ZERO
    advance_salary_deduction: Decimal = ZERO
    eobi_deduction: Decimal = ZERO
    provident_fund_deduction: Decimal = ZERO
    gross_salary: Decimal = ZERO
    net_salary: Decimal = ZERO
    employee_code: str = ""
    employee_name: str = ""
    warnings: tuple[str, ...] = ()
    error: str | None = None

    def __post_init__(self):
        if not self.employee_id:
            raise ValueError("employee_id is required")
        if not isinstance(self.month_year, MonthYear):
            raise TypeError("month_year must be a MonthYear")
        _require_decimals(self, _AMOUNT_FIELDS)

    @property
    def total_deductions_sum(self) -> Decimal:
        return sum((getattr(self, name) for name in DEDUCTION_FIELDS), ZERO)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def requires_review(self) -> bool:
        """Negative net pay is never clamped; it is flagged for review."""
        return self.net_salary < ZERO


@dataclass(frozen=True)
class PayrollRecord:
    """The confirmed, immutable payroll for one employee and period."""

    id: UUID
    run_id: UUID
    employee_id: str
    month_year: MonthYear
    basic_salary: Decimal
    salary_breakup: tuple[ResolvedComponent, ...]
    total_allowances: Decimal
    overtime_amount: Decimal
    bonus_amount: Decimal
    total_deductions: Decimal
    tax_deduction: Decimal
    attendance_deduction: Decimal
    loan_deduction: Decimal
    advance_salary_deduction: Decimal
    eobi_deduction: Decimal
    provident_fund_deduction: Decimal
    gross_salary: Decimal
    net_salary: Decimal
    generated_by: UUID
    confirmed_at: datetime
    requires_review: bool = False
    employee_code: str = ""
    employee_name: str = ""
    warnings: tuple[str, ...] = ()

    @classmethod
    def from_line(
        cls,
        line: PayrollPreviewLine,
        *,
        id: UUID,
        run_id: UUID,
        generated_by: UUID,
        confirmed_at: datetime,
    ) -> PayrollRecord:
        copied = {
            f.name: getattr(line, f.name)
            for f in fields(PayrollPreviewLine)
            if f.name != "error"
        }
        return cls(
            id=id,
            run_id=run_id,
            generated_by=generated_by,
            confirmed_at=confirmed_at,
            requires_review=line.requires_review,
            **copied,
        )


@dataclass(frozen=True)
class PayrollRun:
    """Header of a confirmed payroll batch."""

    id: UUID
    month_year: MonthYear
    generated_by: UUID
    confirmed_at: datetime
    employee_count: int
    total_gross: Decimal
    total_net: Decimal
    review_count: int = 0
