"""
Payroll Line Calculator (``hr_modules.payroll.calculator``).

Responsibility
--------------
The one place gross and net pay are derived.  Preview, preview edits and
confirmation all call ``compute_gross_and_net`` so a confirmed record can
never disagree with the line the caller reviewed.

    gross_salary = basic_salary + total_allowances + overtime_amount + bonus_amount
    deductions   = total_deductions + tax_deduction + attendance_deduction
                 + loan_deduction + advance_salary_deduction
                 + eobi_deduction + provident_fund_deduction
    net_salary   = gross_salary - deductions

Architecture position
---------------------
**Modules layer** -- pure functions, ZERO I/O.

Invariants enforced
-------------------
* Component amounts are rounded once, when stored on the line.  Gross and
  net are exact sums of the stored values, so both identities hold to the
  cent after any sequence of edits.
* Negative net pay is propagated, never clamped.  ``requires_review`` on
  the line flags it.
* Only ``ADJUSTABLE_FIELDS`` may be edited; every other field is derived.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from hr_engines.adjustments import AdjustmentTotals
from hr_engines.deductions import DeductionBreakdown
from hr_engines.salary_breakup import BreakupResolution
from hr_kernel.db.types import ZERO, round_money, to_decimal
from hr_kernel.domain.period import MonthYear
from hr_kernel.exceptions import InvalidPreviewEditError
from hr_kernel.logging_config import get_logger
from hr_modules.payroll.models import (
    ADJUSTABLE_FIELDS,
    DEDUCTION_FIELDS,
    EARNING_FIELDS,
    EmployeeRecord,
    PayrollPreviewLine,
)

logger = get_logger("modules.payroll.calculator")


def compute_gross_and_net(
    earnings: dict[str, Decimal],
    deductions: dict[str, Decimal],
) -> tuple[Decimal, Decimal]:
    """Return ``(gross, net)`` from already-rounded component amounts."""
    gross = sum((earnings.get(name, ZERO) for name in EARNING_FIELDS), ZERO)
    deducted = sum((deductions.get(name, ZERO) for name in DEDUCTION_FIELDS), ZERO)
    return gross, gross - deducted


def _components(line: PayrollPreviewLine) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    earnings = {name: getattr(line, name) for name in EARNING_FIELDS}
    deductions = {name: getattr(line, name) for name in DEDUCTION_FIELDS}
    return earnings, deductions


def recalculate_line(line: PayrollPreviewLine) -> PayrollPreviewLine:
    """Re-derive gross and net from the line's stored components."""
    earnings, deductions = _components(line)
    gross, net = compute_gross_and_net(earnings, deductions)
    return replace(line, gross_salary=gross, net_salary=net)


def build_preview_line(
    employee: EmployeeRecord,
    month_year: MonthYear,
    breakup: BreakupResolution,
    adjustments: AdjustmentTotals,
    deductions: DeductionBreakdown,
    warnings: Sequence[str] = (),
) -> PayrollPreviewLine:
    """Assemble and total one employee's preview line."""
    line = PayrollPreviewLine(
        employee_id=employee.id,
        month_year=month_year,
        employee_code=employee.employee_code,
        employee_name=employee.name,
        basic_salary=round_money(employee.base_salary or ZERO),
        salary_breakup=breakup.components,
        total_allowances=round_money(adjustments.total_allowances),
        overtime_amount=round_money(adjustments.overtime_amount),
        bonus_amount=round_money(adjustments.bonus_amount),
        total_deductions=round_money(adjustments.total_deductions),
        tax_deduction=round_money(deductions.tax_deduction),
        attendance_deduction=round_money(deductions.attendance_deduction),
        loan_deduction=round_money(deductions.loan_deduction),
        advance_salary_deduction=round_money(deductions.advance_salary_deduction),
        eobi_deduction=round_money(deductions.eobi_deduction),
        provident_fund_deduction=round_money(deductions.provident_fund_deduction),
        warnings=tuple(warnings),
    )
    line = recalculate_line(line)
    if line.requires_review:
        logger.warning(
            "payroll_line_negative_net",
            extra={
                "employee_id": line.employee_id,
                "month_year": str(month_year),
                "net_salary": str(line.net_salary),
            },
        )
    return line


def apply_adjustment_edit(
    line: PayrollPreviewLine,
    field_name: str,
    value: Any,
) -> PayrollPreviewLine:
    """
    Return a new line with one adjustable field replaced and totals re-derived.

    Raises:
        InvalidPreviewEditError: ``field_name`` is not adjustable, or the
            value is not a non-negative number.
    """
    if field_name not in ADJUSTABLE_FIELDS:
        raise InvalidPreviewEditError(
            field_name, value, f"only {', '.join(ADJUSTABLE_FIELDS)} can be edited"
        )
    if line.is_error:
        raise InvalidPreviewEditError(field_name, value, "line failed to compute")

    try:
        amount = to_decimal(value)
    except ValueError as exc:
        raise InvalidPreviewEditError(field_name, value, "not a number") from exc
    if not amount.is_finite():
        raise InvalidPreviewEditError(field_name, value, "not a finite number")
    if amount < ZERO:
        raise InvalidPreviewEditError(field_name, value, "cannot be negative")

    try:
        rounded = round_money(amount)
    except InvalidOperation as exc:
        raise InvalidPreviewEditError(field_name, value, "out of range") from exc

    edited = recalculate_line(replace(line, **{field_name: rounded}))
    logger.info(
        "payroll_line_edited",
        extra={
            "employee_id": line.employee_id,
            "field": field_name,
            "old_value": str(getattr(line, field_name)),
            "new_value": str(getattr(edited, field_name)),
            "net_salary": str(edited.net_salary),
        },
    )
    return edited


def error_line(
    employee_id: str,
    month_year: MonthYear,
    message: str,
    employee: EmployeeRecord | None = None,
) -> PayrollPreviewLine:
    """An all-zero line flagged with ``message``; blocks confirmation."""
    return PayrollPreviewLine(
        employee_id=employee_id,
        month_year=month_year,
        employee_code=employee.employee_code if employee else "",
        employee_name=employee.name if employee else "",
        error=message,
    )
