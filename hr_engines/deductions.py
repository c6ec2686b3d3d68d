"""
Deduction & Tax Engine - statutory and scheduled deductions for a month.

Computes, for one employee and period:

* tax deduction        -- from a pluggable tax function, less rebates
* attendance deduction -- pro-rated share of pay for absent/short/half/late days
* loan deduction       -- scheduled installments, truncated to the balance
* advance deduction    -- advance-salary recoveries, truncated to the balance
* EOBI deduction       -- configured monthly amount when enrolled
* provident fund       -- configured percentage of the PF basis when enrolled

Pure functions with no I/O.  Results are unrounded; rounding happens where the
values are stored on a preview line.

Attendance policy:
    daily_rate     = basis_amount / scheduled_days
    penalised_days = absent_days
                   + short_days * short_day_weight
                   + half_days * half_day_weight
                   + (late_days // lates_per_deduction) * late_day_weight
    deduction      = min(daily_rate * penalised_days, basis_amount)

``scheduled_days`` comes from the attendance summary when it carries one,
otherwise from the policy's working-days method.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, ClassVar, Sequence
from uuid import UUID, uuid4

from hr_engines.tax import NoTaxSlabError
from hr_kernel.db.types import HUNDRED, ZERO
from hr_kernel.domain.period import MonthYear
from hr_kernel.exceptions import DataMissingError
from hr_kernel.logging_config import get_logger

logger = get_logger("engines.deductions")


class AttendanceBasis(str, Enum):
    """Amount the attendance deduction is pro-rated from."""

    GROSS = "gross"
    BASIC = "basic"


class WorkingDaysMethod(str, Enum):
    """How scheduled working days are counted for a month."""

    FIXED = "fixed"        # policy.fixed_working_days
    CALENDAR = "calendar"  # every day of the month
    WEEKDAYS = "weekdays"  # Monday-Friday


@dataclass(frozen=True)
class AttendancePolicy:
    """Configurable, deterministic attendance deduction rules."""

    basis: AttendanceBasis = AttendanceBasis.GROSS
    working_days_method: WorkingDaysMethod = WorkingDaysMethod.FIXED
    fixed_working_days: int = 26
    short_day_weight: Decimal = Decimal("0.5")
    half_day_weight: Decimal = Decimal("0.5")
    lates_per_deduction: int = 3
    late_day_weight: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        if self.fixed_working_days <= 0:
            raise ValueError("fixed_working_days must be positive")
        for name in ("short_day_weight", "half_day_weight", "late_day_weight"):
            value = getattr(self, name)
            if value < ZERO or value > Decimal("1"):
                raise ValueError(f"{name} must be between 0 and 1")
        if self.lates_per_deduction < 0:
            raise ValueError("lates_per_deduction cannot be negative")

    def scheduled_days(self, month_year: MonthYear) -> int:
        if self.working_days_method == WorkingDaysMethod.CALENDAR:
            return month_year.days_in_month()
        if self.working_days_method == WorkingDaysMethod.WEEKDAYS:
            return month_year.weekdays_in_month()
        return self.fixed_working_days


@dataclass(frozen=True)
class AttendanceSummary:
    """Attendance counts for one employee and month."""

    employee_id: str
    month_year: MonthYear
    absent_days: Decimal = ZERO
    short_days: int = 0
    half_days: int = 0
    late_days: int = 0
    scheduled_working_days: int | None = None

    def __post_init__(self) -> None:
        if self.absent_days < ZERO:
            raise ValueError("absent_days cannot be negative")
        if min(self.short_days, self.half_days, self.late_days) < 0:
            raise ValueError("attendance counts cannot be negative")
        if self.scheduled_working_days is not None and self.scheduled_working_days <= 0:
            raise ValueError("scheduled_working_days must be positive")


@dataclass(frozen=True)
class Installment:
    """A scheduled repayment due in a month."""

    kind: ClassVar[str] = "installment"

    employee_id: str
    month_year: MonthYear
    amount: Decimal
    remaining_balance: Decimal | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if self.amount < ZERO:
            raise ValueError("installment amount cannot be negative")

    def deductible_amount(self) -> Decimal:
        """The installment, truncated to what is still outstanding."""
        if self.remaining_balance is None:
            return self.amount
        return max(ZERO, min(self.amount, self.remaining_balance))


@dataclass(frozen=True)
class LoanInstallment(Installment):
    kind: ClassVar[str] = "loan"


@dataclass(frozen=True)
class AdvanceInstallment(Installment):
    kind: ClassVar[str] = "advance"


@dataclass(frozen=True)
class TaxRebate:
    """A tax credit granted to an employee for a month."""

    employee_id: str
    month_year: MonthYear
    amount: Decimal
    description: str = ""

    def __post_init__(self) -> None:
        if self.amount < ZERO:
            raise ValueError("rebate amount cannot be negative")


@dataclass(frozen=True)
class DeductionInputs:
    """Everything the calculator reads for one employee and month."""

    employee_id: str
    month_year: MonthYear
    basic_salary: Decimal
    gross_salary: Decimal
    taxable_income: Decimal
    attendance: AttendanceSummary | None = None
    installments: tuple[Installment, ...] = ()
    rebates: tuple[TaxRebate, ...] = ()
    eobi_enabled: bool = False
    eobi_amount: Decimal = ZERO
    provident_fund_enabled: bool = False
    provident_fund_percentage: Decimal = ZERO
    provident_fund_basis: Decimal | None = None


@dataclass(frozen=True)
class DeductionBreakdown:
    """Deductions for one employee and month (unrounded)."""

    tax_deduction: Decimal = ZERO
    attendance_deduction: Decimal = ZERO
    loan_deduction: Decimal = ZERO
    advance_salary_deduction: Decimal = ZERO
    eobi_deduction: Decimal = ZERO
    provident_fund_deduction: Decimal = ZERO
    warnings: tuple[str, ...] = ()


def calculate_attendance_deduction(
    summary: AttendanceSummary,
    basis_amount: Decimal,
    policy: AttendancePolicy,
) -> Decimal:
    """Pro-rated attendance deduction, capped at the basis amount."""
    scheduled = summary.scheduled_working_days or policy.scheduled_days(summary.month_year)
    late_blocks = (
        summary.late_days // policy.lates_per_deduction
        if policy.lates_per_deduction
        else 0
    )
    penalised_days = (
        summary.absent_days
        + summary.short_days * policy.short_day_weight
        + summary.half_days * policy.half_day_weight
        + late_blocks * policy.late_day_weight
    )
    if penalised_days <= ZERO or basis_amount <= ZERO:
        return ZERO
    deduction = basis_amount * penalised_days / Decimal(scheduled)
    return min(deduction, basis_amount)


def calculate_installment_deductions(
    installments: Sequence[Installment],
    employee_id: str,
    month_year: MonthYear,
) -> tuple[Decimal, Decimal]:
    """Return ``(loan_deduction, advance_deduction)`` for the period."""
    loan = ZERO
    advance = ZERO
    for installment in installments:
        if installment.employee_id != employee_id or installment.month_year != month_year:
            continue
        amount = installment.deductible_amount()
        if amount < installment.amount:
            logger.info(
                "installment_truncated",
                extra={
                    "employee_id": employee_id,
                    "installment_id": str(installment.id),
                    "kind": installment.kind,
                    "scheduled": str(installment.amount),
                    "deducted": str(amount),
                },
            )
        if isinstance(installment, AdvanceInstallment):
            advance += amount
        else:
            loan += amount
    return loan, advance


def calculate_tax(
    taxable_income: Decimal,
    tax_function: Callable[[Decimal], Decimal],
    rebates: Sequence[TaxRebate] = (),
) -> Decimal:
    """Tax from the bracket function, reduced by rebates but never below 0."""
    tax = tax_function(taxable_income)
    if tax < ZERO:
        raise ValueError(f"tax function returned a negative amount: {tax}")
    rebate_total = sum((r.amount for r in rebates), ZERO)
    return max(ZERO, tax - rebate_total)


def calculate_deductions(
    inputs: DeductionInputs,
    tax_function: Callable[[Decimal], Decimal],
    attendance_policy: AttendancePolicy | None = None,
) -> DeductionBreakdown:
    """
    Compute every deduction for one employee and month.

    Raises:
        DataMissingError: The tax function has no rate for the employee's
            taxable income.
    """
    policy = attendance_policy or AttendancePolicy()
    warnings: list[str] = []

    rebates = [
        r for r in inputs.rebates
        if r.employee_id == inputs.employee_id and r.month_year == inputs.month_year
    ]
    try:
        tax = calculate_tax(inputs.taxable_income, tax_function, rebates)
    except NoTaxSlabError as exc:
        raise DataMissingError(
            inputs.employee_id, f"a tax slab for taxable income {exc.income}"
        ) from exc

    if inputs.attendance is None:
        attendance = ZERO
        warnings.append(f"No attendance summary for {inputs.month_year}")
    else:
        basis_amount = (
            inputs.basic_salary
            if policy.basis == AttendanceBasis.BASIC
            else inputs.gross_salary
        )
        attendance = calculate_attendance_deduction(inputs.attendance, basis_amount, policy)

    loan, advance = calculate_installment_deductions(
        inputs.installments, inputs.employee_id, inputs.month_year,
    )

    eobi = inputs.eobi_amount if inputs.eobi_enabled else ZERO

    provident_fund = ZERO
    if inputs.provident_fund_enabled:
        basis = (
            inputs.provident_fund_basis
            if inputs.provident_fund_basis is not None
            else inputs.basic_salary
        )
        provident_fund = basis * inputs.provident_fund_percentage / HUNDRED

    logger.debug(
        "deductions_calculated",
        extra={
            "employee_id": inputs.employee_id,
            "month_year": str(inputs.month_year),
            "tax": str(tax),
            "attendance": str(attendance),
            "loan": str(loan),
            "advance": str(advance),
        },
    )

    return DeductionBreakdown(
        tax_deduction=tax,
        attendance_deduction=attendance,
        loan_deduction=loan,
        advance_salary_deduction=advance,
        eobi_deduction=eobi,
        provident_fund_deduction=provident_fund,
        warnings=tuple(warnings),
    )
