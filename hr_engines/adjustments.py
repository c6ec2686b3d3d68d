"""
Adjustment Aggregator - total an employee's ad-hoc pay items for a month.

Collects allowances, overtime, bonuses and ad-hoc deductions that upstream
workflows (bonus issuance, deduction entry, overtime requests) recorded for
an employee and period.  Pure functions with no I/O; adjustments are never
mutated.

Percentage-based items are resolved against the employee's base salary at
aggregation time, not when the bonus was issued.  A salary change recorded
before the payroll run therefore changes the computed bonus.  This is the
intended behavior: the bonus follows the salary the employee is paid on.

Missing salary data never raises here.  A percentage or hours-based item
that cannot be priced contributes 0 and adds a warning for the preview.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Sequence
from uuid import UUID, uuid4

from hr_kernel.db.types import HUNDRED, ZERO
from hr_kernel.domain.period import MonthYear
from hr_kernel.logging_config import get_logger

logger = get_logger("engines.adjustments")


class AdjustmentKind(str, Enum):
    """Kind of ad-hoc payroll adjustment."""

    ALLOWANCE = "allowance"
    OVERTIME = "overtime"
    BONUS = "bonus"
    DEDUCTION = "deduction"


class OvertimeType(str, Enum):
    """Overtime day type; holidays are paid at the gazetted rate."""

    WEEKDAY = "weekday"
    HOLIDAY = "holiday"


@dataclass(frozen=True)
class PayrollAdjustment:
    """
    One ad-hoc pay item for an employee and month.

    Exactly one pricing basis is used, in this order: ``percentage`` of base
    salary, overtime ``hours`` (OVERTIME only), then the fixed ``amount``.
    """

    employee_id: str
    month_year: MonthYear
    kind: AdjustmentKind
    amount: Decimal = ZERO
    percentage: Decimal | None = None
    is_taxable: bool = True
    hours: Decimal | None = None
    overtime_type: OvertimeType = OvertimeType.WEEKDAY
    description: str = ""
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if self.amount < ZERO:
            raise ValueError("adjustment amount cannot be negative")
        if self.percentage is not None and self.percentage < ZERO:
            raise ValueError("adjustment percentage cannot be negative")
        if self.hours is not None:
            if self.kind != AdjustmentKind.OVERTIME:
                raise ValueError("hours are only valid on overtime adjustments")
            if self.hours < ZERO:
                raise ValueError("overtime hours cannot be negative")


@dataclass(frozen=True)
class OvertimeRates:
    """How overtime hours are priced."""

    standard_monthly_hours: Decimal = Decimal("208")
    weekday_multiplier: Decimal = Decimal("1.5")
    holiday_multiplier: Decimal = Decimal("2")

    def __post_init__(self) -> None:
        if self.standard_monthly_hours <= ZERO:
            raise ValueError("standard_monthly_hours must be positive")
        if self.weekday_multiplier < ZERO or self.holiday_multiplier < ZERO:
            raise ValueError("overtime multipliers cannot be negative")

    def multiplier_for(self, overtime_type: OvertimeType) -> Decimal:
        if overtime_type == OvertimeType.HOLIDAY:
            return self.holiday_multiplier
        return self.weekday_multiplier


@dataclass(frozen=True)
class AdjustmentTotals:
    """Per-employee adjustment totals for one period (unrounded)."""

    total_allowances: Decimal = ZERO
    overtime_amount: Decimal = ZERO
    bonus_amount: Decimal = ZERO
    total_deductions: Decimal = ZERO
    taxable_amount: Decimal = ZERO
    adjustment_count: int = 0
    warnings: tuple[str, ...] = ()


def price_adjustment(
    adjustment: PayrollAdjustment,
    base_salary: Decimal | None,
    overtime_rates: OvertimeRates,
) -> tuple[Decimal, str | None]:
    """
    Price a single adjustment.

    Returns ``(amount, warning)``; amount is 0 with a warning when the
    adjustment depends on a salary that is missing.
    """
    if adjustment.percentage is not None:
        if base_salary is None:
            return ZERO, (
                f"{adjustment.kind.value} {adjustment.description or adjustment.id} "
                f"at {adjustment.percentage}% not applied: base salary missing"
            )
        return base_salary * adjustment.percentage / HUNDRED, None

    if adjustment.hours is not None:
        if base_salary is None:
            return ZERO, (
                f"overtime of {adjustment.hours}h not applied: base salary missing"
            )
        hourly_rate = base_salary / overtime_rates.standard_monthly_hours
        multiplier = overtime_rates.multiplier_for(adjustment.overtime_type)
        return adjustment.hours * hourly_rate * multiplier, None

    return adjustment.amount, None


def aggregate_adjustments(
    employee_id: str,
    month_year: MonthYear,
    adjustments: Sequence[PayrollAdjustment],
    base_salary: Decimal | None,
    overtime_rates: OvertimeRates | None = None,
) -> AdjustmentTotals:
    """
    Sum all adjustments matching ``employee_id`` and ``month_year``.

    Adjustments for other employees or periods are ignored.  Totals are
    returned unrounded; rounding happens where the values are stored.
    """
    rates = overtime_rates or OvertimeRates()
    totals = {kind: ZERO for kind in AdjustmentKind}
    taxable = ZERO
    warnings: list[str] = []
    count = 0

    for adjustment in adjustments:
        if adjustment.employee_id != employee_id or adjustment.month_year != month_year:
            continue
        count += 1
        amount, warning = price_adjustment(adjustment, base_salary, rates)
        if warning is not None:
            warnings.append(warning)
            logger.warning(
                "adjustment_unpriced",
                extra={
                    "employee_id": employee_id,
                    "month_year": str(month_year),
                    "adjustment_id": str(adjustment.id),
                    "kind": adjustment.kind.value,
                },
            )
        totals[adjustment.kind] += amount
        if adjustment.kind != AdjustmentKind.DEDUCTION and adjustment.is_taxable:
            taxable += amount

    logger.debug(
        "adjustments_aggregated",
        extra={
            "employee_id": employee_id,
            "month_year": str(month_year),
            "adjustment_count": count,
        },
    )

    return AdjustmentTotals(
        total_allowances=totals[AdjustmentKind.ALLOWANCE],
        overtime_amount=totals[AdjustmentKind.OVERTIME],
        bonus_amount=totals[AdjustmentKind.BONUS],
        total_deductions=totals[AdjustmentKind.DEDUCTION],
        taxable_amount=taxable,
        adjustment_count=count,
        warnings=tuple(warnings),
    )
