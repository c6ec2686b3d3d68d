"""
Salary Breakup Engine - decompose a base salary into named components.

Turns an employee's configured percentage components (basic, house rent,
medical, ...) into currency amounts against a base salary.  Pure functions
with no I/O.

The resolver does not re-validate percentage totals; that is a setup-time
concern.  It passes through whatever is configured, including totals that do
not reach 100%, and reports the deviation so it stays visible downstream.

Usage:
    from hr_engines.salary_breakup import SalaryBreakupComponent, resolve_salary_breakup
    from decimal import Decimal

    resolution = resolve_salary_breakup(
        Decimal("50000"),
        [
            SalaryBreakupComponent("Basic", Decimal("60")),
            SalaryBreakupComponent("House Rent", Decimal("40")),
        ],
    )
    print([c.amount for c in resolution.components])  # [30000.00, 20000.00]
    print(resolution.deviation)  # 0
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from hr_kernel.db.types import HUNDRED, ZERO, round_money
from hr_kernel.logging_config import get_logger

logger = get_logger("engines.salary_breakup")

UNLABELED_COMPONENT = ""


@dataclass(frozen=True)
class SalaryBreakupComponent:
    """A configured percentage share of the base salary."""

    name: str
    percentage: Decimal
    is_taxable: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.percentage, Decimal):
            raise ValueError("percentage must be Decimal")
        if self.percentage < ZERO or self.percentage > HUNDRED:
            raise ValueError(
                f"percentage must be between 0 and 100, got {self.percentage}"
            )


@dataclass(frozen=True)
class ResolvedComponent:
    """A breakup component with its currency amount."""

    name: str
    percentage: Decimal
    amount: Decimal
    is_taxable: bool = True


@dataclass(frozen=True)
class BreakupResolution:
    """Resolved components plus the configured-total diagnostics."""

    base_salary: Decimal
    components: tuple[ResolvedComponent, ...]
    total_percentage: Decimal
    is_fallback: bool = False

    @property
    def deviation(self) -> Decimal:
        """Configured total minus 100 (negative means under-allocated)."""
        return self.total_percentage - HUNDRED

    @property
    def is_balanced(self) -> bool:
        return self.deviation == ZERO

    @property
    def total_amount(self) -> Decimal:
        return sum((c.amount for c in self.components), ZERO)

    @property
    def taxable_amount(self) -> Decimal:
        return sum((c.amount for c in self.components if c.is_taxable), ZERO)

    def amount_for(self, name: str) -> Decimal | None:
        """Amount of the first component named ``name`` (case-insensitive)."""
        wanted = name.strip().lower()
        for component in self.components:
            if component.name.strip().lower() == wanted:
                return component.amount
        return None

    def deviation_warning(self) -> str | None:
        if self.is_balanced:
            return None
        return (
            f"Salary breakup totals {self.total_percentage}% "
            f"(deviation {self.deviation:+}%)"
        )


def resolve_salary_breakup(
    base_salary: Decimal,
    components: Sequence[SalaryBreakupComponent],
) -> BreakupResolution:
    """
    Resolve percentage components into amounts.

    Each amount is ``round(base_salary * percentage / 100)`` to 2 places,
    computed once per component.  Order is preserved.

    An employee with no configured components gets a single unlabeled
    component equal to the whole base salary so the line is never zero-pay.
    """
    if not components:
        logger.debug(
            "salary_breakup_fallback",
            extra={"base_salary": str(base_salary)},
        )
        return BreakupResolution(
            base_salary=base_salary,
            components=(
                ResolvedComponent(
                    name=UNLABELED_COMPONENT,
                    percentage=HUNDRED,
                    amount=round_money(base_salary),
                    is_taxable=True,
                ),
            ),
            total_percentage=HUNDRED,
            is_fallback=True,
        )

    resolved = tuple(
        ResolvedComponent(
            name=c.name,
            percentage=c.percentage,
            amount=round_money(base_salary * c.percentage / HUNDRED),
            is_taxable=c.is_taxable,
        )
        for c in components
    )
    total_percentage = sum((c.percentage for c in components), ZERO)

    if total_percentage != HUNDRED:
        logger.warning(
            "salary_breakup_unbalanced",
            extra={
                "total_percentage": str(total_percentage),
                "deviation": str(total_percentage - HUNDRED),
                "component_count": len(components),
            },
        )

    return BreakupResolution(
        base_salary=base_salary,
        components=resolved,
        total_percentage=total_percentage,
    )
