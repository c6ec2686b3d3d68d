"""
Tax Engine - income tax bracket lookup for payroll.

The payroll engine never infers tax.  It calls a pluggable *tax function*
``(taxable_income: Decimal) -> Decimal`` supplied by the tax policy owner.
``TaxSlabSchedule`` is the reference implementation: a slab table of
``{name, min_amount, max_amount, rate, fixed_amount}`` rows, optionally
expressed on annual income.

Slab arithmetic:
    tax = fixed_amount + (income - min_amount) * rate / 100

The slab chosen is the highest one whose ``min_amount`` does not exceed the
income.  Income below the first slab is untaxed.  Income beyond the chosen
slab's ``max_amount`` (a gap between slabs, or above a capped top slab) has
no applicable rate and raises ``NoTaxSlabError``; make the top slab
open-ended (``max_amount=None``).

Usage:
    from hr_engines.tax import TaxSlab, TaxSlabSchedule
    from decimal import Decimal

    schedule = TaxSlabSchedule(
        slabs=(
            TaxSlab("Exempt", Decimal("0"), Decimal("600000"), Decimal("0")),
            TaxSlab("Slab 2", Decimal("600000"), None, Decimal("5")),
        ),
        annualize=True,
    )
    monthly_tax = schedule(Decimal("100000"))  # 1.2M annual -> 30000/12 = 2500
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence, runtime_checkable

from hr_kernel.db.types import HUNDRED, ZERO
from hr_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

MONTHS_PER_YEAR = Decimal("12")


class NoTaxSlabError(LookupError):
    """No slab covers the taxable income."""

    def __init__(self, income: Decimal):
        self.income = income
        super().__init__(f"No tax slab covers taxable income {income}")


@runtime_checkable
class TaxFunction(Protocol):
    """Bracket lookup keyed by monthly taxable income."""

    def __call__(self, taxable_income: Decimal) -> Decimal: ...


def no_tax(taxable_income: Decimal) -> Decimal:
    """Tax function for policies with no income tax."""
    return ZERO


@dataclass(frozen=True)
class TaxSlab:
    """One bracket of a slab table."""

    name: str
    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal  # percent, e.g. 5 for 5%
    fixed_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.min_amount < ZERO:
            raise ValueError("min_amount cannot be negative")
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError(
                f"Slab '{self.name}': max_amount {self.max_amount} "
                f"is below min_amount {self.min_amount}"
            )
        if self.rate < ZERO or self.rate > HUNDRED:
            raise ValueError(f"Slab '{self.name}': rate must be between 0 and 100")
        if self.fixed_amount < ZERO:
            raise ValueError(f"Slab '{self.name}': fixed_amount cannot be negative")

    def tax_for(self, income: Decimal) -> Decimal:
        return self.fixed_amount + (income - self.min_amount) * self.rate / HUNDRED


@dataclass(frozen=True)
class TaxSlabSchedule:
    """
    Slab-table tax function.

    When ``annualize`` is set, slabs are expressed on annual income: the
    monthly taxable income is multiplied by 12 for the lookup and the annual
    tax is divided by 12.  The result is unrounded.
    """

    slabs: tuple[TaxSlab, ...]
    annualize: bool = False

    def __post_init__(self) -> None:
        if not self.slabs:
            raise ValueError("TaxSlabSchedule requires at least one slab")
        ordered = sorted(self.slabs, key=lambda s: s.min_amount)
        if list(ordered) != list(self.slabs):
            raise ValueError("tax slabs must be sorted by min_amount ascending")
        for lower, upper in zip(self.slabs, self.slabs[1:]):
            if lower.max_amount is None:
                raise ValueError(
                    f"Slab '{lower.name}' is open-ended but is not the last slab"
                )
            if upper.min_amount < lower.max_amount:
                raise ValueError(
                    f"Slabs '{lower.name}' and '{upper.name}' overlap"
                )

    @classmethod
    def from_rows(cls, rows: Sequence[dict], annualize: bool = False) -> TaxSlabSchedule:
        """Build from dict rows with min/max/rate keys (strings or numbers)."""
        slabs = tuple(
            TaxSlab(
                name=str(row.get("name", f"Slab {i + 1}")),
                min_amount=Decimal(str(row["min_amount"])),
                max_amount=(
                    Decimal(str(row["max_amount"]))
                    if row.get("max_amount") is not None
                    else None
                ),
                rate=Decimal(str(row["rate"])),
                fixed_amount=Decimal(str(row.get("fixed_amount", "0"))),
            )
            for i, row in enumerate(rows)
        )
        return cls(slabs=slabs, annualize=annualize)

    def slab_for(self, income: Decimal) -> TaxSlab | None:
        """Highest slab whose min_amount does not exceed ``income``."""
        chosen = None
        for slab in self.slabs:
            if slab.min_amount <= income:
                chosen = slab
            else:
                break
        return chosen

    def __call__(self, taxable_income: Decimal) -> Decimal:
        if taxable_income <= ZERO:
            return ZERO

        income = taxable_income * MONTHS_PER_YEAR if self.annualize else taxable_income
        slab = self.slab_for(income)
        if slab is None:
            return ZERO
        if slab.max_amount is not None and income > slab.max_amount:
            logger.warning(
                "tax_slab_not_found",
                extra={"income": str(income), "annualized": self.annualize},
            )
            raise NoTaxSlabError(income)

        tax = slab.tax_for(income)
        if self.annualize:
            tax = tax / MONTHS_PER_YEAR
        return tax
