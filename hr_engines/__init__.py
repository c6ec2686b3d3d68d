"""
HR Engines - pure payroll calculation engines.

Every engine is a set of pure functions and frozen value objects: no I/O,
no session, no clock.  Results are unrounded; callers round where values
are stored.

Engines:
- salary_breakup: percentage components -> currency amounts
- adjustments: allowances, overtime, bonuses, ad-hoc deductions
- deductions: tax, attendance, loan/advance, EOBI, provident fund
- tax: slab-table bracket function
"""

from hr_engines.adjustments import (
    AdjustmentKind,
    AdjustmentTotals,
    OvertimeRates,
    OvertimeType,
    PayrollAdjustment,
    aggregate_adjustments,
)
from hr_engines.deductions import (
    AdvanceInstallment,
    AttendanceBasis,
    AttendancePolicy,
    AttendanceSummary,
    DeductionBreakdown,
    DeductionInputs,
    Installment,
    LoanInstallment,
    TaxRebate,
    WorkingDaysMethod,
    calculate_deductions,
)
from hr_engines.salary_breakup import (
    BreakupResolution,
    ResolvedComponent,
    SalaryBreakupComponent,
    resolve_salary_breakup,
)
from hr_engines.tax import NoTaxSlabError, TaxFunction, TaxSlab, TaxSlabSchedule, no_tax

__all__ = [
    "AdjustmentKind",
    "AdjustmentTotals",
    "OvertimeRates",
    "OvertimeType",
    "PayrollAdjustment",
    "aggregate_adjustments",
    "AdvanceInstallment",
    "AttendanceBasis",
    "AttendancePolicy",
    "AttendanceSummary",
    "DeductionBreakdown",
    "DeductionInputs",
    "Installment",
    "LoanInstallment",
    "TaxRebate",
    "WorkingDaysMethod",
    "calculate_deductions",
    "BreakupResolution",
    "ResolvedComponent",
    "SalaryBreakupComponent",
    "resolve_salary_breakup",
    "NoTaxSlabError",
    "TaxFunction",
    "TaxSlab",
    "TaxSlabSchedule",
    "no_tax",
]
