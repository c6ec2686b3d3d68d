"""
Payroll Module (``hr_modules.payroll``).

Responsibility
--------------
Monthly payroll generation: select employees, preview one computed line per
employee, edit adjustable amounts, and confirm the batch as immutable
payroll records.

Architecture position
---------------------
**Modules layer** -- models, config schema, workflow, ORM and a service
facade.  Salary breakup, adjustments, deductions and tax are computed by
the pure engines in ``hr_engines``.

Invariants enforced
-------------------
* gross = basic + allowances + overtime + bonus; net = gross - deductions,
  through one shared calculator for preview, edits and confirm.
* One confirmed record per (employee, month); confirm is all-or-nothing.
* Negative net pay is kept and flagged for review, never clamped.

Failure modes
-------------
* ``DataMissingError`` degrades one preview row.
* ``DuplicateConfirmationError`` / ``PersistenceError`` abort the whole
  confirm with nothing written.
"""

from hr_modules.payroll.calculator import (
    apply_adjustment_edit,
    build_preview_line,
    compute_gross_and_net,
    error_line,
    recalculate_line,
)
from hr_modules.payroll.config import PayrollConfig
from hr_modules.payroll.models import (
    ADJUSTABLE_FIELDS,
    EmployeeRecord,
    PayrollPreviewLine,
    PayrollRecord,
    PayrollRun,
)
from hr_modules.payroll.run_session import PayrollRunSession
from hr_modules.payroll.service import PayrollGenerationService, PayrollSelection
from hr_modules.payroll.sources import PayrollSources
from hr_modules.payroll.workflows import PAYROLL_GENERATION_WORKFLOW

__all__ = [
    "ADJUSTABLE_FIELDS",
    "EmployeeRecord",
    "PayrollPreviewLine",
    "PayrollRecord",
    "PayrollRun",
    "PayrollConfig",
    "PayrollGenerationService",
    "PayrollRunSession",
    "PayrollSelection",
    "PayrollSources",
    "PAYROLL_GENERATION_WORKFLOW",
    "apply_adjustment_edit",
    "build_preview_line",
    "compute_gross_and_net",
    "error_line",
    "recalculate_line",
]
