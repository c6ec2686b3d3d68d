"""
Interactive payroll run (``hr_modules.payroll.run_session``).

Holds the state a caller builds up between choosing employees and
confirming: the selection, the current preview lines and any edits made to
them.  Every action is checked against ``PAYROLL_GENERATION_WORKFLOW``.

    session = PayrollRunSession(service)
    session.select(3, 2025, department_id="ENG")
    session.preview()
    session.edit_line("EMP-7", "bonus_amount", "2500")
    records = session.confirm(generated_by=actor_id)

A failed confirm leaves the session in ``previewing`` with the edited lines
intact, so the caller can fix the problem and retry.
"""

from __future__ import annotations

from typing import Any, Sequence
from uuid import UUID

from hr_kernel.exceptions import UnresolvedPreviewLinesError, ValidationError
from hr_kernel.logging_config import get_logger
from hr_modules.payroll.calculator import apply_adjustment_edit
from hr_modules.payroll.models import PayrollPreviewLine, PayrollRecord
from hr_modules.payroll.service import PayrollGenerationService, PayrollSelection
from hr_modules.payroll.workflows import PAYROLL_GENERATION_WORKFLOW

logger = get_logger("modules.payroll.run_session")


class PayrollRunSession:
    """One caller's walk through select -> preview -> confirm."""

    workflow = PAYROLL_GENERATION_WORKFLOW

    def __init__(self, service: PayrollGenerationService):
        self._service = service
        self._state = self.workflow.initial_state
        self._selection: PayrollSelection | None = None
        self._lines: list[PayrollPreviewLine] = []
        self._records: list[PayrollRecord] = []

    @property
    def state(self) -> str:
        return self._state

    @property
    def selection(self) -> PayrollSelection | None:
        return self._selection

    @property
    def lines(self) -> tuple[PayrollPreviewLine, ...]:
        return tuple(self._lines)

    @property
    def records(self) -> tuple[PayrollRecord, ...]:
        return tuple(self._records)

    def allowed_actions(self) -> tuple[str, ...]:
        return self.workflow.allowed_actions(self._state)

    def _move(self, action: str) -> str:
        transition = self.workflow.transition(self._state, action)
        logger.debug(
            "payroll_run_transition",
            extra={
                "action": action,
                "from_state": transition.from_state,
                "to_state": transition.to_state,
            },
        )
        return transition.to_state

    def select(
        self,
        month: int | str,
        year: int | str,
        employee_ids: Sequence[str] | None = None,
        department_id: str | None = None,
        sub_department_id: str | None = None,
    ) -> PayrollSelection:
        """Choose the period and employees; discards any existing preview."""
        next_state = self._move("select")
        selection = self._service.select_employees(
            month, year, employee_ids, department_id, sub_department_id,
        )
        self._selection = selection
        self._lines = []
        self._state = next_state
        return selection

    def preview(self) -> tuple[PayrollPreviewLine, ...]:
        """Compute (or recompute) the preview; recomputing drops edits."""
        next_state = self._move("preview")
        if self._selection is None:
            raise ValidationError("Select employees before previewing", field="selection")
        self._lines = self._service.preview_selection(self._selection)
        self._state = next_state
        return self.lines

    def edit_line(self, employee_id: str, field_name: str, value: Any) -> PayrollPreviewLine:
        """Edit one adjustable field of one employee's preview line."""
        next_state = self._move("edit")
        for index, line in enumerate(self._lines):
            if line.employee_id == employee_id:
                edited = apply_adjustment_edit(line, field_name, value)
                self._lines[index] = edited
                self._state = next_state
                return edited
        raise ValidationError(
            f"Employee {employee_id} is not in the preview", field="employee_id",
        )

    def remove_line(self, employee_id: str) -> None:
        """Drop a line (typically an error row) from the batch to confirm."""
        next_state = self._move("edit")
        remaining = [line for line in self._lines if line.employee_id != employee_id]
        if len(remaining) == len(self._lines):
            raise ValidationError(
                f"Employee {employee_id} is not in the preview", field="employee_id",
            )
        self._lines = remaining
        self._state = next_state

    def confirm(self, generated_by: UUID) -> tuple[PayrollRecord, ...]:
        """Persist the current lines; stays in ``previewing`` on failure."""
        transition = self.workflow.transition(self._state, "confirm")
        unresolved = [line.employee_id for line in self._lines if line.is_error]
        if unresolved:
            logger.info(
                "payroll_run_guard_failed",
                extra={"guard": transition.guard.name, "employee_ids": unresolved},
            )
            raise UnresolvedPreviewLinesError(unresolved)

        month_year = self._selection.month_year
        self._records = self._service.confirm_payroll(
            month_year.month, month_year.year, generated_by, self._lines,
        )
        self._state = transition.to_state
        return self.records

    def reset(self) -> None:
        """Return to ``selecting`` with nothing selected."""
        self._state = self._move("reset")
        self._selection = None
        self._lines = []
        self._records = []
