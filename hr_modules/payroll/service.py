"""
Payroll Generation Service (``hr_modules.payroll.service``).

Responsibility
--------------
Orchestrates monthly payroll generation: resolves the employee selection,
computes a non-mutating preview line per employee by delegating to the pure
engines in ``hr_engines`` and the shared line calculator, and confirms an
edited preview as immutable ``PayrollRecord`` rows.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``PayrollGenerationService`` is the sole
public entry point for generating payroll.  External data arrives through
the ``PayrollSources`` protocols; tax policy through a ``TaxFunction``.

Invariants enforced
-------------------
* Preview never writes.  It may be called any number of times.
* Confirm owns the transaction boundary: ``commit`` on success,
  ``rollback`` on any failure.  A batch is all-or-nothing.
* Confirm recomputes every line through ``recalculate_line`` so stored
  totals always satisfy the gross/net identities.
* At most one record per (employee, period).  Checked up front for a
  precise error and enforced by ``uq_payroll_record_employee_period``.

Failure modes
-------------
* Missing salary/tax data for one employee  -> that preview row is
  error-flagged; the rest of the preview continues.
* Error-flagged rows at confirm  -> ``UnresolvedPreviewLinesError``.
* Already confirmed (employee, period)  -> ``DuplicateConfirmationError``.
* Any other storage failure  -> ``PersistenceError``; nothing is written.

Usage::

    service = PayrollGenerationService(
        session, sources, tax_function=schedule, config=config, clock=clock,
    )
    lines = service.preview_payroll(3, 2025, department_id="ENG")
    lines[0] = apply_adjustment_edit(lines[0], "bonus_amount", "2500")
    records = service.confirm_payroll(3, 2025, generated_by=actor_id, lines=lines)
"""

from __future__ import annotations

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hr_engines.adjustments import aggregate_adjustments
from hr_engines.deductions import DeductionInputs, calculate_deductions
from hr_engines.salary_breakup import resolve_salary_breakup
from hr_engines.tax import TaxFunction
from hr_kernel.db.types import ZERO, round_money
from hr_kernel.domain.clock import Clock, SystemClock
from hr_kernel.domain.period import MonthYear
from hr_kernel.exceptions import (
    DataMissingError,
    DuplicateConfirmationError,
    EmptySelectionError,
    PersistenceError,
    UnresolvedPreviewLinesError,
    ValidationError,
)
from hr_kernel.logging_config import LogContext, get_logger
from hr_modules.payroll.calculator import (
    build_preview_line,
    error_line,
    recalculate_line,
)
from hr_modules.payroll.config import PayrollConfig
from hr_modules.payroll.models import (
    DEDUCTION_FIELDS,
    EARNING_FIELDS,
    EmployeeRecord,
    PayrollPreviewLine,
    PayrollRecord,
    PayrollRun,
)
from hr_modules.payroll.orm import PayrollRecordModel, PayrollRunModel
from hr_modules.payroll.sources import PayrollSources

logger = get_logger("modules.payroll.service")


def _is_whole_cents(amount: Decimal) -> bool:
    try:
        return amount == round_money(amount)
    except InvalidOperation:
        return False


@dataclass(frozen=True)
class PayrollSelection:
    """Validated period plus the ordered employee ids to compute."""

    month_year: MonthYear
    employee_ids: tuple[str, ...]
    department_id: str | None = None
    sub_department_id: str | None = None


class PayrollGenerationService:
    """
    Preview and confirm monthly payroll.

    Contract:
        ``preview_payroll`` is read-only.  ``confirm_payroll`` either writes
        a run plus one record per line and commits, or writes nothing.
    """

    def __init__(
        self,
        session: Session,
        sources: PayrollSources,
        tax_function: TaxFunction,
        config: PayrollConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._sources = sources
        self._tax_function = tax_function
        self._config = config or PayrollConfig.with_defaults()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> PayrollConfig:
        return self._config

    # =========================================================================
    # Selection
    # =========================================================================

    def select_employees(
        self,
        month: int | str,
        year: int | str,
        employee_ids: Sequence[str] | None = None,
        department_id: str | None = None,
        sub_department_id: str | None = None,
    ) -> PayrollSelection:
        """
        Resolve which employees a run covers.

        An explicit ``employee_ids`` list wins over the department filter.
        Without either, every active employee is selected.

        Raises:
            InvalidPeriodError: month/year is not a valid period.
            EmptySelectionError: the selection resolved to nobody.
        """
        month_year = MonthYear.of(month, year)

        if employee_ids is not None:
            ids = tuple(dict.fromkeys(e for e in employee_ids if e))
            if not ids:
                raise EmptySelectionError()
        else:
            employees = self._sources.employees.list_employees(
                department_id=department_id,
                sub_department_id=sub_department_id,
                include_inactive=self._config.include_inactive_employees,
            )
            ids = tuple(dict.fromkeys(e.id for e in employees))
            if not ids:
                logger.info(
                    "payroll_selection_empty",
                    extra={
                        "month_year": str(month_year),
                        "department_id": department_id,
                        "sub_department_id": sub_department_id,
                    },
                )
                raise EmptySelectionError(department_id, sub_department_id)

        logger.info(
            "payroll_selection_resolved",
            extra={
                "month_year": str(month_year),
                "employee_count": len(ids),
                "explicit": employee_ids is not None,
                "department_id": department_id,
                "sub_department_id": sub_department_id,
            },
        )
        return PayrollSelection(
            month_year=month_year,
            employee_ids=ids,
            department_id=department_id,
            sub_department_id=sub_department_id,
        )

    # =========================================================================
    # Preview
    # =========================================================================

    def preview_payroll(
        self,
        month: int | str,
        year: int | str,
        employee_ids: Sequence[str] | None = None,
        department_id: str | None = None,
        sub_department_id: str | None = None,
    ) -> list[PayrollPreviewLine]:
        """
        Compute one preview line per selected employee, in selection order.

        Nothing is written.  An employee whose data is incomplete gets an
        error-flagged line instead of failing the whole preview.
        """
        selection = self.select_employees(
            month, year, employee_ids, department_id, sub_department_id,
        )
        return self.preview_selection(selection)

    def preview_selection(self, selection: PayrollSelection) -> list[PayrollPreviewLine]:
        month_year = selection.month_year
        correlation_id = str(uuid4())

        with LogContext.bind(correlation_id=correlation_id, month_year=str(month_year)):
            logger.info(
                "payroll_preview_started",
                extra={
                    "employee_count": len(selection.employee_ids),
                    "max_workers": self._config.max_workers,
                },
            )

            def preview_one(employee_id: str) -> PayrollPreviewLine:
                with LogContext.bind(
                    correlation_id=correlation_id,
                    month_year=str(month_year),
                    employee_id=employee_id,
                ):
                    return self._preview_employee(employee_id, month_year)

            workers = min(self._config.max_workers, len(selection.employee_ids))
            if workers > 1:
                with ThreadPoolExecutor(
                    max_workers=workers, thread_name_prefix="payroll-preview",
                ) as pool:
                    lines = list(pool.map(preview_one, selection.employee_ids))
            else:
                lines = [preview_one(e) for e in selection.employee_ids]

            error_count = sum(1 for line in lines if line.is_error)
            logger.info(
                "payroll_preview_completed",
                extra={
                    "line_count": len(lines),
                    "error_count": error_count,
                    "review_count": sum(1 for line in lines if line.requires_review),
                    "total_net": str(sum((line.net_salary for line in lines), ZERO)),
                },
            )
        return lines

    def _preview_employee(self, employee_id: str, month_year: MonthYear) -> PayrollPreviewLine:
        employee = self._sources.employees.get_employee(employee_id)
        try:
            if employee is None:
                raise DataMissingError(employee_id, "an employee record")
            return self._compute_line(employee, month_year)
        except DataMissingError as exc:
            logger.warning(
                "payroll_line_degraded",
                extra={"employee_id": employee_id, "missing": exc.missing},
            )
            return error_line(employee_id, month_year, str(exc), employee=employee)

    def _compute_line(self, employee: EmployeeRecord, month_year: MonthYear) -> PayrollPreviewLine:
        if employee.base_salary is None:
            raise DataMissingError(employee.id, "a base salary")
        base_salary = employee.base_salary
        sources = self._sources
        warnings: list[str] = []

        breakup = resolve_salary_breakup(
            base_salary, sources.salary_breakups.components_for(employee.id),
        )
        if breakup.deviation_warning():
            warnings.append(breakup.deviation_warning())

        adjustments = aggregate_adjustments(
            employee.id,
            month_year,
            sources.adjustments.adjustments_for(employee.id, month_year),
            base_salary,
            self._config.overtime_rates,
        )
        warnings.extend(adjustments.warnings)

        gross_salary = round_money(base_salary) + sum(
            (
                round_money(adjustments.total_allowances),
                round_money(adjustments.overtime_amount),
                round_money(adjustments.bonus_amount),
            ),
            ZERO,
        )

        provident_fund_basis = None
        if self._config.provident_fund_component:
            provident_fund_basis = breakup.amount_for(self._config.provident_fund_component)

        rebates = (
            tuple(sources.rebates.rebates_for(employee.id, month_year))
            if sources.rebates is not None
            else ()
        )

        deductions = calculate_deductions(
            DeductionInputs(
                employee_id=employee.id,
                month_year=month_year,
                basic_salary=base_salary,
                gross_salary=gross_salary,
                taxable_income=breakup.taxable_amount + adjustments.taxable_amount,
                attendance=sources.attendance.summary_for(employee.id, month_year),
                installments=tuple(sources.installments.installments_for(employee.id, month_year)),
                rebates=rebates,
                eobi_enabled=employee.eobi_enabled,
                eobi_amount=self._config.eobi_amount_for(month_year),
                provident_fund_enabled=employee.provident_fund_enabled,
                provident_fund_percentage=self._config.provident_fund_percentage,
                provident_fund_basis=provident_fund_basis,
            ),
            self._tax_function,
            self._config.attendance_policy,
        )
        warnings.extend(deductions.warnings)

        return build_preview_line(
            employee, month_year, breakup, adjustments, deductions, warnings,
        )

    # =========================================================================
    # Confirm
    # =========================================================================

    def confirm_payroll(
        self,
        month: int | str,
        year: int | str,
        generated_by: UUID,
        lines: Sequence[PayrollPreviewLine],
    ) -> list[PayrollRecord]:
        """
        Persist an (optionally edited) preview as immutable payroll records.

        Raises:
            ValidationError: empty batch, missing actor, wrong period, a
                repeated employee, or a negative or sub-cent amount.
            UnresolvedPreviewLinesError: the batch has error-flagged rows.
            DuplicateConfirmationError: a line's (employee, period) is
                already confirmed.  Nothing is written.
            PersistenceError: storage failed.  Nothing is written.
        """
        month_year = MonthYear.of(month, year)
        self._validate_batch(month_year, generated_by, lines)

        run_id = uuid4()
        confirmed_at = self._clock.now()
        employee_ids = [line.employee_id for line in lines]

        with LogContext.bind(
            actor_id=str(generated_by), run_id=str(run_id), month_year=str(month_year),
        ):
            logger.info(
                "payroll_confirm_started",
                extra={"employee_count": len(lines)},
            )

            records = []
            for line in lines:
                recomputed = recalculate_line(line)
                if (recomputed.gross_salary, recomputed.net_salary) != (
                    line.gross_salary, line.net_salary,
                ):
                    logger.warning(
                        "payroll_line_totals_recomputed",
                        extra={
                            "employee_id": line.employee_id,
                            "submitted_net": str(line.net_salary),
                            "recomputed_net": str(recomputed.net_salary),
                        },
                    )
                records.append(
                    PayrollRecord.from_line(
                        recomputed,
                        id=uuid4(),
                        run_id=run_id,
                        generated_by=generated_by,
                        confirmed_at=confirmed_at,
                    )
                )

            run = PayrollRun(
                id=run_id,
                month_year=month_year,
                generated_by=generated_by,
                confirmed_at=confirmed_at,
                employee_count=len(records),
                total_gross=sum((r.gross_salary for r in records), ZERO),
                total_net=sum((r.net_salary for r in records), ZERO),
                review_count=sum(1 for r in records if r.requires_review),
            )

            try:
                already = self._find_confirmed(employee_ids, month_year)
                if already:
                    raise DuplicateConfirmationError(already, str(month_year))

                self._session.add(PayrollRunModel.from_dto(run, created_by_id=generated_by))
                self._session.flush()
                self._session.add_all(
                    PayrollRecordModel.from_dto(r, created_by_id=generated_by)
                    for r in records
                )
                self._session.flush()
                self._session.commit()
            except DuplicateConfirmationError as exc:
                self._session.rollback()
                logger.warning(
                    "payroll_confirm_rejected_duplicate",
                    extra={"employee_ids": exc.employee_ids},
                )
                raise
            except IntegrityError as exc:
                self._session.rollback()
                already = self._find_confirmed(employee_ids, month_year)
                if not already:
                    logger.error(
                        "payroll_confirm_rolled_back",
                        extra={"reason": "integrity_error"},
                    )
                    raise PersistenceError(str(month_year), str(exc)) from exc
                logger.warning(
                    "payroll_confirm_rolled_back",
                    extra={"reason": "unique_violation", "employee_ids": already},
                )
                raise DuplicateConfirmationError(already, str(month_year)) from exc
            except SQLAlchemyError as exc:
                self._session.rollback()
                logger.error(
                    "payroll_confirm_rolled_back",
                    extra={"reason": type(exc).__name__},
                )
                raise PersistenceError(str(month_year), str(exc)) from exc
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "payroll_confirm_committed",
                extra={
                    "employee_count": run.employee_count,
                    "total_gross": str(run.total_gross),
                    "total_net": str(run.total_net),
                    "review_count": run.review_count,
                },
            )
        return records

    def _validate_batch(
        self,
        month_year: MonthYear,
        generated_by: UUID,
        lines: Sequence[PayrollPreviewLine],
    ) -> None:
        if not isinstance(generated_by, UUID):
            raise ValidationError("generated_by must be the confirming actor's UUID", field="generated_by")
        if not lines:
            raise ValidationError("Cannot confirm an empty payroll batch", field="lines")

        wrong_period = [line.employee_id for line in lines if line.month_year != month_year]
        if wrong_period:
            raise ValidationError(
                f"Lines for {', '.join(wrong_period)} are not for {month_year}",
                field="lines",
            )

        repeated = [e for e, n in Counter(line.employee_id for line in lines).items() if n > 1]
        if repeated:
            raise ValidationError(
                f"Employees appear more than once: {', '.join(repeated)}",
                field="lines",
            )

        unresolved = [line.employee_id for line in lines if line.is_error]
        if unresolved:
            logger.warning(
                "payroll_confirm_blocked_by_errors",
                extra={"month_year": str(month_year), "employee_ids": unresolved},
            )
            raise UnresolvedPreviewLinesError(unresolved)

        for line in lines:
            for name in EARNING_FIELDS + DEDUCTION_FIELDS:
                amount = getattr(line, name)
                if not amount.is_finite() or amount < ZERO:
                    raise ValidationError(
                        f"{name} for {line.employee_id} must be a non-negative amount: {amount}",
                        field=name,
                    )
                if not _is_whole_cents(amount):
                    raise ValidationError(
                        f"{name} for {line.employee_id} is not a 2-decimal amount: {amount}",
                        field=name,
                    )

    def _find_confirmed(self, employee_ids: Sequence[str], month_year: MonthYear) -> list[str]:
        rows = self._session.scalars(
            select(PayrollRecordModel.employee_id).where(
                PayrollRecordModel.month_year == str(month_year),
                PayrollRecordModel.employee_id.in_(list(employee_ids)),
            )
        )
        return sorted(rows)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_confirmed_records(
        self,
        month: int | str,
        year: int | str,
        employee_ids: Sequence[str] | None = None,
    ) -> list[PayrollRecord]:
        """Committed records for a period, ordered by employee id."""
        month_year = MonthYear.of(month, year)
        stmt = select(PayrollRecordModel).where(
            PayrollRecordModel.month_year == str(month_year),
        )
        if employee_ids is not None:
            stmt = stmt.where(PayrollRecordModel.employee_id.in_(list(employee_ids)))
        stmt = stmt.order_by(PayrollRecordModel.employee_id)
        return [model.to_dto() for model in self._session.scalars(stmt)]

    def get_runs(self, month: int | str, year: int | str) -> list[PayrollRun]:
        """Confirmed run headers for a period, oldest first."""
        month_year = MonthYear.of(month, year)
        stmt = (
            select(PayrollRunModel)
            .where(PayrollRunModel.month_year == str(month_year))
            .order_by(PayrollRunModel.confirmed_at)
        )
        return [model.to_dto() for model in self._session.scalars(stmt)]
