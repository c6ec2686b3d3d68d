"""
Payroll ORM Persistence Models (``hr_modules.payroll.orm``).

Responsibility:
    SQLAlchemy ORM models that persist the confirmed payroll DTOs defined in
    ``hr_modules.payroll.models``.  Each ORM class mirrors a DTO and
    provides ``to_dto()`` / ``from_dto()`` round-trip conversion.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at,
    created_by_id (NOT NULL UUID), updated_by_id (nullable UUID).

Invariants enforced:
    - All monetary fields use Decimal (maps to Numeric(38,9)) -- NEVER float.
    - ``month_year`` is stored as its "YYYY-MM" string.
    - One record per (employee_id, month_year):
      uq_payroll_record_employee_period.  This constraint is what makes
      confirmation idempotent under concurrency.
    - Confirmed rows are append-only (see ``hr_kernel.db.immutability``).

Audit relevance:
    ``generated_by`` and ``confirmed_at`` identify who confirmed the run and
    when; TrackedBase audit columns are inherited by every model.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_kernel.db.base import TrackedBase
from hr_kernel.db.types import round_money


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# PayrollRunModel
# ---------------------------------------------------------------------------

class PayrollRunModel(TrackedBase):
    """
    ORM model for ``PayrollRun`` -- the header of one confirmed batch.

    Guarantees:
        - ``total_gross`` / ``total_net`` equal the sums over the run's records.
        - Written in the same transaction as its records.
    """

    __tablename__ = "payroll_runs"

    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    generated_by: Mapped[UUID] = mapped_column(nullable=False)
    confirmed_at: Mapped[datetime] = mapped_column(nullable=False)
    employee_count: Mapped[int] = mapped_column(nullable=False)
    total_gross: Mapped[Decimal] = mapped_column(nullable=False)
    total_net: Mapped[Decimal] = mapped_column(nullable=False)
    review_count: Mapped[int] = mapped_column(default=0, nullable=False)

    records: Mapped[list["PayrollRecordModel"]] = relationship(
        back_populates="run",
    )

    __table_args__ = (
        Index("idx_payroll_run_month_year", "month_year"),
    )

    def to_dto(self):
        from hr_kernel.domain.period import MonthYear
        from hr_modules.payroll.models import PayrollRun
        return PayrollRun(
            id=self.id,
            month_year=MonthYear.parse(self.month_year),
            generated_by=self.generated_by,
            confirmed_at=_aware(self.confirmed_at),
            employee_count=self.employee_count,
            total_gross=round_money(self.total_gross),
            total_net=round_money(self.total_net),
            review_count=self.review_count,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PayrollRunModel":
        return cls(
            id=dto.id,
            month_year=str(dto.month_year),
            generated_by=dto.generated_by,
            confirmed_at=dto.confirmed_at,
            employee_count=dto.employee_count,
            total_gross=dto.total_gross,
            total_net=dto.total_net,
            review_count=dto.review_count,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<PayrollRunModel {self.month_year}: "
            f"{self.employee_count} employees, net {self.total_net}>"
        )


# ---------------------------------------------------------------------------
# PayrollRecordModel
# ---------------------------------------------------------------------------

_AMOUNT_COLUMNS = (
    "basic_salary",
    "total_allowances",
    "overtime_amount",
    "bonus_amount",
    "total_deductions",
    "tax_deduction",
    "attendance_deduction",
    "loan_deduction",
    "advance_salary_deduction",
    "eobi_deduction",
    "provident_fund_deduction",
    "gross_salary",
    "net_salary",
)


class PayrollRecordModel(TrackedBase):
    """
    ORM model for ``PayrollRecord`` -- one employee's confirmed payroll.

    Contract:
        Exactly one row per ``(employee_id, month_year)``.  A second insert
        for the same pair fails with ``IntegrityError``, which the service
        reports as ``DuplicateConfirmationError``.

    Guarantees:
        - ``salary_breakup`` is a JSON list of
          ``{name, percentage, amount, is_taxable}`` with decimal strings.
        - ``requires_review`` is True exactly when ``net_salary < 0``.
    """

    __tablename__ = "payroll_records"

    run_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_runs.id"), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    employee_code: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    employee_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    total_allowances: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_amount: Mapped[Decimal] = mapped_column(nullable=False)
    bonus_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    tax_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    attendance_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    loan_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    advance_salary_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    eobi_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    provident_fund_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(nullable=False)

    salary_breakup: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    warnings: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    requires_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    generated_by: Mapped[UUID] = mapped_column(nullable=False)
    confirmed_at: Mapped[datetime] = mapped_column(nullable=False)

    run: Mapped[PayrollRunModel] = relationship(back_populates="records")

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "month_year", name="uq_payroll_record_employee_period",
        ),
        Index("idx_payroll_record_month_year", "month_year"),
        Index("idx_payroll_record_run", "run_id"),
        Index("idx_payroll_record_review", "requires_review"),
    )

    def to_dto(self):
        from hr_engines.salary_breakup import ResolvedComponent
        from hr_kernel.domain.period import MonthYear
        from hr_modules.payroll.models import PayrollRecord
        return PayrollRecord(
            id=self.id,
            run_id=self.run_id,
            employee_id=self.employee_id,
            month_year=MonthYear.parse(self.month_year),
            employee_code=self.employee_code,
            employee_name=self.employee_name,
            salary_breakup=tuple(
                ResolvedComponent(
                    name=c["name"],
                    percentage=Decimal(c["percentage"]),
                    amount=Decimal(c["amount"]),
                    is_taxable=c["is_taxable"],
                )
                for c in self.salary_breakup
            ),
            warnings=tuple(self.warnings),
            requires_review=self.requires_review,
            generated_by=self.generated_by,
            confirmed_at=_aware(self.confirmed_at),
            **{name: round_money(getattr(self, name)) for name in _AMOUNT_COLUMNS},
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PayrollRecordModel":
        return cls(
            id=dto.id,
            run_id=dto.run_id,
            employee_id=dto.employee_id,
            month_year=str(dto.month_year),
            employee_code=dto.employee_code,
            employee_name=dto.employee_name,
            salary_breakup=[
                {
                    "name": c.name,
                    "percentage": str(c.percentage),
                    "amount": str(c.amount),
                    "is_taxable": c.is_taxable,
                }
                for c in dto.salary_breakup
            ],
            warnings=list(dto.warnings),
            requires_review=dto.requires_review,
            generated_by=dto.generated_by,
            confirmed_at=dto.confirmed_at,
            created_by_id=created_by_id,
            **{name: getattr(dto, name) for name in _AMOUNT_COLUMNS},
        )

    def __repr__(self) -> str:
        return (
            f"<PayrollRecordModel {self.employee_id} {self.month_year}: "
            f"net {self.net_salary}>"
        )
