"""
Payroll Configuration Schema.

Defines the structure and sensible defaults for payroll generation settings.
Actual values are loaded from company configuration at runtime (see
``hr_config.loader`` for the YAML form).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Self

from hr_engines.adjustments import OvertimeRates
from hr_engines.deductions import AttendanceBasis, AttendancePolicy, WorkingDaysMethod
from hr_kernel.db.types import HUNDRED, ZERO
from hr_kernel.domain.period import MonthYear
from hr_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.config")

MAX_WORKERS_LIMIT = 64


def _decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class PayrollConfig:
    """
    Configuration schema for payroll generation.

    Override at instantiation with company-specific values:

        config = PayrollConfig(
            eobi_amount=Decimal("370"),
            provident_fund_percentage=Decimal("8.33"),
            **load_from_database("payroll_settings"),
        )
    """

    # Attendance deductions
    attendance_policy: AttendancePolicy = field(default_factory=AttendancePolicy)

    # Overtime hours pricing
    overtime_rates: OvertimeRates = field(default_factory=OvertimeRates)

    # EOBI: monthly employee contribution, with per-period overrides ("YYYY-MM")
    eobi_amount: Decimal = ZERO
    eobi_amounts: dict[str, Decimal] = field(default_factory=dict)

    # Provident fund: percentage of the named breakup component
    # (falls back to base salary when the component is absent)
    provident_fund_percentage: Decimal = ZERO
    provident_fund_component: str | None = "Basic"

    # Selection
    include_inactive_employees: bool = False

    # Preview fan-out; 1 means sequential
    max_workers: int = 1

    def __post_init__(self):
        if self.eobi_amount < ZERO:
            raise ValueError("eobi_amount cannot be negative")
        for key, amount in self.eobi_amounts.items():
            MonthYear.parse(key)
            if amount < ZERO:
                raise ValueError(f"eobi_amounts[{key}] cannot be negative")

        if self.provident_fund_percentage < ZERO:
            raise ValueError("provident_fund_percentage cannot be negative")
        if self.provident_fund_percentage > HUNDRED:
            raise ValueError("provident_fund_percentage cannot exceed 100")

        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.max_workers > MAX_WORKERS_LIMIT:
            raise ValueError(f"max_workers cannot exceed {MAX_WORKERS_LIMIT}")

        logger.info(
            "payroll_config_initialized",
            extra={
                "attendance_basis": self.attendance_policy.basis.value,
                "working_days_method": self.attendance_policy.working_days_method.value,
                "eobi_amount": str(self.eobi_amount),
                "eobi_overrides": len(self.eobi_amounts),
                "provident_fund_percentage": str(self.provident_fund_percentage),
                "max_workers": self.max_workers,
            },
        )

    def eobi_amount_for(self, month_year: MonthYear) -> Decimal:
        return self.eobi_amounts.get(str(month_year), self.eobi_amount)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with defaults (no EOBI, no PF, 26-day month)."""
        logger.info("payroll_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from database/file)."""
        logger.info(
            "payroll_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)

        if isinstance(data.get("attendance_policy"), dict):
            policy = dict(data["attendance_policy"])
            if "basis" in policy:
                policy["basis"] = AttendanceBasis(policy["basis"])
            if "working_days_method" in policy:
                policy["working_days_method"] = WorkingDaysMethod(policy["working_days_method"])
            for name in ("short_day_weight", "half_day_weight", "late_day_weight"):
                if name in policy:
                    policy[name] = _decimal(policy[name])
            data["attendance_policy"] = AttendancePolicy(**policy)

        if isinstance(data.get("overtime_rates"), dict):
            data["overtime_rates"] = OvertimeRates(
                **{k: _decimal(v) for k, v in data["overtime_rates"].items()}
            )

        for name in ("eobi_amount", "provident_fund_percentage"):
            if name in data:
                data[name] = _decimal(data[name])
        if "eobi_amounts" in data:
            data["eobi_amounts"] = {
                str(k): _decimal(v) for k, v in (data["eobi_amounts"] or {}).items()
            }

        return cls(**data)
