"""
Payroll period value object (``hr_kernel.domain.period``).

Responsibility:
    ``MonthYear`` identifies the month a payroll line, adjustment, installment
    or confirmed record belongs to.  Its string form ``"YYYY-MM"`` is the key
    used in storage and in the (employee, period) uniqueness guarantee.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O.

Failure modes:
    - InvalidPeriodError for a month outside 1-12, a year outside 1900-9999,
      or a string that is not ``YYYY-MM``.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass

from hr_kernel.exceptions import InvalidPeriodError

MIN_YEAR = 1900
MAX_YEAR = 9999


def _as_int(value: int | str, label: str, raw: str) -> int:
    if isinstance(value, bool):
        raise InvalidPeriodError(raw, f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidPeriodError(raw, f"{label} must be an integer")


@dataclass(frozen=True, order=True)
class MonthYear:
    """A calendar month in a calendar year."""

    year: int
    month: int

    def __post_init__(self):
        raw = f"{self.year}-{self.month}"
        if not isinstance(self.year, int) or not isinstance(self.month, int):
            raise InvalidPeriodError(raw, "year and month must be integers")
        if not 1 <= self.month <= 12:
            raise InvalidPeriodError(raw, "month must be between 1 and 12")
        if not MIN_YEAR <= self.year <= MAX_YEAR:
            raise InvalidPeriodError(
                raw, f"year must be between {MIN_YEAR} and {MAX_YEAR}"
            )

    @classmethod
    def of(cls, month: int | str, year: int | str) -> MonthYear:
        """Build from separate month and year values (ints or digit strings)."""
        raw = f"{year}-{month}"
        return cls(year=_as_int(year, "year", raw), month=_as_int(month, "month", raw))

    @classmethod
    def parse(cls, value: str) -> MonthYear:
        """Parse ``"YYYY-MM"``."""
        if not isinstance(value, str):
            raise InvalidPeriodError(str(value), "expected a 'YYYY-MM' string")
        parts = value.strip().split("-")
        if len(parts) != 2 or len(parts[0]) != 4 or not 1 <= len(parts[1]) <= 2:
            raise InvalidPeriodError(value, "expected a 'YYYY-MM' string")
        return cls.of(parts[1], parts[0])

    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    def weekdays_in_month(self) -> int:
        """Number of Monday-Friday days in the month."""
        first_weekday, days = calendar.monthrange(self.year, self.month)
        return sum(
            1 for offset in range(days) if (first_weekday + offset) % 7 < 5
        )

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
