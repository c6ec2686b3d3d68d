"""
Module: hr_kernel.db.types
Responsibility: Annotated type aliases and the canonical rounding function for
    payroll amounts.  Centralizes precision and rounding so that every model,
    engine and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models, engines and
    services.  MUST NOT import from any of those layers.

Invariants enforced:
    - Storage precision: Money maps to Numeric(38, 9).
    - Presentation precision: CURRENCY_DECIMAL_PLACES (2) with ROUND_HALF_UP.
      round_money() is the ONLY sanctioned rounding function for payroll
      values, and it is applied only where a value is stored on a line or
      record -- never in the middle of a calculation.
    - No floats.  to_decimal() refuses them.

Failure modes:
    - ValueError on a value that cannot be converted to Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

# Monetary amount with high storage precision
Money = Annotated[Decimal, Numeric(38, 9)]

# Percentage (0-100) with four decimal places
Percentage = Annotated[Decimal, Numeric(9, 4)]

# Payroll period key, "YYYY-MM"
MonthYearCode = Annotated[str, String(7)]


CURRENCY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_money(
    value: Decimal,
    decimal_places: int = CURRENCY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for payroll values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "0"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert an int, str or Decimal to Decimal.

    Floats are rejected: they have already lost precision by the time they
    reach us.

    Raises:
        ValueError: If value is a float, a bool, or not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Refusing to convert {type(value).__name__} {value!r} to Decimal")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal number: {value!r}") from exc
        if not result.is_finite():
            raise ValueError(f"Not a finite decimal number: {value!r}")
        return result
    raise ValueError(f"Cannot convert {type(value).__name__} to Decimal")
