"""
Money Helpers

Exact-decimal money handling. NEVER uses float for monetary values: every
amount entering the core is converted through to_decimal, and every monetary
boundary is rounded half-up to 2 fraction digits.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union

# High precision for intermediate results; rounding happens at boundaries
getcontext().prec = 28

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Numeric = Union[Decimal, int, str]


def to_decimal(value: Numeric) -> Decimal:
    """Convert an int, str or Decimal to Decimal (floats are rejected)"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary values must not be {type(value).__name__}: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a decimal amount: {value!r}")


def round2(value: Numeric) -> Decimal:
    """Round to 2 decimal places, half-up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Numeric) -> str:
    """Render an amount with exactly 2 decimals"""
    return f"{round2(value):.2f}"
