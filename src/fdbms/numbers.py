"""Lenient numeric coercion and monetary rounding shared by the calculators.

Bill inputs arrive from forms and spreadsheets, so every numeric field goes
through :func:`to_decimal` first. Anything that is not a finite number of a
sane magnitude becomes zero instead of raising.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Largest decimal exponent accepted from input, either way.
MAX_EXPONENT = 30


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Coerce a loosely typed value to a finite Decimal, or ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            return default
    else:
        return default

    if not result.is_finite():
        return default
    if result and abs(result.adjusted()) > MAX_EXPONENT:
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    """Coerce to an int by truncating the numeric value (``"12.7"`` -> 12)."""
    number = to_decimal(value, default=Decimal(default))
    return int(number)


def round2(amount: Decimal) -> Decimal:
    """Round a monetary amount to 2 decimals, half away from zero.

    Precision is widened for large amounts so quantizing never overflows.
    """
    if not amount.is_finite():
        return amount
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
