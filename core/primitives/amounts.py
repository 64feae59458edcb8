"""
MTS Amount Primitive - Decimal Context, Quantisation, Division Guard
=====================================================================
Every monetary, weight and percentage value in MTS is a Decimal.

RULES:
- One explicit decimal context (prec=28, ROUND_HALF_EVEN) for arithmetic.
  The process-wide context is never consulted.
- Exposed amounts are quantised to AMOUNT_QUANTUM with ROUND_HALF_UP.
- Floats are converted through str() so 0.1 stays 0.1.
- Division by zero or by None yields None ("undefined"), never an
  exception, NaN or Infinity.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

ARITHMETIC_CONTEXT = Context(prec=28, rounding=ROUND_HALF_EVEN)

AMOUNT_PLACES = 6
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)  # 0.000001

ZERO = Decimal("0")
HUNDRED = Decimal("100")
THOUSAND = Decimal("1000")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert int/str/float/Decimal to Decimal. None stays None.

    Empty strings are NOT treated as zero: they raise ValueError, because
    an absent value must be an explicit null.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError("Boolean is not a numeric amount.")
    elif isinstance(value, (int, float, str)):
        if isinstance(value, str) and not value.strip():
            raise ValueError("Empty string is not a numeric amount; use None.")
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal number: {value!r}.") from exc
    else:
        raise ValueError(f"Unsupported amount type: {type(value).__name__}.")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}.")
    return result


def quantize(value: Decimal) -> Decimal:
    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP, context=ARITHMETIC_CONTEXT)


def mul(*factors: Decimal) -> Decimal:
    result = Decimal(1)
    for f in factors:
        result = ARITHMETIC_CONTEXT.multiply(result, f)
    return result


def add(*terms: Decimal) -> Decimal:
    result = ZERO
    for t in terms:
        result = ARITHMETIC_CONTEXT.add(result, t)
    return result


def sub(minuend: Decimal, subtrahend: Decimal) -> Decimal:
    return ARITHMETIC_CONTEXT.subtract(minuend, subtrahend)


def total(values: Iterable[Decimal]) -> Decimal:
    return add(*tuple(values))


def safe_divide(
    numerator: Optional[Decimal],
    denominator: Optional[Decimal],
) -> Optional[Decimal]:
    """Division guard: zero or missing denominator -> None."""
    if numerator is None or denominator is None or denominator == ZERO:
        return None
    return ARITHMETIC_CONTEXT.divide(numerator, denominator)
