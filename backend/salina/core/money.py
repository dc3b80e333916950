"""
Decimal helpers for money and ratio math
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Coerce a column value (None, int, str, Decimal) to Decimal without going through float"""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_to(value: Decimal, places: int) -> float:
    """Round half-up for display and return a float"""
    exponent = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))


def round_int(value: Decimal) -> int:
    return int(to_decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def safe_divide(numerator, denominator) -> Optional[Decimal]:
    """``numerator / denominator`` or None when the denominator is zero"""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return None
    return to_decimal(numerator) / denominator


def percentage(part, whole, places: int = 1) -> float:
    ratio = safe_divide(part, whole)
    if ratio is None:
        return 0.0
    return round_to(ratio * 100, places)
