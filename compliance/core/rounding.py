from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float | int | Decimal, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def round_int(value: float | int | Decimal) -> int:
    return int(round_half_up(value))


def ratio_percent(numerator: int | float, denominator: int | float) -> int:
    """``round(100 * n / d)``; 0 when the denominator is 0."""

    if denominator <= 0:
        return 0
    return round_int(Decimal(str(numerator)) * 100 / Decimal(str(denominator)))


def progress_percent(approved: int, required: int, *, empty: int) -> int:
    if required <= 0:
        return empty
    return ratio_percent(approved, required)
