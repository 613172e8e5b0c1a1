"""Rounding and formatting of taka amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
TAKA_SIGN = "৳"


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percent(part: int | Decimal, whole: int | Decimal, default: int = 0) -> int:
    """Whole-number percentage of ``part`` in ``whole``; ``default`` when ``whole`` is 0."""
    if not whole:
        return default
    ratio = Decimal(part) * 100 / Decimal(whole)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_taka(value: Decimal, places: int = 2) -> str:
    """``৳1,234.50`` style rendering; negative amounts keep a leading minus."""
    quantum = Decimal(1).scaleb(-places)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{TAKA_SIGN}{abs(rounded):,.{places}f}"
