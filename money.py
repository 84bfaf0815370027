"""Cent rounding and display helpers shared by the insight modules."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round half-up to cents.

    Goes through ``str`` so that 2.675 rounds to 2.68 rather than following
    its binary representation down.
    """
    rounded = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    return float(rounded) + 0.0


def dollars(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
