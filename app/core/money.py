# app/core/money.py
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """
    Quantize to paise (2 dp, ROUND_HALF_UP). Floats go through str() so
    0.1 stays 0.10 instead of 0.1000000000000000055...
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
