# revenue_projections/core/money.py
from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR, InvalidOperation
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, default: Optional[Decimal] = ZERO) -> Optional[Decimal]:
    """Numbers and numeric strings -> Decimal; floats go through str() to keep their printed value."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"Not a number: {value!r}")


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_FLOOR)


def pct_factor(rate_pct) -> Decimal:
    # 10 -> 1.10 ; -10 -> 0.90
    return Decimal("1") + to_decimal(rate_pct) / HUNDRED
