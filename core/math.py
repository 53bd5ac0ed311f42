# PATH: core/math.py
"""
Math utilities for CycleScan.

Amounts on the wire are integers in the asset's smallest unit; balances and
reports use Decimal whole-token units. Float is used only for percentages.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Union

Number = Union[str, int, float, Decimal]


def safe_decimal(value: Union[Number, None], default: Decimal = Decimal("0")) -> Decimal:
    """
    Safely convert value to Decimal.

    Args:
        value: Value to convert
        default: Default if conversion fails

    Returns:
        Decimal value
    """
    if value is None:
        return default

    try:
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def to_smallest_unit(amount: Number, decimals: int) -> int:
    """
    Convert whole-token amount to smallest units, truncating dust.

    Example:
        >>> to_smallest_unit("1.5", 9)
        1500000000
    """
    scaled = safe_decimal(amount) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_smallest_unit(amount: Union[int, str], decimals: int) -> Decimal:
    """Convert smallest units to a whole-token Decimal."""
    return safe_decimal(amount) / (Decimal(10) ** decimals)


def profit_pct(profit: int, amount_in: int) -> float:
    """Profit as a percentage of the input amount (0.5 -> 0.5%)."""
    if amount_in <= 0:
        return 0.0
    return float(Decimal(profit) / Decimal(amount_in) * Decimal(100))
