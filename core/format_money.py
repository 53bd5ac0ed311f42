# PATH: core/format_money.py
"""
Safe money formatting for CycleScan reports and log lines.

Values are formatted from Decimal with ROUND_HALF_UP; never raises on numeric input.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional, Union

MoneyLike = Union[str, Decimal, int, float, None]


def format_money(value: MoneyLike, decimals: int = 6) -> str:
    """
    Format a money value to a fixed number of decimal places.

    Example:
        >>> format_money("0.49990")
        '0.499900'
        >>> format_money(None, 2)
        '0.00'
    """
    zero = f"0.{'0' * decimals}" if decimals > 0 else "0"
    if value is None:
        return zero

    try:
        if isinstance(value, bool):
            dec_value = Decimal(1 if value else 0)
        elif isinstance(value, Decimal):
            dec_value = value
        else:
            text = str(value).strip()
            if not text:
                return zero
            dec_value = Decimal(text)

        with localcontext() as ctx:
            ctx.prec = 50
            quantum = Decimal("0." + "0" * decimals) if decimals > 0 else Decimal("0")
            rounded = dec_value.quantize(quantum, rounding=ROUND_HALF_UP)

        return f"{rounded:.{decimals}f}"
    except (InvalidOperation, ValueError, TypeError):
        return zero


def format_amount(value: MoneyLike, symbol: Optional[str] = None, decimals: int = 6) -> str:
    """Format a token amount with an optional symbol suffix."""
    text = format_money(value, decimals)
    return f"{text} {symbol}" if symbol else text


def format_pct(value: Union[float, Decimal, None], decimals: int = 4) -> str:
    """Format a percentage value (already scaled to 0-100)."""
    return f"{format_money(value, decimals)}%"
