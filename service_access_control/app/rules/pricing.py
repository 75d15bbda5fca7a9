"""
USDC price helpers for display.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

USDC_DECIMALS = 6
USDC_SUBUNITS = 10 ** USDC_DECIMALS


def usdc_minor_to_usd(amount: Union[int, str]) -> Decimal:
    """Convert USDC minor units (6 decimals) to dollars."""
    return Decimal(int(amount)) / Decimal(USDC_SUBUNITS)


def format_money(amount: Decimal) -> str:
    """Format dollars with no fraction digits, e.g. ``$1,235``."""
    rounded = Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(int(rounded)):,}"
