"""
PropRecon - Money Helpers

All amounts are Decimal, rounded half-up to cents at the point they are
stored or compared against a tier.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Any) -> Decimal:
    """Coerce a column value (None, int, float, str, Decimal) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Any) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Optional[Decimal]) -> str:
    """Render as $1,234.56 for audit notes and log lines."""
    return f"${to_money(value):,.2f}"
