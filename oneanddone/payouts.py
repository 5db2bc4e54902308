"""Payout calculation: finish position + purse + multiplier -> earnings.

Uses the standard PGA Tour distribution. Only the top 70 finishers are
paid; a missing position (missed cut, withdrawal, not yet known) earns
nothing.
"""

from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import Optional

from oneanddone.errors import ValidationError

# Share of the effective purse for positions 1-20
PAYOUT_PERCENTAGES = MappingProxyType({
    1: 0.18,
    2: 0.109,
    3: 0.069,
    4: 0.049,
    5: 0.041,
    6: 0.0365,
    7: 0.034,
    8: 0.0315,
    9: 0.0295,
    10: 0.0275,
    11: 0.0255,
    12: 0.0235,
    13: 0.0223,
    14: 0.0211,
    15: 0.02,
    16: 0.0189,
    17: 0.0178,
    18: 0.0167,
    19: 0.0156,
    20: 0.0145,
})

# Flat share for positions 21 through LAST_PAID_POSITION
FLAT_PERCENTAGE = 0.01
LAST_PAID_POSITION = 70


def payout_percentage(position: Optional[int]) -> float:
    """Share of the effective purse paid for a finish position."""
    if position is None or position > LAST_PAID_POSITION:
        return 0.0
    if position < 1:
        raise ValidationError(f"Finish position must be 1 or greater, got {position}")
    return PAYOUT_PERCENTAGES.get(position, FLAT_PERCENTAGE)


def calculate_earnings(position: Optional[int], purse: float, multiplier: float = 1.0) -> int:
    """Earnings for a finish, rounded half-up to whole dollars.

    Example: 3rd on a $10M purse with a 1.5x multiplier pays
    round(15,000,000 * 0.069) = 1,035,000.
    """
    pct = payout_percentage(position)
    if not pct:
        return 0
    # Decimal arithmetic keeps table boundaries exact (e.g. 15M * 0.0145)
    effective_purse = Decimal(str(purse)) * Decimal(str(multiplier))
    amount = effective_purse * Decimal(str(pct))
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
