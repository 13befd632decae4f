"""Commission split between a creator and the platform.

All arithmetic happens in ``Decimal``. The creator's share is rounded once,
half-up to cents, and the platform fee is whatever is left of the profit, so
``creator_commission + platform_fee == profit`` holds exactly.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary float expansion
    return Decimal(str(value))


def round2(value) -> Decimal:
    """Round to minor currency units, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CommissionSplit:
    profit: Decimal
    creator_commission: Decimal
    platform_fee: Decimal

    @property
    def is_loss(self) -> bool:
        return self.profit < 0


def split(selling_price, base_cost, commission_rate_percent) -> CommissionSplit:
    """Divide the profit of one line between creator and platform."""
    profit = to_decimal(selling_price) - to_decimal(base_cost)
    creator_commission = round2(profit * to_decimal(commission_rate_percent) / Decimal(100))
    return CommissionSplit(
        profit=profit,
        creator_commission=creator_commission,
        platform_fee=profit - creator_commission,
    )


def split_line(selling_price, base_cost, commission_rate_percent, quantity: int = 1) -> CommissionSplit:
    """Split a line of ``quantity`` identical units priced per unit."""
    qty = Decimal(quantity)
    return split(to_decimal(selling_price) * qty, to_decimal(base_cost) * qty, commission_rate_percent)


def order_totals(splits: Iterable[CommissionSplit]) -> CommissionSplit:
    """Sum the splits of every line in an order."""
    profit = creator = fee = Decimal("0")
    for line in splits:
        profit += line.profit
        creator += line.creator_commission
        fee += line.platform_fee
    return CommissionSplit(profit=profit, creator_commission=creator, platform_fee=fee)
