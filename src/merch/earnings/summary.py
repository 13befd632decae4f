"""Creator earnings summary: the read side of the ledger.

Combines the creator's ledger row with rollups computed from their orders.
Nothing here writes.
"""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from protean.utils.globals import current_domain

from merch.config import Settings
from merch.earnings.earnings import CreatorEarnings
from merch.order.order import Order
from merch.pricing.commission import round2

MONTHS_OF_HISTORY = 6
TOP_PRODUCTS = 5

_EMAIL_MASK = re.compile(r"(.{2})(.*)(@.*)")


@dataclass(frozen=True)
class PeriodStats:
    orders: int
    sales: Decimal
    commission: Decimal


@dataclass(frozen=True)
class MonthlyRollup:
    month: str  # YYYY-MM
    orders: int
    sales: Decimal
    commission: Decimal


@dataclass(frozen=True)
class ProductStats:
    product_id: str
    title: str
    units_sold: int
    revenue: Decimal
    commission: Decimal


@dataclass(frozen=True)
class MaskedPayoutDetails:
    method: str | None = None
    pix_key: str | None = None
    bank_account: str | None = None
    bank_name: str | None = None
    paypal_email: str | None = None
    last_payout_date: datetime | None = None


@dataclass(frozen=True)
class EarningsSummary:
    creator_id: str
    total_earnings: Decimal
    pending_earnings: Decimal
    paid_earnings: Decimal
    available_for_payout: Decimal
    total_sales: Decimal
    total_orders: int
    commission_rate: float
    min_payout_amount: Decimal
    can_request_payout: bool
    period_days: int
    period: PeriodStats
    monthly: list[MonthlyRollup] = field(default_factory=list)
    top_products: list[ProductStats] = field(default_factory=list)
    payout_details: MaskedPayoutDetails = field(default_factory=MaskedPayoutDetails)


def mask_tail(value: str | None) -> str | None:
    """``"12345678"`` -> ``"****5678"``."""
    if not value:
        return None
    return "****" + value[-4:]


def mask_email(value: str | None) -> str | None:
    """``"maria@example.com"`` -> ``"ma***@example.com"``."""
    if not value:
        return None
    return _EMAIL_MASK.sub(r"\1***\3", value)


def _month_start(moment: datetime, months_back: int) -> datetime:
    year, month = moment.year, moment.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return moment.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


def _next_month(start: datetime) -> datetime:
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def _aware(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def _totals(orders) -> tuple[int, Decimal, Decimal]:
    sales = sum((round2(o.sales_amount) for o in orders), Decimal("0"))
    commission = sum((round2(o.total_creator_commission or 0) for o in orders), Decimal("0"))
    return len(orders), sales, commission


def monthly_rollups(orders, now: datetime, months: int = MONTHS_OF_HISTORY) -> list[MonthlyRollup]:
    """Order counts and money per calendar month, oldest month first."""
    rollups = []
    for months_back in reversed(range(months)):
        start = _month_start(now, months_back)
        end = _next_month(start)
        in_month = [o for o in orders if o.created_at and start <= _aware(o.created_at) < end]
        count, sales, commission = _totals(in_month)
        rollups.append(MonthlyRollup(month=start.strftime("%Y-%m"), orders=count, sales=sales, commission=commission))
    return rollups


def top_products(orders, limit: int = TOP_PRODUCTS) -> list[ProductStats]:
    """Best sellers by units sold."""
    stats = defaultdict(lambda: {"title": "", "units": 0, "revenue": Decimal("0"), "commission": Decimal("0")})
    for order in orders:
        for item in order.items or []:
            entry = stats[str(item.product_id)]
            entry["title"] = entry["title"] or item.title
            entry["units"] += item.quantity
            entry["revenue"] += round2(item.selling_price)
            entry["commission"] += round2(item.creator_commission or 0)

    ranked = sorted(stats.items(), key=lambda kv: kv[1]["units"], reverse=True)[:limit]
    return [
        ProductStats(
            product_id=product_id,
            title=entry["title"],
            units_sold=entry["units"],
            revenue=entry["revenue"],
            commission=entry["commission"],
        )
        for product_id, entry in ranked
    ]


def masked_payout_details(earnings: CreatorEarnings) -> MaskedPayoutDetails:
    details = earnings.payout_details
    return MaskedPayoutDetails(
        method=earnings.payout_method,
        pix_key=mask_tail(details.pix_key) if details else None,
        bank_account=mask_tail(details.bank_account) if details else None,
        bank_name=details.bank_name if details else None,
        paypal_email=mask_email(details.paypal_email) if details else None,
        last_payout_date=earnings.last_payout_date,
    )


def summarize(
    earnings: CreatorEarnings,
    settings: Settings,
    period_days: int = 30,
    now: datetime | None = None,
) -> EarningsSummary:
    """Build the creator's earnings page from their ledger row and orders."""
    now = _aware(now) or datetime.now(UTC)
    creator_id = str(earnings.creator_id)
    orders = current_domain.repository_for(Order).find_for_creator(creator_id)

    period_start = now - timedelta(days=period_days)
    in_period = [o for o in orders if o.created_at and _aware(o.created_at) >= period_start]
    count, sales, commission = _totals(in_period)

    return EarningsSummary(
        creator_id=creator_id,
        total_earnings=round2(earnings.total_earnings or 0),
        pending_earnings=round2(earnings.pending_earnings or 0),
        paid_earnings=round2(earnings.paid_earnings or 0),
        available_for_payout=earnings.available_for_payout,
        total_sales=round2(earnings.total_sales or 0),
        total_orders=earnings.total_orders or 0,
        commission_rate=settings.default_commission_rate,
        min_payout_amount=settings.min_payout_amount,
        can_request_payout=earnings.can_request_payout(settings.min_payout_amount),
        period_days=period_days,
        period=PeriodStats(orders=count, sales=sales, commission=commission),
        monthly=monthly_rollups(orders, now),
        top_products=top_products(orders),
        payout_details=masked_payout_details(earnings),
    )
