"""Quote pricing: provider cost quotes turned into local suggested prices.

The provider quotes production and shipping in its own currency, once per
shipping method. Each quote is converted into local currency, marked up by
the requested margin, given a delivery window, and the whole list is sorted
cheapest first. Callers pick cheapest/fastest/recommended by label.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from merch.config import DEFAULT_EXCHANGE_RATES
from merch.pricing.commission import round2, to_decimal

SHIPPING_MARKUP_PERCENT = Decimal("10")

FASTEST_METHOD = "Overnight"
RECOMMENDED_METHOD = "Standard"

# Suggested margin by product category
PROFIT_MARGINS = {
    "canvas": 45,
    "framedPrints": 50,
    "fineArtPrints": 55,
    "posters": 40,
    "metalPrints": 50,
    "acrylicPrints": 55,
    "phoneCases": 45,
    "mugs": 40,
    "greetingCards": 50,
    "calendars": 45,
    "photobooks": 45,
    "default": 45,
}

SHIPPING_METHOD_LABELS = {
    "Budget": "Econômico",
    "Standard": "Padrão",
    "StandardPlus": "Padrão Plus",
    "Express": "Expresso",
    "Overnight": "Urgente",
}

_PRODUCTION_DAYS = (2, 5)

# (min, max) shipping days per method and destination country
_SHIPPING_DAYS = {
    "Budget": {"BR": (15, 30), "US": (10, 20), "GB": (5, 10), "default": (12, 25)},
    "Standard": {"BR": (10, 20), "US": (5, 12), "GB": (3, 7), "default": (8, 18)},
    "StandardPlus": {"BR": (7, 15), "US": (4, 8), "GB": (2, 5), "default": (5, 12)},
    "Express": {"BR": (5, 10), "US": (2, 5), "GB": (1, 3), "default": (3, 7)},
    "Overnight": {"BR": (3, 7), "US": (1, 2), "GB": (1, 1), "default": (2, 5)},
}
_FALLBACK_SHIPPING_DAYS = (10, 20)


@dataclass(frozen=True)
class ProviderCost:
    """An amount as the provider reports it: a decimal string plus currency."""

    amount: str
    currency: str

    @classmethod
    def from_dict(cls, data: dict) -> "ProviderCost":
        return cls(amount=str(data.get("amount", "0")), currency=data.get("currency", "GBP"))


@dataclass(frozen=True)
class DeliveryWindow:
    min_days: int
    max_days: int
    earliest: date
    latest: date


@dataclass(frozen=True)
class PricedQuote:
    shipping_method: str
    shipping_method_label: str
    original_items: ProviderCost
    original_shipping: ProviderCost
    items_cost: Decimal
    shipping_cost: Decimal
    suggested_items_price: Decimal
    suggested_shipping_charge: Decimal
    profit: Decimal
    profit_margin_percent: Decimal
    delivery: DeliveryWindow
    items: list[dict] = field(default_factory=list)

    @property
    def total_cost(self) -> Decimal:
        return self.items_cost + self.shipping_cost

    @property
    def suggested_total(self) -> Decimal:
        return self.suggested_items_price + self.suggested_shipping_charge


@dataclass(frozen=True)
class QuoteSheet:
    quotes: list[PricedQuote]
    destination_country_code: str
    currency: str
    margin_percent: Decimal

    @property
    def cheapest_option(self) -> str | None:
        return self.quotes[0].shipping_method if self.quotes else None

    @property
    def fastest_option(self) -> str:
        return FASTEST_METHOD

    @property
    def recommended_option(self) -> str:
        return RECOMMENDED_METHOD


def convert(cost: ProviderCost, rates: dict | None = None) -> Decimal:
    """Convert a provider cost into local currency; unknown currencies pass through."""
    table = DEFAULT_EXCHANGE_RATES if rates is None else rates
    rate = table.get(cost.currency, Decimal("1"))
    return round2(to_decimal(cost.amount) * to_decimal(rate))


def suggested_selling_price(cost_local, margin_percent) -> Decimal:
    return round2(to_decimal(cost_local) * (1 + to_decimal(margin_percent) / 100))


def margin_for(category: str | None) -> int:
    return PROFIT_MARGINS.get(category or "default", PROFIT_MARGINS["default"])


def profit_margin_percent(profit, selling_price) -> Decimal:
    price = to_decimal(selling_price)
    if price == 0:
        return Decimal("0")
    return round2(to_decimal(profit) / price * 100)


def add_business_days(start: date, days: int) -> date:
    result = start
    added = 0
    while added < days:
        result += timedelta(days=1)
        if result.weekday() < 5:
            added += 1
    return result


def estimate_delivery(shipping_method: str, destination_country_code: str, today: date | None = None) -> DeliveryWindow:
    """Production time plus shipping time, counted in business days."""
    by_country = _SHIPPING_DAYS.get(shipping_method, {})
    ship_min, ship_max = by_country.get(destination_country_code) or by_country.get("default") or _FALLBACK_SHIPPING_DAYS
    min_days = _PRODUCTION_DAYS[0] + ship_min
    max_days = _PRODUCTION_DAYS[1] + ship_max
    start = today or date.today()
    return DeliveryWindow(
        min_days=min_days,
        max_days=max_days,
        earliest=add_business_days(start, min_days),
        latest=add_business_days(start, max_days),
    )


def price_quote(
    quote: dict,
    margin_percent,
    destination_country_code: str,
    rates: dict | None = None,
    today: date | None = None,
) -> PricedQuote:
    """Price a single provider quote (one shipping method)."""
    method = quote["shipmentMethod"]
    summary = quote.get("costSummary", {})
    original_items = ProviderCost.from_dict(summary.get("items", {}))
    original_shipping = ProviderCost.from_dict(summary.get("shipping", {}))

    items_cost = convert(original_items, rates)
    shipping_cost = convert(original_shipping, rates)
    suggested_items = suggested_selling_price(items_cost, margin_percent)
    suggested_shipping = suggested_selling_price(shipping_cost, SHIPPING_MARKUP_PERCENT)
    suggested_total = suggested_items + suggested_shipping
    profit = suggested_total - (items_cost + shipping_cost)

    items = []
    for item in quote.get("items", []):
        unit_cost = convert(ProviderCost.from_dict(item.get("unitCost", {})), rates)
        items.append(
            {
                "id": item.get("id"),
                "sku": item.get("sku"),
                "copies": item.get("copies", 1),
                "unit_cost": unit_cost,
                "suggested_unit_price": suggested_selling_price(unit_cost, margin_percent),
            }
        )

    return PricedQuote(
        shipping_method=method,
        shipping_method_label=SHIPPING_METHOD_LABELS.get(method, method),
        original_items=original_items,
        original_shipping=original_shipping,
        items_cost=items_cost,
        shipping_cost=shipping_cost,
        suggested_items_price=suggested_items,
        suggested_shipping_charge=suggested_shipping,
        profit=profit,
        profit_margin_percent=profit_margin_percent(profit, suggested_total),
        delivery=estimate_delivery(method, destination_country_code, today),
        items=items,
    )


def price_quotes(
    quotes: list[dict],
    margin_percent,
    destination_country_code: str,
    local_currency: str = "BRL",
    rates: dict | None = None,
    today: date | None = None,
) -> QuoteSheet:
    """Price every shipping-method quote and sort them cheapest first."""
    priced = [price_quote(q, margin_percent, destination_country_code, rates, today) for q in quotes]
    priced.sort(key=lambda q: q.total_cost)
    return QuoteSheet(
        quotes=priced,
        destination_country_code=destination_country_code,
        currency=local_currency,
        margin_percent=to_decimal(margin_percent),
    )


@dataclass(frozen=True)
class PriceSuggestion:
    cost_local: Decimal
    suggested_selling_price: Decimal
    profit: Decimal
    profit_margin_percent: Decimal


def suggest_price(cost: ProviderCost, margin_percent, rates: dict | None = None) -> PriceSuggestion:
    """Local cost, suggested price and resulting profit for one provider cost."""
    cost_local = convert(cost, rates)
    price = suggested_selling_price(cost_local, margin_percent)
    profit = price - cost_local
    return PriceSuggestion(
        cost_local=cost_local,
        suggested_selling_price=price,
        profit=profit,
        profit_margin_percent=profit_margin_percent(profit, price),
    )
