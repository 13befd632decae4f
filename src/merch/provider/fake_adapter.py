"""Configurable fake quote provider for development and testing.

Prices come from a small built-in SKU table in GBP, the provider's billing
currency. Unknown SKUs get a flat unit cost so quotes never fail unless the
fake is told to.
"""

from decimal import Decimal
from uuid import uuid4

from merch.errors import ProviderUnavailable
from merch.provider.port import QuoteLine, QuoteProvider

DEFAULT_UNIT_COST = Decimal("15.00")

UNIT_COSTS = {
    "GLOBAL-CAN-10X10": Decimal("14.50"),
    "GLOBAL-CAN-16X20": Decimal("22.00"),
    "GLOBAL-FAP-A4": Decimal("6.80"),
    "GLOBAL-POST-A3": Decimal("4.20"),
    "GLOBAL-MUG-11OZ": Decimal("5.90"),
}

# Shipping per order, then per extra copy
SHIPPING_COSTS = {
    "Budget": (Decimal("4.95"), Decimal("0.50")),
    "Standard": (Decimal("7.95"), Decimal("1.00")),
    "Express": (Decimal("14.95"), Decimal("2.00")),
    "Overnight": (Decimal("24.95"), Decimal("3.00")),
}


class FakeQuoteProvider(QuoteProvider):
    """Fake provider that quotes every shipping method by default."""

    def __init__(self, currency: str = "GBP") -> None:
        self.currency = currency
        self.should_succeed: bool = True
        self.failure_reason: str = "Provider unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Provider unavailable") -> None:
        """Configure provider behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def get_quotes(
        self,
        lines: list[QuoteLine],
        destination_country_code: str,
        currency: str | None = None,
    ) -> list[dict]:
        self.calls.append(
            {
                "method": "get_quotes",
                "skus": [line.sku for line in lines],
                "destination_country_code": destination_country_code,
            }
        )
        if not self.should_succeed:
            raise ProviderUnavailable({"provider": [self.failure_reason]})

        currency = currency or self.currency
        priced_items = []
        items_total = Decimal("0")
        copies_total = 0
        for line in lines:
            unit_cost = UNIT_COSTS.get(line.sku, DEFAULT_UNIT_COST)
            items_total += unit_cost * line.copies
            copies_total += line.copies
            priced_items.append(
                {
                    "id": f"itm_{uuid4().hex[:10]}",
                    "sku": line.sku,
                    "copies": line.copies,
                    "unitCost": {"amount": str(unit_cost), "currency": currency},
                    "attributes": line.attributes or {},
                }
            )

        quotes = []
        for method, (base, per_copy) in SHIPPING_COSTS.items():
            shipping = base + per_copy * max(copies_total - 1, 0)
            quotes.append(
                {
                    "shipmentMethod": method,
                    "costSummary": {
                        "items": {"amount": str(items_total), "currency": currency},
                        "shipping": {"amount": str(shipping), "currency": currency},
                    },
                    "items": priced_items,
                }
            )
        return quotes
