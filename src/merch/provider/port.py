"""Quote provider port (abstract interface).

The fulfillment provider prices production and shipping for a set of SKUs.
Adapters return the provider's own quote shape, one dict per shipping
method, which ``merch.pricing.quote`` turns into local suggested prices.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class QuoteLine:
    """One SKU to be quoted."""

    sku: str
    copies: int = 1
    attributes: dict | None = None


class QuoteProvider(ABC):
    """Abstract quote provider interface."""

    @abstractmethod
    def get_quotes(
        self,
        lines: list[QuoteLine],
        destination_country_code: str,
        currency: str | None = None,
    ) -> list[dict]:
        """Quote ``lines`` for every shipping method the provider offers.

        Returns:
            list of dicts with keys: shipmentMethod, costSummary
            ({items, shipping} each {amount, currency}), items
            (each {id, sku, copies, unitCost}).
        """
        ...
