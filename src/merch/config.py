"""Runtime settings for the Merch domain.

Values come from environment variables so the same build runs in test,
staging and production. ``Settings.from_env()`` is called once at process
start and the resulting object is handed to the services that need it.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal

# Provider currency -> local currency
DEFAULT_EXCHANGE_RATES = {
    "GBP": Decimal("6.30"),
    "USD": Decimal("5.00"),
    "EUR": Decimal("5.50"),
    "BRL": Decimal("1.00"),
}


@dataclass(frozen=True)
class Settings:
    min_payout_amount: Decimal = Decimal("50")
    default_commission_rate: float = 70.0
    default_margin: float = 45.0
    local_currency: str = "BRL"
    lock_timeout: float = 5.0
    lock_retries: int = 3
    quote_provider_adapter: str = "fake"
    exchange_rates: dict = field(default_factory=lambda: dict(DEFAULT_EXCHANGE_RATES))

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            min_payout_amount=Decimal(env.get("MERCH_MIN_PAYOUT_AMOUNT", "50")),
            default_commission_rate=float(env.get("MERCH_DEFAULT_COMMISSION_RATE", "70")),
            default_margin=float(env.get("MERCH_DEFAULT_MARGIN", "45")),
            local_currency=env.get("MERCH_LOCAL_CURRENCY", "BRL"),
            lock_timeout=float(env.get("MERCH_LOCK_TIMEOUT", "5")),
            lock_retries=int(env.get("MERCH_LOCK_RETRIES", "3")),
            quote_provider_adapter=env.get("QUOTE_PROVIDER_ADAPTER", "fake"),
        )
