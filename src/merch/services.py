"""Long-lived collaborators built once per process.

The lock registries, ledger, reconciler and quote provider are constructed
here and handed to whoever needs them, so every request in a process shares
the same locks.
"""

from dataclasses import dataclass

from merch.config import Settings
from merch.earnings.ledger import EarningsLedger
from merch.locking import KeyedLocks
from merch.provider import get_quote_provider
from merch.provider.port import QuoteProvider
from merch.reconciliation.reconciler import FulfillmentReconciler


@dataclass
class Services:
    settings: Settings
    order_locks: KeyedLocks
    creator_locks: KeyedLocks
    ledger: EarningsLedger
    reconciler: FulfillmentReconciler
    quote_provider: QuoteProvider


def build_services(settings: Settings | None = None, quote_provider: QuoteProvider | None = None) -> Services:
    settings = settings or Settings.from_env()
    order_locks = KeyedLocks("order", timeout=settings.lock_timeout)
    creator_locks = KeyedLocks("creator_earnings", timeout=settings.lock_timeout)
    ledger = EarningsLedger(creator_locks, settings)
    return Services(
        settings=settings,
        order_locks=order_locks,
        creator_locks=creator_locks,
        ledger=ledger,
        reconciler=FulfillmentReconciler(ledger, order_locks, settings),
        quote_provider=quote_provider or get_quote_provider(settings.quote_provider_adapter),
    )
