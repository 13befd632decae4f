"""Quote provider factory.

Provides get_quote_provider() / set_quote_provider() to swap implementations.
Only the fake adapter ships here; the real provider client lives elsewhere.
"""

import os

from merch.provider.fake_adapter import FakeQuoteProvider
from merch.provider.port import QuoteProvider

_current_provider: QuoteProvider | None = None


def get_quote_provider(adapter: str | None = None) -> QuoteProvider:
    """Return the configured quote provider (singleton).

    Uses FakeQuoteProvider by default; ``adapter`` or the
    QUOTE_PROVIDER_ADAPTER environment variable selects another.
    """
    global _current_provider
    if _current_provider is None:
        adapter = adapter or os.environ.get("QUOTE_PROVIDER_ADAPTER", "fake")
        if adapter == "fake":
            _current_provider = FakeQuoteProvider()
        else:
            raise ValueError(f"Unknown quote provider adapter: {adapter}")
    return _current_provider


def set_quote_provider(provider: QuoteProvider) -> None:
    """Override the active quote provider (useful for tests)."""
    global _current_provider
    _current_provider = provider


def reset_quote_provider() -> None:
    """Reset to the default provider."""
    global _current_provider
    _current_provider = None
