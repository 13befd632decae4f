import pytest
from protean.integrations.pytest import DomainFixture

from merch.config import Settings
from merch.provider import reset_quote_provider
from merch.provider.fake_adapter import FakeQuoteProvider
from merch.services import build_services


@pytest.fixture(scope="session")
def merch_bed():
    from merch.domain import merch

    bed = DomainFixture(merch)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(merch_bed):
    with merch_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()

    reset_quote_provider()


@pytest.fixture()
def settings():
    return Settings(lock_timeout=2.0)


@pytest.fixture()
def quote_provider():
    return FakeQuoteProvider()


@pytest.fixture()
def services(settings, quote_provider):
    """Locks, ledger and reconciler wired the way the app wires them."""
    return build_services(settings, quote_provider=quote_provider)
