"""Service test fixtures - fake ledger transport, settings and a wired Marketplace.

Invariants:
    - Every test gets a fresh FakeLedger and Marketplace
    - Retry delays are zero so resilience paths run instantly
    - The Marketplace is closed after each test
"""

import pytest

from realtoken.config import Settings
from realtoken.services.marketplace import create_marketplace

from tests.services.fake_identity import FakeIdentityProvider
from tests.services.fake_ledger import default_catalog


@pytest.fixture
def fake_ledger():
    return default_catalog()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ledger_url="http://ledger.test",
        identity_url="http://identity.test",
        read_max_retries=2,
        retry_base_delay_ms=0,
        retry_max_delay_ms=0,
        log_format="text",
        log_level="DEBUG",
    )


@pytest.fixture
async def market(settings, fake_ledger):
    """Marketplace wired to the fake ledger and its HTTP identity endpoint."""
    m = create_marketplace(settings, transport=fake_ledger.transport)
    yield m
    await m.aclose()


@pytest.fixture
async def connected(market):
    principal = await market.connect()
    assert principal == "alice-principal"
    return market


@pytest.fixture
def fake_identity():
    return FakeIdentityProvider()
