"""
Test Configuration
==================
Pytest fixtures for Tranche Sale tests.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tranche_sale.core.pricing import initialize
from tranche_sale.core.state import SaleState
from tranche_sale.database import get_session
from tranche_sale.main import app
from tranche_sale.models.base import Base
from tranche_sale.services.settlement import (
    InMemoryLedger,
    InMemoryTokenCustodian,
    SettlementGateway,
    get_settlement_gateway,
)

# Test database URL (use SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CHARITY = "11" * 32
SALE = "22" * 32
BUYER = "33" * 32

BASE_PRICE = 3_000_000
MULTIPLIER_BPS = 11_000


@pytest.fixture
def state() -> SaleState:
    """Fresh sale with the default ladder."""
    return initialize(bytes.fromhex(CHARITY), bytes.fromhex(SALE), BASE_PRICE, MULTIPLIER_BPS)


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Ledger where the test buyer holds a large balance."""
    ledger = InMemoryLedger()
    ledger.deposit(BUYER, 10**18)
    return ledger


@pytest.fixture
def custodian() -> InMemoryTokenCustodian:
    return InMemoryTokenCustodian()


@pytest.fixture
def gateway(ledger: InMemoryLedger, custodian: InMemoryTokenCustodian) -> SettlementGateway:
    return SettlementGateway(ledger, custodian)


@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: SettlementGateway,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session and settlement overrides."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settlement_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def sale_payload() -> dict:
    """Sale creation request using the default ladder."""
    return {
        "charity_address": CHARITY,
        "sale_address": SALE,
        "base_price": BASE_PRICE,
        "multiplier_bps": MULTIPLIER_BPS,
        "mint": "test-mint",
        "vault": "test-vault",
    }
