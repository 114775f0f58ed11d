"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import sys
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Test configuration must be in place before config is imported anywhere
os.environ["RUNTIME_ENVIRONMENT"] = "TEST"
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BASE_CURRENCY"] = "USD"
os.environ["STORE_TIMEZONE"] = "America/New_York"
os.environ["SERVED_COUNTRY"] = "US"
os.environ["NO_TAX_STATES"] = "DE,MT,NH,OR"
os.environ["FREE_SHIPPING_THRESHOLD"] = ""
os.environ["TOTAL_MISMATCH_TOLERANCE"] = "0.01"
os.environ["TAXJAR_API_KEY"] = ""
os.environ["CONCURRENCY_MAX_RETRIES"] = "3"
os.environ["CONCURRENCY_RETRY_DELAY_SECONDS"] = "0.001"

from enums.discount import DiscountSource, DiscountKind
from enums.product_type import ProductType
from models.discount_rule import DiscountRuleDTO
from models.pricing import AddressDTO
from models.product import Category, ProductDTO
from repositories.product import ProductRepository
from services.pricing import PricingEngine
from services.tax import TaxCalculator
from services.tax_provider import TaxProviderResponse

# Monday 2025-06-16, noon in New York
FIXED_NOW = datetime(2025, 6, 16, 16, 0, tzinfo=timezone.utc)
TODAY = date(2025, 6, 16)

# Catalog used across pricing tests
AIR_FILTER_ID = 1        # $40.00, category 10
WATER_FILTER_ID = 2      # $60.00, category 20
GIFT_CARD_PRODUCT_ID = 3 # $50.00, gift card
CUSTOM_FILTER_ID = 4     # $55.00, excluded from discount
POOL_FILTER_ID = 5       # $120.00, category 20
INACTIVE_PRODUCT_ID = 6  # $10.00, not for sale
FRIDGE_FILTER_ID = 7     # $55.00, category 30

AIR_CATEGORY_ID = 10
WATER_CATEGORY_ID = 20
FRIDGE_CATEGORY_ID = 30


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Create test database engine.

    File-backed SQLite in a temp dir so several sessions (and finalize's own
    transactions) see each other's commits.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pricing.db'}", echo=False)

    from db import Base
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_maker):
    """Create test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def catalog(test_session):
    """Seed and commit the product catalog."""
    test_session.add_all([
        Category(id=AIR_CATEGORY_ID, name="Air Filters"),
        Category(id=WATER_CATEGORY_ID, name="Water & Pool"),
        Category(id=FRIDGE_CATEGORY_ID, name="Refrigerator Filters"),
    ])
    await test_session.flush()

    products = [
        ProductDTO(id=AIR_FILTER_ID, name="Air Filter 20x25x1", price=Decimal("40.00"),
                   product_type=ProductType.AIR_FILTER, category_ids=[AIR_CATEGORY_ID]),
        ProductDTO(id=WATER_FILTER_ID, name="Under-Sink Water Filter", price=Decimal("60.00"),
                   product_type=ProductType.WATER_FILTER, category_ids=[WATER_CATEGORY_ID]),
        ProductDTO(id=GIFT_CARD_PRODUCT_ID, name="Gift Card $50", price=Decimal("50.00"),
                   product_type=ProductType.GIFT_CARD),
        ProductDTO(id=CUSTOM_FILTER_ID, name="Custom Size Air Filter", price=Decimal("55.00"),
                   product_type=ProductType.OTHER, excluded_from_discount=True),
        ProductDTO(id=POOL_FILTER_ID, name="Pool Filter Cartridge", price=Decimal("120.00"),
                   product_type=ProductType.POOL_FILTER, category_ids=[WATER_CATEGORY_ID]),
        ProductDTO(id=INACTIVE_PRODUCT_ID, name="Discontinued Filter", price=Decimal("10.00"),
                   is_active=False),
        ProductDTO(id=FRIDGE_FILTER_ID, name="Refrigerator Filter", price=Decimal("55.00"),
                   product_type=ProductType.REFRIGERATOR_FILTER, category_ids=[FRIDGE_CATEGORY_ID]),
    ]
    for product in products:
        await ProductRepository.create(product, test_session)
    await test_session.commit()
    return products


# ============================================================================
# Domain Fixtures
# ============================================================================

@pytest.fixture
def make_rule():
    """Build a valid DiscountRuleDTO (10% global promo) with overrides."""
    def _make(**overrides) -> DiscountRuleDTO:
        data = dict(
            code="SAVE10",
            source=DiscountSource.PROMO,
            kind=DiscountKind.PERCENTAGE,
            value=Decimal("10"),
            valid_from=date(2025, 1, 1),
            valid_to=date(2025, 12, 31),
        )
        data.update(overrides)
        return DiscountRuleDTO(**data)
    return _make


@pytest.fixture
def taxed_address():
    return AddressDTO(street="1 Main St", city="Austin", state="TX", zip="78701", country="US")


@pytest.fixture
def untaxed_address():
    return AddressDTO(street="10 Pine Rd", city="Portland", state="OR", zip="97201", country="US")


@pytest.fixture
def tax_provider():
    """Provider double charging 8.25% on amount plus shipping."""
    provider = AsyncMock()
    provider.name = "mock"

    async def tax_for_order(address, amount, shipping):
        rate = Decimal("0.0825")
        return TaxProviderResponse(
            rate=rate,
            amount_to_collect=((amount + shipping) * rate).quantize(Decimal("0.01")),
            taxable_amount=amount + shipping,
            shipping_taxable=True,
            has_nexus=True
        )

    provider.tax_for_order.side_effect = tax_for_order
    return provider


@pytest.fixture
def tax_calculator(tax_provider):
    return TaxCalculator(provider=tax_provider)


@pytest.fixture
def pricing_engine(tax_calculator):
    return PricingEngine(tax_calculator=tax_calculator, clock=lambda: FIXED_NOW)
