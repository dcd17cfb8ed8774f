# tests/conftest.py
import os

# app.database builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_listing_sync.db")

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import Settings
from app.core.enums import PlatformName, ProductStatus
from app.database import Base
from app.integrations.setup import setup_services
from app.models.product import Product, ProductImage, Auction
from app.services.credential_store import CredentialStore
from app.core.utils import utc_now, expiry_from_seconds
from tests.mocks.mock_platform import MockAdapter

from app import models  # noqa: F401


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        WEBHOOK_SECRET="test_secret",
        EBAY_CLIENT_ID="ebay-client",
        EBAY_CLIENT_SECRET="ebay-secret",
        EBAY_RU_NAME="Test-RuName",
        EBAY_FULFILLMENT_POLICY_ID="fp-1",
        EBAY_PAYMENT_POLICY_ID="pp-1",
        EBAY_RETURN_POLICY_ID="rp-1",
        ETSY_API_KEY="etsy-key",
        ETSY_REDIRECT_URI="https://example.com/etsy/callback",
        ETSY_SHIPPING_PROFILE_ID=5,
        AUCTIONFLEX_API_KEY="af-key",
        AUCTIONFLEX_COMPANY_ID="COMPANY-1",
        AUCTIONFLEX_API_URL="https://api.auctionflex.test",
        PUBLISH_RETRY_ATTEMPTS=2,
        PUBLISH_RETRY_BACKOFF_SECONDS=0,
    )


@pytest.fixture
async def test_engine(tmp_path):
    """File-backed SQLite engine, tables created fresh for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'listing_sync.db'}")

    # Take the write lock at BEGIN so concurrent sessions queue instead of failing
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_product(session_factory):
    """Insert a product (plus optional images / auction) and return it."""
    async def _make(images=None, auction=None, **overrides):
        values = {
            "sku": f"ASE-{uuid4().hex[:8].upper()}",
            "title": "1986 American Silver Eagle PCGS MS69",
            "description": "First year of issue Silver Eagle.",
            "condition": "Used",
            "price": Decimal("285.00"),
            "quantity": 1,
            "metal_type": "SILVER",
            "metal_weight": Decimal("1.0000"),
            "metal_purity": Decimal("0.9990"),
            "year": 1986,
            "mint": "Philadelphia",
            "grade": "MS69",
            "certification": "PCGS",
            "cert_number": "12345678",
            "status": ProductStatus.ACTIVE.value,
        }
        values.update(overrides)
        async with session_factory() as session:
            product = Product(**values)
            for position, url in enumerate(images or []):
                product.images.append(ProductImage(url=url, position=position, is_primary=position == 0))
            if auction:
                product.auction = Auction(**auction)
            session.add(product)
            await session.commit()
            await session.refresh(product)
            return product
    return _make


@pytest.fixture
def credential_store(session_factory):
    return CredentialStore(session_factory)


@pytest.fixture
def link_platform(credential_store):
    """Store an active, unexpired credential for a platform."""
    async def _link(platform: PlatformName, expires_in=3600, refresh_token="refresh-token", store_id="STORE-1"):
        return await credential_store.upsert(
            platform,
            access_token=f"{platform.slug}-access",
            refresh_token=refresh_token,
            expires_at=expiry_from_seconds(expires_in, utc_now()) if expires_in is not None else None,
            store_id=store_id,
        )
    return _link


@pytest.fixture
def mock_adapters():
    return {
        PlatformName.EBAY: MockAdapter(PlatformName.EBAY),
        PlatformName.ETSY: MockAdapter(PlatformName.ETSY),
        PlatformName.AUCTIONFLEX: MockAdapter(PlatformName.AUCTIONFLEX, requires_event=True),
    }


@pytest.fixture
def services(session_factory, settings, mock_adapters):
    """Full service graph over the test database with mocked marketplaces."""
    return setup_services(session_factory, settings, adapters=mock_adapters, auth_managers={})
