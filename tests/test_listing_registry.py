# tests/test_listing_registry.py
from decimal import Decimal

import pytest

from app.core.enums import PlatformName, ListingStatus
from app.core.exceptions import InvalidStatusTransitionError, ListingNotFoundError
from app.services.listing_registry import ListingRegistry


@pytest.fixture
def registry(session_factory):
    return ListingRegistry(session_factory)


@pytest.fixture
async def listed(registry, make_product, link_platform):
    """An ACTIVE eBay listing for a fresh product"""
    product = await make_product()
    connection = await link_platform(PlatformName.EBAY)
    listing, written = await registry.upsert(
        product_id=product.id,
        platform=PlatformName.EBAY,
        connection_id=connection.id,
        external_id="123",
        external_url="https://www.ebay.com/itm/123",
        platform_data={"offer_id": "OFF-1", "sku": product.sku},
    )
    assert written is True
    return listing


@pytest.mark.asyncio
async def test_upsert_is_idempotent_for_active_pair(registry, listed):
    """Recording a second create for an ACTIVE pair keeps the original row"""
    again, written = await registry.upsert(
        product_id=listed.product_id,
        platform=PlatformName.EBAY,
        connection_id=listed.connection_id,
        external_id="999",
    )

    assert written is False
    assert again.id == listed.id
    assert again.external_id == "123"
    assert len(await registry.list_by_product(listed.product_id)) == 1


@pytest.mark.asyncio
async def test_upsert_republishes_removed_row(registry, listed):
    await registry.mark_status(listed.id, ListingStatus.REMOVED)

    republished, written = await registry.upsert(
        product_id=listed.product_id,
        platform=PlatformName.EBAY,
        connection_id=listed.connection_id,
        external_id="456",
        external_url="https://www.ebay.com/itm/456",
    )

    assert written is True
    assert republished.id == listed.id
    assert republished.status == ListingStatus.ACTIVE.value
    assert republished.external_id == "456"
    assert republished.platform_data == {}


@pytest.mark.asyncio
async def test_sold_is_terminal(registry, listed):
    sold = await registry.mark_status(listed.id, ListingStatus.SOLD, sale_amount=Decimal("285.00"))
    assert sold.status == ListingStatus.SOLD.value
    assert sold.sale_amount == Decimal("285.00")

    with pytest.raises(InvalidStatusTransitionError):
        await registry.mark_status(listed.id, ListingStatus.ACTIVE)
    with pytest.raises(InvalidStatusTransitionError):
        await registry.mark_status(listed.id, ListingStatus.REMOVED)


@pytest.mark.asyncio
async def test_same_status_is_noop(registry, listed):
    await registry.mark_status(listed.id, ListingStatus.REMOVED)
    again = await registry.mark_status(listed.id, ListingStatus.REMOVED)
    assert again.status == ListingStatus.REMOVED.value


@pytest.mark.asyncio
async def test_error_recovers_to_active(registry, listed):
    """ERROR is transient: a successful sync moves it back and clears the failure"""
    await registry.record_failure(listed.id, "TransientNetworkError: 503")
    errored = await registry.mark_status(listed.id, ListingStatus.ERROR, error="close failed")
    assert errored.last_error == "close failed"
    assert errored.failure_count == 1

    recovered = await registry.mark_status(listed.id, ListingStatus.ACTIVE)
    assert recovered.status == ListingStatus.ACTIVE.value
    assert recovered.failure_count == 0
    assert recovered.last_error is None


@pytest.mark.asyncio
async def test_mark_status_missing_listing(registry):
    with pytest.raises(ListingNotFoundError):
        await registry.mark_status(4242, ListingStatus.REMOVED)


@pytest.mark.asyncio
async def test_lookups(registry, listed, make_product, link_platform):
    etsy = await link_platform(PlatformName.ETSY)
    other, _ = await registry.upsert(
        product_id=listed.product_id, platform=PlatformName.ETSY, connection_id=etsy.id, external_id="777"
    )

    found = await registry.find_by_external_id(PlatformName.ETSY, "777")
    assert found.id == other.id
    assert await registry.find_by_external_id(PlatformName.EBAY, "777") is None

    open_others = await registry.list_open_for_product(listed.product_id, exclude_listing_id=listed.id)
    assert [l.id for l in open_others] == [other.id]

    await registry.mark_status(other.id, ListingStatus.REMOVED)
    assert await registry.list_active_by_platform(PlatformName.ETSY) == []
    assert [l.id for l in await registry.list_active_by_platform(PlatformName.EBAY)] == [listed.id]
