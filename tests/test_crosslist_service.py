# tests/test_crosslist_service.py
import asyncio

import pytest
from sqlalchemy import select

from app.core.enums import PlatformName, ListingStatus, ProductStatus
from app.core.exceptions import (
    ListingNotFoundError,
    ProductNotFoundError,
    TransientNetworkError,
    ValidationRejectedError,
)
from app.models.activity_log import ActivityLog
from app.schemas.platform.common import CrossListContext

"""
1. Cross-listing
"""

@pytest.mark.asyncio
async def test_partial_success_is_isolated(services, mock_adapters, make_product, link_platform):
    """One platform rejecting the payload does not affect the other"""
    product = await make_product(sku="SILVER-1986")
    await link_platform(PlatformName.EBAY)
    await link_platform(PlatformName.ETSY)
    mock_adapters[PlatformName.EBAY].external_ids = ["123"]
    mock_adapters[PlatformName.ETSY].create_error = ValidationRejectedError("title too long")

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY, PlatformName.ETSY])

    by_platform = {r.platform: r for r in results}
    assert by_platform[PlatformName.EBAY].success is True
    assert by_platform[PlatformName.EBAY].listing_id == "123"
    assert by_platform[PlatformName.ETSY].success is False
    assert by_platform[PlatformName.ETSY].error == "ValidationRejected"

    # Failed creates are not persisted
    listings = await services.registry.list_by_product(product.id)
    assert [(l.platform, l.external_id, l.status) for l in listings] == [
        (PlatformName.EBAY.value, "123", ListingStatus.ACTIVE.value)
    ]


@pytest.mark.asyncio
async def test_cross_list_is_idempotent(services, mock_adapters, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.EBAY)

    first = await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])
    second = await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY, PlatformName.EBAY])

    assert len(second) == 1
    assert second[0].success is True
    assert second[0].already_listed is True
    assert second[0].listing_id == first[0].listing_id
    assert mock_adapters[PlatformName.EBAY].create_calls == [product.id]


async def _eventually(check, timeout=2.0):
    """Poll an async condition until it holds"""
    async def poll():
        while not await check():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
async def test_concurrent_requests_create_one_listing(services, mock_adapters, make_product, link_platform):
    """Two overlapping requests for the same pair end with one row and no orphaned remote listing"""
    product = await make_product()
    await link_platform(PlatformName.EBAY)
    adapter = mock_adapters[PlatformName.EBAY]
    adapter.create_gate = asyncio.Event()

    requests = [
        asyncio.create_task(services.crosslist.cross_list_product(product.id, [PlatformName.EBAY]))
        for _ in range(2)
    ]

    async def both_creating():
        return len(adapter.create_calls) == 2

    # Both requests are past the registry check before either create returns
    await _eventually(both_creating)
    adapter.create_gate.set()
    first, second = await asyncio.gather(*requests)

    results = first + second
    assert all(r.success for r in results)
    listings = await services.registry.list_by_product(product.id)
    assert len(listings) == 1

    # The loser of the race ends its duplicate remote listing
    assert sum(r.already_listed for r in results) == 1
    assert len(adapter.end_calls) == 1
    assert adapter.end_calls[0] != listings[0].external_id
    assert {r.listing_id for r in results} == {listings[0].external_id}


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abandon_create(services, mock_adapters, make_product, link_platform):
    """A caller that stops waiting still gets its listing recorded"""
    product = await make_product()
    await link_platform(PlatformName.EBAY)
    adapter = mock_adapters[PlatformName.EBAY]
    adapter.create_gate = asyncio.Event()
    adapter.external_ids = ["123"]

    request = asyncio.create_task(services.crosslist.cross_list_product(product.id, [PlatformName.EBAY]))

    async def creating():
        return len(adapter.create_calls) == 1

    await _eventually(creating)
    request.cancel()
    with pytest.raises(asyncio.CancelledError):
        await request

    adapter.create_gate.set()

    async def recorded():
        listing = await services.registry.find(product.id, PlatformName.EBAY)
        return listing is not None

    await _eventually(recorded)
    listing = await services.registry.find(product.id, PlatformName.EBAY)
    assert listing.status == ListingStatus.ACTIVE.value
    assert listing.external_id == "123"
    assert adapter.end_calls == []

@pytest.mark.asyncio
async def test_not_connected_platform(services, mock_adapters, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.EBAY)

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY, PlatformName.ETSY])

    by_platform = {r.platform: r for r in results}
    assert by_platform[PlatformName.EBAY].success is True
    assert by_platform[PlatformName.ETSY].error == "NotConnected"
    assert mock_adapters[PlatformName.ETSY].create_calls == []


@pytest.mark.asyncio
async def test_revoked_platform_reports_not_connected(services, make_product, link_platform, credential_store):
    product = await make_product()
    await link_platform(PlatformName.ETSY)
    await credential_store.deactivate(PlatformName.ETSY)

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.ETSY])

    assert results[0].success is False
    assert results[0].error == "NotConnected"


@pytest.mark.asyncio
async def test_auction_platform_requires_event(services, mock_adapters, make_product, link_platform):
    """Missing auction event id fails before any remote call"""
    product = await make_product()
    await link_platform(PlatformName.AUCTIONFLEX, expires_in=None, refresh_token=None)

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.AUCTIONFLEX])
    assert results[0].error == "MissingPrerequisite"
    assert mock_adapters[PlatformName.AUCTIONFLEX].create_calls == []

    results = await services.crosslist.cross_list_product(
        product.id, [PlatformName.AUCTIONFLEX], CrossListContext(auction_event_id="EVT-1")
    )
    assert results[0].success is True
    listing = await services.registry.find(product.id, PlatformName.AUCTIONFLEX)
    assert listing.platform_data == {"event_id": "EVT-1"}


@pytest.mark.asyncio
async def test_sold_product_is_not_listed(services, mock_adapters, make_product, link_platform):
    product = await make_product(status=ProductStatus.SOLD.value)
    await link_platform(PlatformName.EBAY)

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])

    assert results[0].success is False
    assert results[0].error == "ProductSold"
    assert mock_adapters[PlatformName.EBAY].create_calls == []


@pytest.mark.asyncio
async def test_unknown_product_raises(services):
    with pytest.raises(ProductNotFoundError):
        await services.crosslist.cross_list_product(424242, [PlatformName.EBAY])


@pytest.mark.asyncio
async def test_unexpected_adapter_error_is_contained(services, mock_adapters, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.EBAY)
    await link_platform(PlatformName.ETSY)
    mock_adapters[PlatformName.EBAY].create_error = RuntimeError("boom")

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY, PlatformName.ETSY])

    by_platform = {r.platform: r for r in results}
    assert by_platform[PlatformName.EBAY].error == "UnexpectedError"
    assert by_platform[PlatformName.ETSY].success is True


@pytest.mark.asyncio
async def test_republish_after_removal_reuses_row(services, mock_adapters, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.EBAY)
    mock_adapters[PlatformName.EBAY].external_ids = ["111", "222"]

    await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])
    original = await services.registry.find(product.id, PlatformName.EBAY)
    await services.registry.mark_status(original.id, ListingStatus.REMOVED)

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])

    assert results[0].listing_id == "222"
    assert results[0].already_listed is False
    republished = await services.registry.find(product.id, PlatformName.EBAY)
    assert republished.id == original.id
    assert republished.status == ListingStatus.ACTIVE.value


@pytest.mark.asyncio
async def test_republish_from_error_ends_stale_listing(services, mock_adapters, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.ETSY)
    adapter = mock_adapters[PlatformName.ETSY]
    adapter.external_ids = ["old", "new"]

    await services.crosslist.cross_list_product(product.id, [PlatformName.ETSY])
    listing = await services.registry.find(product.id, PlatformName.ETSY)
    await services.registry.mark_status(listing.id, ListingStatus.ERROR, error="close failed")

    results = await services.crosslist.cross_list_product(product.id, [PlatformName.ETSY])

    assert results[0].listing_id == "new"
    assert adapter.end_calls == ["old"]


@pytest.mark.asyncio
async def test_cross_list_writes_activity_log(services, make_product, link_platform, session_factory):
    product = await make_product()
    await link_platform(PlatformName.EBAY)

    await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])

    async with session_factory() as session:
        entries = (await session.execute(select(ActivityLog))).scalars().all()
    assert [(e.action, e.platform) for e in entries] == [("crosslist", PlatformName.EBAY.value)]
    assert entries[0].details["success"] is True


"""
2. Removal and queries
"""

@pytest.mark.asyncio
async def test_remove_from_platform(services, mock_adapters, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.EBAY)
    mock_adapters[PlatformName.EBAY].external_ids = ["123"]
    await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])

    result = await services.crosslist.remove_from_platform(product.id, PlatformName.EBAY)

    assert result.success is True
    assert mock_adapters[PlatformName.EBAY].end_calls == ["123"]
    listing = await services.registry.find(product.id, PlatformName.EBAY)
    assert listing.status == ListingStatus.REMOVED.value

    with pytest.raises(ListingNotFoundError):
        await services.crosslist.remove_from_platform(product.id, PlatformName.EBAY)


@pytest.mark.asyncio
async def test_remove_failure_keeps_listing_active(services, mock_adapters, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.EBAY)
    await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])
    mock_adapters[PlatformName.EBAY].end_error = TransientNetworkError("503")

    result = await services.crosslist.remove_from_platform(product.id, PlatformName.EBAY)

    assert result.success is False
    assert result.error == "TransientNetworkError"
    listing = await services.registry.find(product.id, PlatformName.EBAY)
    assert listing.status == ListingStatus.ACTIVE.value
    assert listing.failure_count == 1


@pytest.mark.asyncio
async def test_get_product_listings(services, make_product, link_platform):
    product = await make_product()
    await link_platform(PlatformName.EBAY)
    await services.crosslist.cross_list_product(product.id, [PlatformName.EBAY])

    summaries = await services.crosslist.get_product_listings(product.id)

    assert len(summaries) == 1
    assert summaries[0].platform == PlatformName.EBAY
    assert summaries[0].status == ListingStatus.ACTIVE
    assert summaries[0].url.startswith("https://ebay.example/listing/")


@pytest.mark.asyncio
async def test_get_active_connections(services, link_platform, credential_store):
    await link_platform(PlatformName.EBAY, expires_in=3600)
    await link_platform(PlatformName.ETSY, expires_in=60)
    await link_platform(PlatformName.AUCTIONFLEX, expires_in=None)
    await credential_store.deactivate(PlatformName.AUCTIONFLEX)

    connections = await services.crosslist.get_active_connections()

    states = {c.platform: c.state for c in connections}
    assert states == {PlatformName.EBAY: "LINKED", PlatformName.ETSY: "EXPIRED"}
