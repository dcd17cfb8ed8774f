# tests/test_ebay_platform.py
from decimal import Decimal

import pytest

from app.core.enums import PlatformName, ListingType, RemoteListingStatus
from app.core.exceptions import TransientNetworkError, ValidationRejectedError
from app.integrations.platforms.ebay import EbayPlatform, map_condition
from app.schemas.platform.common import CrossListContext
from app.schemas.product import ProductSnapshot, AuctionTerms
from tests.mocks.http_responses import mock_response, mock_text_response, mock_token_manager


@pytest.fixture
def ebay(settings):
    return EbayPlatform(mock_token_manager(PlatformName.EBAY), settings, retry_attempts=2, retry_backoff=0)


@pytest.fixture
def snapshot():
    return ProductSnapshot(
        id=1,
        sku="ASE-1986",
        title="1986 American Silver Eagle PCGS MS69",
        description="First year of issue.",
        condition="Used",
        price=Decimal("285.00"),
        metal_type="SILVER",
        metal_weight=Decimal("1.0000"),
        metal_purity=Decimal("0.999"),
        year=1986,
        mint="Philadelphia",
        grade="MS69",
        certification="PCGS",
        cert_number="12345678",
        image_urls=["https://cdn.example/front.jpg"],
    )


@pytest.fixture
def http(mocker):
    """The AsyncClient instance used inside ``async with httpx.AsyncClient()``"""
    mock_client = mocker.patch("httpx.AsyncClient")
    return mock_client.return_value.__aenter__.return_value


def _calls(http):
    return [(c.kwargs["method"], c.kwargs["url"]) for c in http.request.call_args_list]


"""
1. Mapping
"""

def test_map_attributes(ebay, snapshot):
    aspects = ebay.map_attributes(snapshot)

    assert aspects["Year"] == ["1986"]
    assert aspects["Grade"] == ["MS69"]
    assert aspects["Certification"] == ["PCGS"]
    assert aspects["Composition"] == ["Silver"]
    assert aspects["Precious Metal Content"] == ["1 oz"]
    assert aspects["Fineness"] == ["0.999"]


def test_map_attributes_omits_absent_fields(ebay):
    bare = ProductSnapshot(id=2, sku="BARE", title="Mystery coin")
    assert ebay.map_attributes(bare) == {}


def test_map_condition():
    assert map_condition("New") == "NEW"
    assert map_condition("something odd") == "USED_EXCELLENT"
    assert map_condition(None) == "USED_EXCELLENT"


def test_build_offer_fixed_price(ebay, snapshot):
    offer = ebay.build_offer(snapshot)

    assert offer["format"] == "FIXED_PRICE"
    assert offer["pricingSummary"]["price"] == {"value": "285", "currency": "USD"}
    # Graded coins go in the coin category, not bullion
    assert offer["categoryId"] == "11116"
    assert offer["listingPolicies"]["fulfillmentPolicyId"] == "fp-1"


def test_build_offer_auction(ebay, snapshot):
    auction = snapshot.model_copy(update={
        "listing_type": ListingType.AUCTION,
        "auction": AuctionTerms(start_price=Decimal("99.99"), reserve_price=Decimal("250.00")),
    })

    offer = ebay.build_offer(auction)

    assert offer["format"] == "AUCTION"
    assert offer["listingDuration"] == "DAYS_7"
    assert offer["pricingSummary"]["auctionStartPrice"]["value"] == "99.99"
    assert offer["pricingSummary"]["auctionReservePrice"]["value"] == "250"


def test_inventory_item_title_is_truncated(ebay, snapshot):
    long_title = snapshot.model_copy(update={"title": "X" * 120})
    assert len(ebay.build_inventory_item(long_title)["product"]["title"]) == 80


"""
2. Publish sequence
"""

@pytest.mark.asyncio
async def test_create_listing(ebay, snapshot, http):
    http.request.side_effect = [
        mock_response(204),
        mock_response(201, {"offerId": "OFF-1"}),
        mock_response(200, {"listingId": "123"}),
    ]

    ref = await ebay.create_listing(snapshot, CrossListContext())

    assert ref.external_id == "123"
    assert ref.external_url == "https://www.ebay.com/itm/123"
    assert ref.platform_data == {"offer_id": "OFF-1", "sku": "ASE-1986"}
    assert _calls(http) == [
        ("PUT", "https://api.ebay.com/sell/inventory/v1/inventory_item/ASE-1986"),
        ("POST", "https://api.ebay.com/sell/inventory/v1/offer"),
        ("POST", "https://api.ebay.com/sell/inventory/v1/offer/OFF-1/publish"),
    ]
    headers = http.request.call_args_list[0].kwargs["headers"]
    assert headers["Authorization"] == "Bearer test-token"
    assert headers["X-EBAY-C-MARKETPLACE-ID"] == "EBAY_US"


@pytest.mark.asyncio
async def test_create_listing_reuses_existing_offer(ebay, snapshot, http):
    """An offer left over from an earlier attempt is published instead of failing"""
    http.request.side_effect = [
        mock_response(204),
        mock_response(400, {"errors": [{"errorId": 25002, "parameters": [{"name": "offerId", "value": "OFF-OLD"}]}]}),
        mock_response(200, {"listingId": "124"}),
    ]

    ref = await ebay.create_listing(snapshot, CrossListContext())

    assert ref.external_id == "124"
    assert ref.platform_data["offer_id"] == "OFF-OLD"


@pytest.mark.asyncio
async def test_publish_rejection_discards_offer(ebay, snapshot, http):
    http.request.side_effect = [
        mock_response(204),
        mock_response(201, {"offerId": "OFF-1"}),
        mock_response(400, {"errors": [{"errorId": 25007, "message": "Invalid fulfillment policy"}]}),
        mock_response(204),
    ]

    with pytest.raises(ValidationRejectedError):
        await ebay.create_listing(snapshot, CrossListContext())

    assert _calls(http)[-1] == ("DELETE", "https://api.ebay.com/sell/inventory/v1/offer/OFF-1")


@pytest.mark.asyncio
async def test_transient_publish_failure_is_retried(ebay, snapshot, http):
    http.request.side_effect = [
        mock_response(204),
        mock_response(201, {"offerId": "OFF-1"}),
        mock_response(503, {"errors": []}),
        mock_response(200, {"listingId": "125"}),
    ]

    ref = await ebay.create_listing(snapshot, CrossListContext())

    assert ref.external_id == "125"
    assert http.request.call_count == 4


@pytest.mark.asyncio
async def test_publish_without_listing_id_is_rejected(ebay, snapshot, http):
    http.request.side_effect = [
        mock_response(204),
        mock_response(201, {"offerId": "OFF-1"}),
        mock_response(200, {"warnings": []}),
    ]

    with pytest.raises(ValidationRejectedError):
        await ebay.create_listing(snapshot, CrossListContext())


"""
3. End and status
"""

@pytest.mark.asyncio
async def test_end_listing_withdraws_offer(ebay, http):
    http.request.return_value = mock_response(200, {"listingId": "123"})

    assert await ebay.end_listing("123", {"offer_id": "OFF-1", "sku": "ASE-1986"}) is True
    assert _calls(http) == [("POST", "https://api.ebay.com/sell/inventory/v1/offer/OFF-1/withdraw")]


@pytest.mark.asyncio
async def test_end_listing_already_gone(ebay, http):
    http.request.return_value = mock_response(404, {"errors": [{"errorId": 25713}]})

    assert await ebay.end_listing("123", {"offer_id": "OFF-1"}) is False


@pytest.mark.asyncio
async def test_end_listing_resolves_offer_by_sku(ebay, http):
    http.request.side_effect = [
        mock_response(200, {"offers": [{"offerId": "OFF-9", "listing": {"listingId": "123"}}]}),
        mock_response(200, {}),
    ]

    assert await ebay.end_listing("123", {"sku": "ASE-1986"}) is True
    assert http.request.call_args_list[0].kwargs["params"] == {"sku": "ASE-1986"}
    assert _calls(http)[1] == ("POST", "https://api.ebay.com/sell/inventory/v1/offer/OFF-9/withdraw")


@pytest.mark.asyncio
async def test_fetch_status_sold(ebay, http):
    http.request.return_value = mock_response(200, {
        "offerId": "OFF-1",
        "status": "PUBLISHED",
        "pricingSummary": {"price": {"value": "285.00", "currency": "USD"}},
        "listing": {"listingId": "123", "listingStatus": "ENDED", "soldQuantity": 1},
    })

    status = await ebay.fetch_status("123", {"offer_id": "OFF-1"})

    assert status.status == RemoteListingStatus.SOLD
    assert status.sale_amount == Decimal("285.00")


@pytest.mark.asyncio
async def test_fetch_status_active_and_ended(ebay, http):
    http.request.side_effect = [
        mock_response(200, {"status": "PUBLISHED", "listing": {"listingId": "123", "listingStatus": "ACTIVE"}}),
        mock_response(200, {"status": "UNPUBLISHED", "listing": {}}),
        mock_response(404, {"errors": []}),
    ]

    assert (await ebay.fetch_status("123", {"offer_id": "OFF-1"})).status == RemoteListingStatus.ACTIVE
    assert (await ebay.fetch_status("123", {"offer_id": "OFF-1"})).status == RemoteListingStatus.ENDED
    assert (await ebay.fetch_status("123", {"offer_id": "OFF-1"})).status == RemoteListingStatus.ENDED


@pytest.mark.asyncio
async def test_fetch_status_unreadable_body_is_transient(ebay, http):
    """A 200 maintenance page instead of an offer is retried on the next sync"""
    http.request.return_value = mock_text_response(200, "<html>maintenance</html>")

    with pytest.raises(TransientNetworkError):
        await ebay.fetch_status("123", {"offer_id": "OFF-1"})
