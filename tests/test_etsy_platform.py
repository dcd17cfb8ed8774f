# tests/test_etsy_platform.py
from decimal import Decimal

import pytest

from app.core.enums import PlatformName, RemoteListingStatus
from app.core.exceptions import MissingPrerequisiteError, ValidationRejectedError
from app.integrations.platforms.etsy import EtsyPlatform, when_made_for_year
from app.schemas.platform.common import CrossListContext
from app.schemas.product import ProductSnapshot
from tests.mocks.http_responses import mock_response, mock_token_manager

BASE = "https://openapi.etsy.com/v3/application"


@pytest.fixture
def etsy(settings):
    token_manager = mock_token_manager(PlatformName.ETSY, store_id="SHOP-1")
    return EtsyPlatform(token_manager, settings, retry_attempts=2, retry_backoff=0)


@pytest.fixture
def snapshot():
    return ProductSnapshot(
        id=1,
        sku="ASE-1986",
        title="1986 American Silver Eagle PCGS MS69",
        price=Decimal("285.00"),
        metal_type="SILVER",
        year=1986,
        mint="Philadelphia",
        grade="MS69",
        certification="PCGS",
        image_urls=["https://cdn.example/front.jpg"],
    )


@pytest.fixture
def http(mocker):
    mock_client = mocker.patch("httpx.AsyncClient")
    return mock_client.return_value.__aenter__.return_value


def _calls(http):
    return [(c.kwargs["method"], c.kwargs["url"]) for c in http.request.call_args_list]


def test_when_made_for_year():
    assert when_made_for_year(2023) == "2020_2024"
    assert when_made_for_year(1986) == "1980s"
    assert when_made_for_year(1904) == "1900s"
    assert when_made_for_year(1881) == "before_1900"
    assert when_made_for_year(None) == "2020_2024"


def test_map_attributes(etsy, snapshot):
    attributes = etsy.map_attributes(snapshot)

    assert attributes["taxonomy_id"] == 1030
    assert attributes["when_made"] == "1980s"
    assert attributes["who_made"] == "someone_else"
    assert attributes["tags"] == ["1986", "Philadelphia", "MS69", "PCGS", "silver"]
    assert attributes["materials"] == ["silver"]


def test_build_listing(etsy, snapshot):
    listing = etsy.build_listing(snapshot.model_copy(update={"title": "Y" * 200}), shipping_profile_id=5)

    assert len(listing["title"]) == 140
    assert listing["price"] == 285.0
    assert listing["shipping_profile_id"] == 5
    assert listing["skus"] == ["ASE-1986"]


@pytest.mark.asyncio
async def test_create_listing(etsy, snapshot, http):
    """Draft, image upload, then activation"""
    http.get.return_value = mock_response(200, content=b"jpeg-bytes")
    http.request.side_effect = [
        mock_response(201, {"listing_id": 456, "state": "draft"}),
        mock_response(201, {"listing_image_id": 1}),
        mock_response(200, {"listing_id": 456, "state": "active"}),
    ]

    ref = await etsy.create_listing(snapshot, CrossListContext())

    assert ref.external_id == "456"
    assert ref.external_url == "https://www.etsy.com/listing/456"
    assert ref.platform_data == {"shop_id": "SHOP-1"}
    assert _calls(http) == [
        ("POST", f"{BASE}/shops/SHOP-1/listings"),
        ("POST", f"{BASE}/shops/SHOP-1/listings/456/images"),
        ("PATCH", f"{BASE}/shops/SHOP-1/listings/456"),
    ]
    upload = http.request.call_args_list[1].kwargs
    assert upload["files"] == {"image": ("front.jpg", b"jpeg-bytes")}
    assert upload["data"] == {"rank": "1"}
    assert http.request.call_args_list[2].kwargs["json"] == {"state": "active"}
    assert http.request.call_args_list[0].kwargs["headers"]["x-api-key"] == "etsy-key"


@pytest.mark.asyncio
async def test_image_failure_does_not_block_publish(etsy, snapshot, http):
    http.get.return_value = mock_response(404)
    http.request.side_effect = [
        mock_response(201, {"listing_id": 456}),
        mock_response(200, {"listing_id": 456, "state": "active"}),
    ]

    ref = await etsy.create_listing(snapshot, CrossListContext())

    assert ref.external_id == "456"
    assert http.request.call_count == 2


@pytest.mark.asyncio
async def test_activation_failure_deletes_draft(etsy, snapshot, http):
    http.get.return_value = mock_response(200, content=b"jpeg-bytes")
    http.request.side_effect = [
        mock_response(201, {"listing_id": 456}),
        mock_response(201, {"listing_image_id": 1}),
        mock_response(400, {"error": "Listing must have a shipping profile"}),
        mock_response(204),
    ]

    with pytest.raises(ValidationRejectedError):
        await etsy.create_listing(snapshot, CrossListContext())

    assert _calls(http)[-1] == ("DELETE", f"{BASE}/listings/456")


@pytest.mark.asyncio
async def test_missing_shop_id(settings, snapshot, http):
    etsy = EtsyPlatform(mock_token_manager(PlatformName.ETSY, store_id=None), settings)

    with pytest.raises(MissingPrerequisiteError):
        await etsy.create_listing(snapshot, CrossListContext())
    http.request.assert_not_called()


@pytest.mark.asyncio
async def test_shipping_profile_looked_up_when_not_configured(settings, snapshot, http):
    settings.ETSY_SHIPPING_PROFILE_ID = None
    etsy = EtsyPlatform(mock_token_manager(PlatformName.ETSY, store_id="SHOP-1"), settings)
    http.request.side_effect = [
        mock_response(200, {"results": []}),
    ]

    with pytest.raises(MissingPrerequisiteError):
        await etsy.create_listing(snapshot, CrossListContext())
    assert _calls(http) == [("GET", f"{BASE}/shops/SHOP-1/shipping-profiles")]


@pytest.mark.asyncio
async def test_fetch_status(etsy, http):
    http.request.side_effect = [
        mock_response(200, {"listing_id": 456, "state": "active"}),
        mock_response(200, {"listing_id": 456, "state": "sold_out", "price": {"amount": 28500, "divisor": 100}}),
        mock_response(200, {"listing_id": 456, "state": "expired"}),
        mock_response(404, {"error": "not found"}),
    ]

    assert (await etsy.fetch_status("456")).status == RemoteListingStatus.ACTIVE
    sold = await etsy.fetch_status("456")
    assert sold.status == RemoteListingStatus.SOLD
    assert sold.sale_amount == Decimal("285")
    assert (await etsy.fetch_status("456")).status == RemoteListingStatus.ENDED
    assert (await etsy.fetch_status("456")).status == RemoteListingStatus.ENDED


@pytest.mark.asyncio
async def test_end_listing(etsy, http):
    http.request.side_effect = [mock_response(204), mock_response(404, {"error": "gone"})]

    assert await etsy.end_listing("456") is True
    assert await etsy.end_listing("456") is False
