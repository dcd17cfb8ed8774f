"""
eBay adapter built on the Sell Inventory API.

Publishing is three calls: PUT inventory_item/{sku} -> POST offer -> POST
offer/{id}/publish. The listing id returned by publish is the external id;
the offer id and sku are kept in platform_data because ending and status
checks go through the offer.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.core.config import Settings
from app.core.enums import PlatformName, ListingType, RemoteListingStatus
from app.core.exceptions import (
    ListingNotFoundError,
    PlatformServiceError,
    TransientNetworkError,
    ValidationRejectedError,
)
from app.core.utils import to_decimal
from app.integrations.base import PlatformAdapter
from app.schemas.platform.common import CrossListContext, ExternalListingRef, RemoteStatus
from app.schemas.product import ProductSnapshot
from app.services.ebay.client import EbayClient

logger = logging.getLogger(__name__)

TITLE_LIMIT = 80
OFFER_EXISTS_ERROR_ID = 25002

CONDITION_MAP = {
    "new": "NEW",
    "like new": "LIKE_NEW",
    "very good": "VERY_GOOD",
    "good": "GOOD",
    "acceptable": "ACCEPTABLE",
    "used": "USED_EXCELLENT",
}
DEFAULT_CONDITION = "USED_EXCELLENT"


def map_condition(condition: Optional[str]) -> str:
    return CONDITION_MAP.get((condition or "").strip().lower(), DEFAULT_CONDITION)


def _format_decimal(value: Decimal) -> str:
    return format(value.normalize(), "f") if isinstance(value, Decimal) else str(value)


class EbayPlatform(PlatformAdapter):

    platform = PlatformName.EBAY

    def __init__(self, token_manager, settings: Settings, **kwargs):
        super().__init__(token_manager, **kwargs)
        self.settings = settings

    def _client(self, access_token: str) -> EbayClient:
        return EbayClient(
            access_token,
            sandbox=self.settings.EBAY_SANDBOX_MODE,
            content_language=self.settings.EBAY_CONTENT_LANGUAGE,
            marketplace_id=self.settings.EBAY_MARKETPLACE_ID,
            timeout=self.timeout,
        )

    def listing_url(self, listing_id: str) -> str:
        host = "sandbox.ebay.com" if self.settings.EBAY_SANDBOX_MODE else "www.ebay.com"
        return f"https://{host}/itm/{listing_id}"

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def map_attributes(self, product: ProductSnapshot) -> Dict[str, List[str]]:
        aspects: Dict[str, List[str]] = {}
        if product.year:
            aspects["Year"] = [str(product.year)]
        if product.mint:
            aspects["Mint Location"] = [product.mint]
        if product.grade:
            aspects["Grade"] = [product.grade]
        if product.certification:
            aspects["Certification"] = [product.certification]
        if product.cert_number:
            aspects["Certification Number"] = [product.cert_number]
        if product.metal_type:
            aspects["Composition"] = [product.metal_type.title()]
        if product.metal_weight:
            aspects["Precious Metal Content"] = [f"{_format_decimal(product.metal_weight)} oz"]
        if product.metal_purity:
            aspects["Fineness"] = [_format_decimal(product.metal_purity)]
        return aspects

    def category_id(self, product: ProductSnapshot) -> str:
        is_bullion = product.metal_type and not (product.grade or product.certification)
        return self.settings.EBAY_BULLION_CATEGORY_ID if is_bullion else self.settings.EBAY_COIN_CATEGORY_ID

    def build_inventory_item(self, product: ProductSnapshot) -> Dict[str, Any]:
        item_product = {
            "title": product.title[:TITLE_LIMIT],
            "description": product.description or product.short_description or product.title,
            "aspects": self.map_attributes(product),
        }
        if product.image_urls:
            item_product["imageUrls"] = product.image_urls
        return {
            "availability": {"shipToLocationAvailability": {"quantity": product.quantity}},
            "condition": map_condition(product.condition),
            "product": item_product,
        }

    def build_offer(self, product: ProductSnapshot) -> Dict[str, Any]:
        currency = self.settings.EBAY_CURRENCY
        offer: Dict[str, Any] = {
            "sku": product.sku,
            "marketplaceId": self.settings.EBAY_MARKETPLACE_ID,
            "availableQuantity": product.quantity,
            "categoryId": self.category_id(product),
            "listingDescription": product.description or product.title,
            "listingPolicies": {
                "fulfillmentPolicyId": self.settings.EBAY_FULFILLMENT_POLICY_ID,
                "paymentPolicyId": self.settings.EBAY_PAYMENT_POLICY_ID,
                "returnPolicyId": self.settings.EBAY_RETURN_POLICY_ID,
            },
        }
        if self.settings.EBAY_MERCHANT_LOCATION_KEY:
            offer["merchantLocationKey"] = self.settings.EBAY_MERCHANT_LOCATION_KEY

        if product.listing_type == ListingType.AUCTION:
            auction = product.auction
            start_price = (auction.start_price if auction else None) or product.effective_price
            pricing = {"auctionStartPrice": {"value": _format_decimal(start_price), "currency": currency}}
            if auction and auction.reserve_price:
                pricing["auctionReservePrice"] = {"value": _format_decimal(auction.reserve_price), "currency": currency}
            offer["format"] = "AUCTION"
            offer["listingDuration"] = "DAYS_7"
            offer["pricingSummary"] = pricing
        else:
            offer["format"] = "FIXED_PRICE"
            offer["listingDuration"] = "GTC"
            offer["pricingSummary"] = {
                "price": {"value": _format_decimal(product.effective_price), "currency": currency}
            }
        return offer

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_listing(self, product: ProductSnapshot, context: CrossListContext) -> ExternalListingRef:
        credentials = await self._credentials()
        client = self._client(credentials.access_token)
        sku = product.sku

        await self._with_retries(
            lambda: client.create_or_update_inventory_item(sku, self.build_inventory_item(product)),
            "inventory item",
        )
        offer_id = await self._create_or_reuse_offer(client, product)

        try:
            published = await self._with_retries(lambda: client.publish_offer(offer_id), "publish offer")
        except PlatformServiceError:
            await self._discard_offer(client, offer_id)
            raise

        listing_id = published.get("listingId") if isinstance(published, dict) else None
        if not listing_id:
            raise ValidationRejectedError(f"eBay published offer {offer_id} for sku {sku} without a listing id")
        listing_id = str(listing_id)
        logger.info(f"Published eBay listing {listing_id} for sku {sku} (offer {offer_id})")
        return ExternalListingRef(
            external_id=listing_id,
            external_url=self.listing_url(listing_id),
            platform_data={"offer_id": offer_id, "sku": sku},
        )

    async def _create_or_reuse_offer(self, client: EbayClient, product: ProductSnapshot) -> str:
        try:
            response = await self._with_retries(lambda: client.create_offer(self.build_offer(product)), "create offer")
            return str(response["offerId"])
        except ValidationRejectedError as e:
            existing = self._existing_offer_id(e.payload)
            if existing is None:
                raise
            # An unpublished offer left behind by an earlier failed attempt
            logger.info(f"Reusing existing eBay offer {existing} for sku {product.sku}")
            return existing

    @staticmethod
    def _existing_offer_id(payload: Any) -> Optional[str]:
        if not isinstance(payload, dict):
            return None
        for error in payload.get("errors", []):
            if error.get("errorId") != OFFER_EXISTS_ERROR_ID:
                continue
            for param in error.get("parameters", []):
                if param.get("name") == "offerId":
                    return str(param.get("value"))
        return None

    async def _discard_offer(self, client: EbayClient, offer_id: str) -> None:
        try:
            await client.delete_offer(offer_id)
            logger.info(f"Deleted unpublished eBay offer {offer_id} after failed publish")
        except PlatformServiceError as e:
            logger.warning(f"Could not delete unpublished eBay offer {offer_id}: {str(e)}")

    async def _resolve_offer_id(self, client: EbayClient, external_id: str, platform_data: Optional[Dict[str, Any]]) -> str:
        platform_data = platform_data or {}
        if platform_data.get("offer_id"):
            return str(platform_data["offer_id"])
        sku = platform_data.get("sku")
        if sku:
            offers = await client.get_offers(sku)
            for offer in offers.get("offers", []):
                if str(offer.get("listing", {}).get("listingId")) == str(external_id):
                    return str(offer["offerId"])
        raise ListingNotFoundError(f"No eBay offer recorded for listing {external_id}")

    async def end_listing(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> bool:
        credentials = await self._credentials()
        client = self._client(credentials.access_token)
        try:
            offer_id = await self._resolve_offer_id(client, external_id, platform_data)
            await client.withdraw_offer(offer_id)
        except ListingNotFoundError:
            logger.info(f"eBay listing {external_id} already gone")
            return False
        logger.info(f"Ended eBay listing {external_id}")
        return True

    async def fetch_status(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> RemoteStatus:
        credentials = await self._credentials()
        client = self._client(credentials.access_token)
        try:
            offer_id = await self._resolve_offer_id(client, external_id, platform_data)
            offer = await client.get_offer(offer_id)
        except ListingNotFoundError:
            return RemoteStatus(external_id=external_id, status=RemoteListingStatus.ENDED)

        if not isinstance(offer, dict):
            raise TransientNetworkError(f"eBay returned an unreadable offer body for listing {external_id}")

        listing = offer.get("listing") or {}
        sold_quantity = int(listing.get("soldQuantity") or 0)
        listing_status = (listing.get("listingStatus") or "").upper()

        if sold_quantity > 0:
            price = offer.get("pricingSummary", {}).get("price")
            return RemoteStatus(
                external_id=external_id,
                status=RemoteListingStatus.SOLD,
                sale_amount=to_decimal(price),
            )
        if offer.get("status") == "UNPUBLISHED" or listing_status in ("ENDED", "INACTIVE"):
            return RemoteStatus(external_id=external_id, status=RemoteListingStatus.ENDED)
        return RemoteStatus(external_id=external_id, status=RemoteListingStatus.ACTIVE)
