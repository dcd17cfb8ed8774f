"""
Etsy adapter (Open API v3).

Publish sequence: create a draft listing, attach up to 10 images, then
PATCH the draft to ``active``. A draft that cannot be activated is deleted.
"""
import logging
from typing import Any, Dict, Optional

from app.core.config import Settings
from app.core.enums import PlatformName, RemoteListingStatus
from app.core.exceptions import ListingNotFoundError, MissingPrerequisiteError, PlatformServiceError
from app.core.utils import to_decimal
from app.integrations.base import PlatformAdapter
from app.schemas.platform.common import CrossListContext, ExternalListingRef, RemoteStatus
from app.schemas.product import ProductSnapshot
from app.services.etsy.client import EtsyClient

logger = logging.getLogger(__name__)

TITLE_LIMIT = 140
MAX_IMAGES = 10
DEFAULT_WHEN_MADE = "2020_2024"

# (lower bound year, Etsy when_made value), newest first
WHEN_MADE_RANGES = [
    (2020, "2020_2024"),
    (2010, "2010_2019"),
    (2000, "2000_2009"),
    (1990, "1990_1999"),
    (1980, "1980s"),
    (1970, "1970s"),
    (1960, "1960s"),
    (1950, "1950s"),
    (1940, "1940s"),
    (1930, "1930s"),
    (1920, "1920s"),
    (1910, "1910s"),
    (1900, "1900s"),
]

SOLD_STATES = {"sold_out"}
ENDED_STATES = {"inactive", "removed", "expired", "draft"}


def when_made_for_year(year: Optional[int]) -> str:
    if not year:
        return DEFAULT_WHEN_MADE
    for lower_bound, value in WHEN_MADE_RANGES:
        if year >= lower_bound:
            return value
    return "before_1900"


class EtsyPlatform(PlatformAdapter):

    platform = PlatformName.ETSY

    def __init__(self, token_manager, settings: Settings, **kwargs):
        super().__init__(token_manager, **kwargs)
        self.settings = settings

    def _client(self, access_token: str, shop_id: Optional[str]) -> EtsyClient:
        if not shop_id:
            raise MissingPrerequisiteError("Etsy connection has no shop id; re-link the Etsy account")
        return EtsyClient(access_token, api_key=self.settings.ETSY_API_KEY, shop_id=shop_id, timeout=self.timeout)

    @staticmethod
    def listing_url(listing_id: str) -> str:
        return f"https://www.etsy.com/listing/{listing_id}"

    def map_attributes(self, product: ProductSnapshot) -> Dict[str, Any]:
        tags = [
            value for value in (
                str(product.year) if product.year else None,
                product.mint,
                product.grade,
                product.certification,
                product.metal_type.lower() if product.metal_type else None,
            )
            if value
        ]
        attributes: Dict[str, Any] = {
            "taxonomy_id": self.settings.ETSY_TAXONOMY_ID,
            "who_made": "someone_else",
            "when_made": when_made_for_year(product.year),
            "is_supply": False,
        }
        if tags:
            # Etsy tags are limited to 20 characters
            attributes["tags"] = [tag[:20] for tag in tags]
        if product.metal_type:
            attributes["materials"] = [product.metal_type.lower()]
        return attributes

    def build_listing(self, product: ProductSnapshot, shipping_profile_id: int) -> Dict[str, Any]:
        listing = {
            "title": product.title[:TITLE_LIMIT],
            "description": product.description or product.short_description or product.title,
            "price": float(product.effective_price),
            "quantity": product.quantity,
            "should_auto_renew": False,
            "shipping_profile_id": shipping_profile_id,
            "skus": [product.sku],
        }
        listing.update(self.map_attributes(product))
        return listing

    async def _shipping_profile_id(self, client: EtsyClient) -> int:
        if self.settings.ETSY_SHIPPING_PROFILE_ID:
            return self.settings.ETSY_SHIPPING_PROFILE_ID
        profiles = await client.get_shipping_profiles()
        if not profiles:
            raise MissingPrerequisiteError("Etsy shop has no shipping profile")
        return profiles[0]["shipping_profile_id"]

    async def create_listing(self, product: ProductSnapshot, context: CrossListContext) -> ExternalListingRef:
        credentials = await self._credentials()
        client = self._client(credentials.access_token, credentials.store_id)

        shipping_profile_id = await self._shipping_profile_id(client)
        draft = await client.create_draft_listing(self.build_listing(product, shipping_profile_id))
        listing_id = str(draft["listing_id"])

        for rank, image_url in enumerate(product.image_urls[:MAX_IMAGES], start=1):
            try:
                await client.upload_image_from_url(listing_id, image_url, rank)
            except PlatformServiceError as e:
                logger.warning(f"Etsy image upload failed for listing {listing_id} ({image_url}): {str(e)}")

        try:
            await self._with_retries(lambda: client.activate_listing(listing_id), "activate listing")
        except PlatformServiceError:
            await self._discard_draft(client, listing_id)
            raise

        logger.info(f"Published Etsy listing {listing_id} for sku {product.sku}")
        return ExternalListingRef(
            external_id=listing_id,
            external_url=self.listing_url(listing_id),
            platform_data={"shop_id": credentials.store_id},
        )

    async def _discard_draft(self, client: EtsyClient, listing_id: str) -> None:
        try:
            await client.delete_listing(listing_id)
            logger.info(f"Deleted Etsy draft {listing_id} after failed activation")
        except PlatformServiceError as e:
            logger.warning(f"Could not delete Etsy draft {listing_id}: {str(e)}")

    async def end_listing(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> bool:
        credentials = await self._credentials()
        client = self._client(credentials.access_token, credentials.store_id)
        try:
            await client.delete_listing(external_id)
        except ListingNotFoundError:
            logger.info(f"Etsy listing {external_id} already gone")
            return False
        logger.info(f"Ended Etsy listing {external_id}")
        return True

    async def fetch_status(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> RemoteStatus:
        credentials = await self._credentials()
        client = self._client(credentials.access_token, credentials.store_id)
        try:
            listing = await client.get_listing(external_id)
        except ListingNotFoundError:
            return RemoteStatus(external_id=external_id, status=RemoteListingStatus.ENDED)

        state = (listing.get("state") or "").lower()
        if state in SOLD_STATES:
            return RemoteStatus(
                external_id=external_id,
                status=RemoteListingStatus.SOLD,
                sale_amount=to_decimal(listing.get("price")),
            )
        if state in ENDED_STATES:
            return RemoteStatus(external_id=external_id, status=RemoteListingStatus.ENDED)
        return RemoteStatus(external_id=external_id, status=RemoteListingStatus.ACTIVE)
