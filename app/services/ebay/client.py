import logging
from typing import Dict

from app.services.http_client import BasePlatformClient

logger = logging.getLogger(__name__)


class EbayClient(BasePlatformClient):
    """
    Client for the eBay Sell Inventory API (inventory items and offers).
    """

    PLATFORM = "eBay"
    PRODUCTION_BASE_URL = "https://api.ebay.com/sell/inventory/v1"
    SANDBOX_BASE_URL = "https://api.sandbox.ebay.com/sell/inventory/v1"

    def __init__(
        self,
        access_token: str,
        sandbox: bool = False,
        content_language: str = "en-US",
        marketplace_id: str = "EBAY_US",
        timeout: float = 30.0,
    ):
        super().__init__(access_token, timeout=timeout)
        self.BASE_URL = self.SANDBOX_BASE_URL if sandbox else self.PRODUCTION_BASE_URL
        self.content_language = content_language
        self.marketplace_id = marketplace_id

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        headers["Content-Language"] = self.content_language
        headers["X-EBAY-C-MARKETPLACE-ID"] = self.marketplace_id
        return headers

    async def create_or_update_inventory_item(self, sku: str, item_data: Dict) -> bool:
        """
        Create or replace an inventory item. eBay answers 204 No Content.
        """
        await self._make_request("PUT", f"inventory_item/{sku}", data=item_data)
        return True

    async def create_offer(self, offer_data: Dict) -> Dict:
        """
        Create an unpublished offer for an inventory item.

        Returns:
            Dict containing ``offerId``
        """
        return await self._make_request("POST", "offer", data=offer_data)

    async def get_offer(self, offer_id: str) -> Dict:
        return await self._make_request("GET", f"offer/{offer_id}")

    async def get_offers(self, sku: str) -> Dict:
        return await self._make_request("GET", "offer", params={"sku": sku})

    async def publish_offer(self, offer_id: str) -> Dict:
        """
        Publish an offer as a live listing.

        Returns:
            Dict containing ``listingId``
        """
        return await self._make_request("POST", f"offer/{offer_id}/publish")

    async def withdraw_offer(self, offer_id: str) -> Dict:
        """End the live listing behind an offer. The offer itself survives as unpublished."""
        return await self._make_request("POST", f"offer/{offer_id}/withdraw")

    async def delete_offer(self, offer_id: str) -> bool:
        await self._make_request("DELETE", f"offer/{offer_id}")
        return True

