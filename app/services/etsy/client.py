import logging
from typing import Dict, List

import httpx

from app.core.exceptions import TransientNetworkError
from app.services.http_client import BasePlatformClient

logger = logging.getLogger(__name__)


class EtsyClient(BasePlatformClient):
    """
    Client for the Etsy Open API v3 shop listing endpoints.

    Every call needs both the OAuth bearer token and the app key
    (``x-api-key``).
    """

    PLATFORM = "Etsy"
    BASE_URL = "https://openapi.etsy.com/v3"

    def __init__(self, access_token: str, api_key: str, shop_id: str, timeout: float = 30.0):
        super().__init__(access_token, timeout=timeout)
        self.api_key = api_key
        self.shop_id = shop_id

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        headers["x-api-key"] = self.api_key
        return headers

    async def get_shipping_profiles(self) -> List[Dict]:
        data = await self._make_request("GET", f"application/shops/{self.shop_id}/shipping-profiles")
        return data.get("results", [])

    async def create_draft_listing(self, listing_data: Dict) -> Dict:
        """
        Create a draft listing.

        Returns:
            Dict containing ``listing_id``
        """
        return await self._make_request("POST", f"application/shops/{self.shop_id}/listings", data=listing_data)

    async def update_listing(self, listing_id: str, updates: Dict) -> Dict:
        return await self._make_request(
            "PATCH", f"application/shops/{self.shop_id}/listings/{listing_id}", data=updates
        )

    async def activate_listing(self, listing_id: str) -> Dict:
        return await self.update_listing(listing_id, {"state": "active"})

    async def get_listing(self, listing_id: str) -> Dict:
        return await self._make_request("GET", f"application/listings/{listing_id}")

    async def delete_listing(self, listing_id: str) -> bool:
        await self._make_request("DELETE", f"application/listings/{listing_id}")
        return True

    async def upload_image_from_url(self, listing_id: str, image_url: str, rank: int) -> Dict:
        """
        Download an image and attach it to a listing.

        Etsy only accepts multipart uploads, so the file is fetched first.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                image_response = await client.get(image_url)
        except httpx.RequestError as e:
            raise TransientNetworkError(f"Could not download image {image_url}: {str(e)}")
        if image_response.status_code != 200:
            raise TransientNetworkError(f"Could not download image {image_url}: {image_response.status_code}")

        filename = image_url.rsplit("/", 1)[-1] or f"image_{rank}.jpg"
        return await self._make_request(
            "POST",
            f"application/shops/{self.shop_id}/listings/{listing_id}/images",
            data={"rank": str(rank)},
            files={"image": (filename, image_response.content)},
        )

