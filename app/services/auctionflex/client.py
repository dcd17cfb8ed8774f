import logging
from datetime import datetime
from typing import Dict, List, Optional

from app.services.http_client import BasePlatformClient

logger = logging.getLogger(__name__)


class AuctionFlexClient(BasePlatformClient):
    """
    Client for the AuctionFlex360 REST API.

    Lots live inside auction events: an event is created as a timed draft,
    lots are added to it, then the event is published.
    """

    PLATFORM = "AuctionFlex360"

    def __init__(self, api_key: str, company_id: str, api_url: str, timeout: float = 30.0):
        super().__init__(api_key, timeout=timeout)
        self.company_id = company_id
        self.BASE_URL = api_url.rstrip("/")

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        headers["X-Company-Id"] = self.company_id
        return headers

    def lot_url(self, event_id: str, lot_id: str) -> str:
        return f"{self.BASE_URL}/auctions/{event_id}/lots/{lot_id}"

    async def create_event(
        self,
        name: str,
        start_date: datetime,
        end_date: datetime,
        description: Optional[str] = None,
    ) -> Dict:
        """
        Create a timed auction event in draft state.

        Returns:
            Dict containing ``auction_id``
        """
        payload = {
            "name": name,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "type": "timed",
            "status": "draft",
        }
        if description:
            payload["description"] = description
        return await self._make_request("POST", "v1/auctions", data=payload)

    async def publish_event(self, event_id: str) -> Dict:
        return await self._make_request("POST", f"v1/auctions/{event_id}/publish")

    async def add_lot(self, event_id: str, lot_data: Dict) -> Dict:
        """
        Add a lot to an event.

        Returns:
            Dict containing ``lot_id``
        """
        return await self._make_request("POST", f"v1/auctions/{event_id}/lots", data=lot_data)

    async def get_lot(self, lot_id: str) -> Dict:
        return await self._make_request("GET", f"v1/lots/{lot_id}")

    async def delete_lot(self, lot_id: str) -> bool:
        await self._make_request("DELETE", f"v1/lots/{lot_id}")
        return True

    async def get_event_results(self, event_id: str) -> List[Dict]:
        data = await self._make_request("GET", f"v1/auctions/{event_id}/results")
        return data.get("lots", [])

