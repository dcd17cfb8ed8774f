"""
AuctionFlex360 adapter.

A listing is a lot inside an auction event, so every cross-list needs the
event id up front. Event results can be pulled in bulk once the event closes.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from app.core.config import Settings
from app.core.enums import PlatformName, RemoteListingStatus
from app.core.exceptions import ListingNotFoundError, MissingPrerequisiteError
from app.core.utils import to_decimal, utc_now
from app.integrations.base import PlatformAdapter
from app.schemas.platform.common import CrossListContext, ExternalListingRef, RemoteStatus
from app.schemas.product import ProductSnapshot
from app.services.auctionflex.client import AuctionFlexClient

logger = logging.getLogger(__name__)

SOLD_LOT_STATES = {"sold"}
ENDED_LOT_STATES = {"unsold", "passed", "closed", "withdrawn", "deleted"}


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def remote_status_for_lot(lot: Dict[str, Any]) -> RemoteStatus:
    lot_id = str(lot.get("lot_id") or lot.get("id"))
    state = (lot.get("status") or "").lower()
    if state in SOLD_LOT_STATES:
        return RemoteStatus(
            external_id=lot_id,
            status=RemoteListingStatus.SOLD,
            sale_amount=to_decimal(lot.get("winning_bid")),
        )
    if state in ENDED_LOT_STATES:
        return RemoteStatus(external_id=lot_id, status=RemoteListingStatus.ENDED)
    return RemoteStatus(external_id=lot_id, status=RemoteListingStatus.ACTIVE)


class AuctionFlexPlatform(PlatformAdapter):

    platform = PlatformName.AUCTIONFLEX

    def __init__(self, token_manager, settings: Settings, **kwargs):
        super().__init__(token_manager, **kwargs)
        self.settings = settings

    async def _client(self) -> AuctionFlexClient:
        credentials = await self._credentials()
        return AuctionFlexClient(
            api_key=credentials.access_token,
            company_id=credentials.store_id or self.settings.AUCTIONFLEX_COMPANY_ID,
            api_url=self.settings.AUCTIONFLEX_API_URL,
            timeout=self.timeout,
        )

    def validate_prerequisites(self, product: ProductSnapshot, context: CrossListContext) -> None:
        if not context.auction_event_id:
            raise MissingPrerequisiteError("AuctionFlex360 listings require an auction event id")

    def map_attributes(self, product: ProductSnapshot) -> Dict[str, str]:
        attributes: Dict[str, str] = {}
        if product.year:
            attributes["Year"] = str(product.year)
        if product.mint:
            attributes["Mint"] = product.mint
        if product.grade:
            attributes["Grade"] = product.grade
        if product.certification:
            attributes["Certification"] = product.certification
        if product.cert_number:
            attributes["Cert Number"] = product.cert_number
        if product.metal_type:
            attributes["Metal"] = product.metal_type
        if product.metal_weight:
            attributes["Weight"] = f"{product.metal_weight} oz"
        if product.condition:
            attributes["Condition"] = product.condition
        return attributes

    def build_lot(self, product: ProductSnapshot) -> Dict[str, Any]:
        auction = product.auction
        starting_bid = (auction.start_price if auction else None) or product.price
        buy_now = (auction.buy_now_price if auction else None) or product.price
        lot = {
            "title": product.title,
            "description": product.description,
            "starting_bid": _money(starting_bid) or 1.0,
            "buy_now_price": _money(buy_now),
            "quantity": product.quantity,
            "images": product.image_urls,
            "attributes": self.map_attributes(product),
        }
        if auction and auction.reserve_price:
            lot["reserve_price"] = _money(auction.reserve_price)
        return lot

    async def create_listing(self, product: ProductSnapshot, context: CrossListContext) -> ExternalListingRef:
        self.validate_prerequisites(product, context)
        event_id = context.auction_event_id
        client = await self._client()

        # Lot creation is not idempotent on AuctionFlex360, so it is not retried
        response = await client.add_lot(event_id, self.build_lot(product))
        lot_id = str(response["lot_id"])

        logger.info(f"Added AuctionFlex360 lot {lot_id} to event {event_id} for sku {product.sku}")
        return ExternalListingRef(
            external_id=lot_id,
            external_url=client.lot_url(event_id, lot_id),
            platform_data={"event_id": event_id},
        )

    async def end_listing(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> bool:
        client = await self._client()
        try:
            await client.delete_lot(external_id)
        except ListingNotFoundError:
            logger.info(f"AuctionFlex360 lot {external_id} already gone")
            return False
        logger.info(f"Removed AuctionFlex360 lot {external_id}")
        return True

    async def fetch_status(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> RemoteStatus:
        client = await self._client()
        try:
            lot = await client.get_lot(external_id)
        except ListingNotFoundError:
            return RemoteStatus(external_id=external_id, status=RemoteListingStatus.ENDED)
        lot.setdefault("lot_id", external_id)
        return remote_status_for_lot(lot)

    async def fetch_event_results(self, event_id: str) -> List[RemoteStatus]:
        client = await self._client()
        lots = await client.get_event_results(event_id)
        return [remote_status_for_lot(lot) for lot in lots]

    # Event management

    async def create_event(
        self,
        name: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        description: Optional[str] = None,
    ) -> str:
        start_date = start_date or utc_now()
        end_date = end_date or start_date + timedelta(days=7)
        client = await self._client()
        response = await client.create_event(name, start_date, end_date, description)
        event_id = str(response["auction_id"])
        logger.info(f"Created AuctionFlex360 event {event_id} ({name})")
        return event_id

    async def publish_event(self, event_id: str) -> None:
        client = await self._client()
        await client.publish_event(event_id)
        logger.info(f"Published AuctionFlex360 event {event_id}")
