"""
Cross-listing, removal and reconciliation endpoints.
"""

import logging
from typing import List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException

from app.core.enums import PlatformName
from app.core.exceptions import BaseServiceError
from app.dependencies import get_services
from app.integrations.platforms.auctionflex import AuctionFlexPlatform
from app.integrations.setup import ServiceContainer
from app.routes.errors import http_error
from app.schemas.listing import (
    AuctionEventCreate,
    CrossListRequest,
    ListingSummary,
    RemovalResult,
    SyncSummary,
)
from app.schemas.platform.common import CrossListContext

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["crosslist"])


@router.post("/crosslist")
async def crosslist_product(
    request: CrossListRequest,
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Publish a product to the requested platforms. Per-platform failures are reported, not raised."""
    try:
        results = await services.crosslist.cross_list_product(
            request.product_id,
            request.platforms,
            CrossListContext(auction_event_id=request.auction_event_id),
        )
    except BaseServiceError as e:
        raise http_error(e)

    return {
        "success": any(r.success for r in results),
        "results": [r.model_dump() for r in results],
    }


@router.get("/products/{product_id}/listings", response_model=List[ListingSummary])
async def product_listings(
    product_id: int,
    services: ServiceContainer = Depends(get_services),
):
    return await services.crosslist.get_product_listings(product_id)


@router.delete("/products/{product_id}/listings/{platform}", response_model=RemovalResult)
async def remove_listing(
    product_id: int,
    platform: PlatformName,
    services: ServiceContainer = Depends(get_services),
):
    try:
        result = await services.crosslist.remove_from_platform(product_id, platform)
    except BaseServiceError as e:
        raise http_error(e)
    if not result.success:
        raise HTTPException(status_code=502, detail={"error": result.error, "message": result.detail})
    return result


@router.post("/sync", response_model=SyncSummary)
async def sync_all_listings(services: ServiceContainer = Depends(get_services)):
    """Reconcile every open listing now."""
    return await services.reconciliation.sync_all()


@router.post("/sync/events/{platform}/{event_id}", response_model=SyncSummary)
async def sync_event(
    platform: PlatformName,
    event_id: str,
    services: ServiceContainer = Depends(get_services),
):
    """Pull results for a closed auction event."""
    try:
        return await services.reconciliation.sync_event(platform, event_id)
    except BaseServiceError as e:
        raise http_error(e)


def _auctionflex(services: ServiceContainer) -> AuctionFlexPlatform:
    adapter = services.adapters.get(PlatformName.AUCTIONFLEX)
    if not isinstance(adapter, AuctionFlexPlatform):
        raise HTTPException(status_code=400, detail="AuctionFlex360 is not configured")
    return adapter


@router.post("/auctionflex/events")
async def create_auction_event(
    event: AuctionEventCreate,
    services: ServiceContainer = Depends(get_services),
):
    adapter = _auctionflex(services)
    try:
        event_id = await adapter.create_event(event.title, event.start_at, event.end_at, event.description)
    except BaseServiceError as e:
        raise http_error(e)
    return {"event_id": event_id}


@router.post("/auctionflex/events/{event_id}/publish")
async def publish_auction_event(
    event_id: str,
    services: ServiceContainer = Depends(get_services),
):
    adapter = _auctionflex(services)
    try:
        await adapter.publish_event(event_id)
    except BaseServiceError as e:
        raise http_error(e)
    return {"event_id": event_id, "status": "published"}
