# app/services/reconciliation_service.py
"""
Brings registry rows in line with what each marketplace reports.

For each open listing the adapter's status is fetched:

- ``sold``   -> listing SOLD, product SOLD, and every other open listing for the
               product is ended remotely and marked REMOVED
- ``ended``  -> listing REMOVED
- ``active`` -> listing stays ACTIVE (an ERROR row recovers to ACTIVE)

Per-listing failures are counted and recorded on the row; they never abort the
rest of the run.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from app.core.enums import PlatformName, ListingStatus, ProductStatus, RemoteListingStatus
from app.core.exceptions import (
    BaseServiceError,
    InvalidStatusTransitionError,
    ListingNotFoundError,
    PlatformServiceError,
    UnsupportedPlatformError,
)
from app.integrations.base import PlatformAdapter
from app.models.platform_listing import PlatformListing
from app.schemas.listing import SyncSummary
from app.schemas.platform.common import RemoteStatus
from app.services.activity_logger import ActivityLogger
from app.services.credential_store import CredentialStore
from app.services.listing_registry import ListingRegistry
from app.services.product_service import ProductService

logger = logging.getLogger(__name__)


class ReconciliationService:

    def __init__(
        self,
        products: ProductService,
        registry: ListingRegistry,
        credential_store: CredentialStore,
        adapters: Dict[PlatformName, PlatformAdapter],
        activity_logger: Optional[ActivityLogger] = None,
        max_concurrent_platforms: int = 3,
    ):
        self.products = products
        self.registry = registry
        self.credential_store = credential_store
        self.adapters = adapters
        self.activity_logger = activity_logger
        self._platform_semaphore = asyncio.Semaphore(max(1, max_concurrent_platforms))

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def sync_all(self) -> SyncSummary:
        """Poll every open listing on every linked platform."""
        connections = await self.credential_store.list_active()
        platforms = [PlatformName(c.platform) for c in connections if PlatformName(c.platform) in self.adapters]
        if not platforms:
            logger.info("No linked platforms to reconcile")
            return SyncSummary()

        logger.info(f"Starting reconciliation for {[p.value for p in platforms]}")
        summaries = await asyncio.gather(*(self._sync_platform_limited(p) for p in platforms))

        total = SyncSummary()
        for summary in summaries:
            total = total.merge(summary)
        logger.info(
            f"Reconciliation complete: synced={total.synced} errors={total.errors} "
            f"sold={total.sold} removed={total.removed}"
        )
        return total

    async def sync_platform(self, platform: PlatformName) -> SyncSummary:
        adapter = self._adapter(platform)
        summary = SyncSummary()
        listings = await self.registry.list_active_by_platform(platform)
        logger.info(f"Reconciling {len(listings)} {platform.value} listings")

        for listing in listings:
            try:
                remote = await adapter.fetch_status(listing.external_id, listing.platform_data)
            except PlatformServiceError as e:
                logger.warning(f"{platform.value} status fetch failed for {listing.external_id}: {e.code}: {str(e)}")
                await self.registry.record_failure(listing.id, f"{e.code}: {str(e)}")
                summary.errors += 1
                continue
            except Exception as e:
                logger.exception(f"Unexpected error fetching {platform.value} listing {listing.external_id}")
                await self.registry.record_failure(listing.id, f"UnexpectedError: {str(e)}")
                summary.errors += 1
                continue

            try:
                await self._apply(listing, remote, summary)
            except Exception as e:
                logger.exception(f"Unexpected error reconciling {platform.value} listing {listing.external_id}")
                await self.registry.record_failure(listing.id, f"UnexpectedError: {str(e)}")
                summary.errors += 1

        if self.activity_logger:
            await self.activity_logger.log_sync(
                platform.value, "success" if summary.errors == 0 else "partial", summary.model_dump()
            )
        return summary

    async def sync_event(self, platform: PlatformName, event_id: str) -> SyncSummary:
        """
        Pull bulk results for a closed auction event and apply them to the
        listings that belong to it.
        """
        adapter = self._adapter(platform)
        summary = SyncSummary()
        results = await adapter.fetch_event_results(event_id)
        logger.info(f"Applying {len(results)} results from {platform.value} event {event_id}")

        for remote in results:
            listing = await self.registry.find_by_external_id(platform, remote.external_id)
            if listing is None:
                logger.info(f"{platform.value} lot {remote.external_id} has no registry row; skipping")
                continue
            await self._apply(listing, remote, summary)

        if self.activity_logger:
            await self.activity_logger.log_sync(
                platform.value,
                "success" if summary.errors == 0 else "partial",
                {**summary.model_dump(), "event_id": event_id},
            )
        return summary

    async def record_external_sale(
        self, platform: PlatformName, external_id: str, sale_amount: Optional[Decimal] = None
    ) -> SyncSummary:
        """Apply a sale pushed by a marketplace webhook."""
        listing = await self.registry.find_by_external_id(platform, external_id)
        if listing is None:
            raise ListingNotFoundError(f"No {platform.value} listing with external id {external_id}")

        summary = SyncSummary()
        remote = RemoteStatus(external_id=external_id, status=RemoteListingStatus.SOLD, sale_amount=sale_amount)
        await self._apply(listing, remote, summary)
        return summary

    # ------------------------------------------------------------------

    def _adapter(self, platform: PlatformName) -> PlatformAdapter:
        adapter = self.adapters.get(platform)
        if adapter is None:
            raise UnsupportedPlatformError(f"No adapter registered for {platform.value}")
        return adapter

    async def _sync_platform_limited(self, platform: PlatformName) -> SyncSummary:
        async with self._platform_semaphore:
            try:
                return await self.sync_platform(platform)
            except BaseServiceError as e:
                logger.error(f"Reconciliation of {platform.value} aborted: {str(e)}")
                return SyncSummary(errors=1)
            except Exception:
                logger.exception(f"Reconciliation of {platform.value} aborted by an unexpected error")
                return SyncSummary(errors=1)

    async def _apply(self, listing: PlatformListing, remote: RemoteStatus, summary: SyncSummary) -> None:
        # Re-read: a sale on another platform may have closed this row since it was listed
        current = await self.registry.get(listing.id)
        if current is None or ListingStatus(current.status).is_terminal:
            return

        try:
            if remote.status == RemoteListingStatus.SOLD:
                await self._record_sale(current, remote.sale_amount, summary)
            elif remote.status == RemoteListingStatus.ENDED:
                await self.registry.mark_status(current.id, ListingStatus.REMOVED)
                summary.removed += 1
                logger.info(f"{current.platform} listing {current.external_id} ended remotely")
            else:
                await self._keep_active(current, summary)
            summary.synced += 1
        except InvalidStatusTransitionError as e:
            logger.warning(f"Skipped conflicting update for listing {current.id}: {str(e)}")
            summary.errors += 1

    async def _keep_active(self, listing: PlatformListing, summary: SyncSummary) -> None:
        if await self.products.get_status(listing.product_id) == ProductStatus.SOLD:
            # Product sold elsewhere but this listing is still live
            logger.warning(
                f"{listing.platform} listing {listing.external_id} is live for sold product {listing.product_id}; closing"
            )
            if await self._close_listing(listing):
                summary.removed += 1
            else:
                summary.errors += 1
            return

        if listing.status == ListingStatus.ERROR.value:
            await self.registry.mark_status(listing.id, ListingStatus.ACTIVE)
        else:
            await self.registry.touch(listing.id)

    async def _record_sale(self, listing: PlatformListing, sale_amount: Optional[Decimal], summary: SyncSummary) -> None:
        await self.registry.mark_status(listing.id, ListingStatus.SOLD, sale_amount=sale_amount)
        summary.sold += 1

        first_sale = await self.products.mark_sold(listing.product_id, sale_amount)
        if not first_sale:
            logger.error(
                f"Product {listing.product_id} reported sold on {listing.platform} but was already SOLD elsewhere"
            )
            summary.errors += 1

        closed: List[str] = []
        for other in await self.registry.list_open_for_product(listing.product_id, exclude_listing_id=listing.id):
            try:
                was_closed = await self._close_listing(other)
            except InvalidStatusTransitionError as e:
                # Sibling changed state underneath us, e.g. sold concurrently
                logger.warning(f"Could not close {other.platform} listing {other.external_id}: {str(e)}")
                summary.errors += 1
                continue
            if was_closed:
                closed.append(other.platform)
                summary.removed += 1
            else:
                summary.errors += 1

        logger.info(
            f"Product {listing.product_id} sold on {listing.platform} for {sale_amount}; "
            f"closed listings on {closed or 'no other platforms'}"
        )
        if self.activity_logger:
            await self.activity_logger.log_sale(
                listing.product_id,
                listing.platform,
                listing.external_id,
                {
                    "sale_price": str(sale_amount) if sale_amount is not None else None,
                    "closed_platforms": closed,
                },
            )

    async def _close_listing(self, listing: PlatformListing) -> bool:
        """
        End a listing remotely and mark it REMOVED. On failure the row is
        marked ERROR so the next sync retries the close.
        """
        adapter = self.adapters.get(PlatformName(listing.platform))
        if adapter is None:
            await self.registry.mark_status(listing.id, ListingStatus.ERROR, error="No adapter registered")
            return False

        try:
            await adapter.end_listing(listing.external_id, listing.platform_data)
        except PlatformServiceError as e:
            logger.error(f"Failed to close {listing.platform} listing {listing.external_id}: {e.code}: {str(e)}")
            await self.registry.record_failure(listing.id, f"{e.code}: {str(e)}")
            await self.registry.mark_status(listing.id, ListingStatus.ERROR, error=f"{e.code}: {str(e)}")
            return False

        await self.registry.mark_status(listing.id, ListingStatus.REMOVED)
        logger.info(f"Closed {listing.platform} listing {listing.external_id}")
        return True
