# app/services/crosslist_service.py
"""
Cross-list orchestration.

Each requested platform is handled independently and concurrently: a failure
on one platform is reported in that platform's result and never aborts the
others. Partial success is a normal outcome.
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Set

from app.core.enums import PlatformName, ProductStatus, ListingStatus
from app.core.utils import utc_now
from app.core.exceptions import (
    ListingNotFoundError,
    NotConnectedError,
    PlatformServiceError,
    ProductAlreadySoldError,
    UnsupportedPlatformError,
)
from app.integrations.base import PlatformAdapter
from app.models.platform_listing import PlatformListing
from app.schemas.listing import CrossListResult, RemovalResult, ListingSummary, ConnectionSummary
from app.schemas.platform.common import CrossListContext
from app.schemas.product import ProductSnapshot
from app.services.activity_logger import ActivityLogger
from app.services.credential_store import CredentialStore
from app.services.listing_registry import ListingRegistry
from app.services.product_service import ProductService

logger = logging.getLogger(__name__)


class CrossListService:

    def __init__(
        self,
        products: ProductService,
        registry: ListingRegistry,
        credential_store: CredentialStore,
        adapters: Dict[PlatformName, PlatformAdapter],
        activity_logger: Optional[ActivityLogger] = None,
        skew_seconds: int = 300,
    ):
        self.products = products
        self.registry = registry
        self.credential_store = credential_store
        self.adapters = adapters
        self.activity_logger = activity_logger
        self.skew_seconds = skew_seconds
        # Dispatched per-platform work, kept referenced until it finishes even if the caller goes away
        self._pending: Set[asyncio.Future] = set()

    async def cross_list_product(
        self,
        product_id: int,
        platforms: Iterable[PlatformName],
        context: Optional[CrossListContext] = None,
    ) -> List[CrossListResult]:
        """
        Publish a product to every requested platform.

        Raises ProductNotFoundError if the product does not exist. Everything
        else is reported per platform.
        """
        context = context or CrossListContext()
        requested = list(dict.fromkeys(PlatformName(p) for p in platforms))
        product = await self.products.get_snapshot(product_id)

        if await self.products.get_status(product_id) == ProductStatus.SOLD:
            error = ProductAlreadySoldError(f"Product {product_id} is already sold")
            logger.info(f"Skipping cross-list of sold product {product_id}")
            return [self._failure(platform, error) for platform in requested]

        logger.info(f"Cross-listing product {product_id} ({product.sku}) to {[p.value for p in requested]}")
        tasks = [asyncio.create_task(self._cross_list_one(product, platform, context)) for platform in requested]
        batch = asyncio.gather(*tasks)
        self._pending.add(batch)
        batch.add_done_callback(self._pending.discard)

        # A cancelled caller stops waiting; the per-platform work still runs to completion
        return list(await asyncio.shield(batch))

    async def _cross_list_one(
        self, product: ProductSnapshot, platform: PlatformName, context: CrossListContext
    ) -> CrossListResult:
        try:
            result = await self._publish(product, platform, context)
        except PlatformServiceError as e:
            logger.warning(f"Cross-list of product {product.id} to {platform.value} failed: {e.code}: {str(e)}")
            result = self._failure(platform, e)
        except Exception as e:
            logger.exception(f"Unexpected error cross-listing product {product.id} to {platform.value}")
            result = CrossListResult(platform=platform, success=False, error="UnexpectedError", detail=str(e))

        if self.activity_logger and not result.already_listed:
            await self.activity_logger.log_crosslist(
                product.id, platform.value, result.success, external_id=result.listing_id, error=result.error
            )
        return result

    async def _publish(
        self, product: ProductSnapshot, platform: PlatformName, context: CrossListContext
    ) -> CrossListResult:
        connection = await self.credential_store.get(platform)
        if connection is None or not connection.is_active:
            raise NotConnectedError(f"{platform.value} is not connected")

        existing = await self.registry.find(product.id, platform)
        if existing is not None and existing.status == ListingStatus.ACTIVE.value:
            return self._already_listed(existing)

        adapter = self.adapters.get(platform)
        if adapter is None:
            raise UnsupportedPlatformError(f"No adapter registered for {platform.value}")

        adapter.validate_prerequisites(product, context)

        if existing is not None and existing.status == ListingStatus.ERROR.value:
            await self._end_stale_listing(adapter, existing)

        ref = await adapter.create_listing(product, context)

        listing, written = await self.registry.upsert(
            product_id=product.id,
            platform=platform,
            connection_id=connection.id,
            external_id=ref.external_id,
            external_url=ref.external_url,
            platform_data=ref.platform_data,
        )
        if not written:
            # Lost a race with a concurrent create for the same pair; drop our duplicate
            logger.warning(
                f"{platform.value} already had listing {listing.external_id} for product {product.id}; "
                f"ending duplicate {ref.external_id}"
            )
            await self._end_duplicate(adapter, ref.external_id, ref.platform_data)
            return self._already_listed(listing)

        logger.info(f"Product {product.id} listed on {platform.value} as {ref.external_id}")
        return CrossListResult(
            platform=platform,
            success=True,
            listing_id=listing.external_id,
            url=listing.external_url,
        )

    async def _end_stale_listing(self, adapter: PlatformAdapter, listing: PlatformListing) -> None:
        try:
            await adapter.end_listing(listing.external_id, listing.platform_data)
        except PlatformServiceError as e:
            logger.warning(
                f"Could not end stale {listing.platform} listing {listing.external_id} before re-publish: {str(e)}"
            )

    async def _end_duplicate(self, adapter: PlatformAdapter, external_id: str, platform_data) -> None:
        try:
            await adapter.end_listing(external_id, platform_data)
        except PlatformServiceError as e:
            logger.error(f"Duplicate {adapter.platform.value} listing {external_id} could not be ended: {str(e)}")

    @staticmethod
    def _already_listed(listing: PlatformListing) -> CrossListResult:
        return CrossListResult(
            platform=PlatformName(listing.platform),
            success=True,
            listing_id=listing.external_id,
            url=listing.external_url,
            already_listed=True,
        )

    @staticmethod
    def _failure(platform: PlatformName, error: Exception) -> CrossListResult:
        return CrossListResult(
            platform=platform,
            success=False,
            error=getattr(error, "code", "UnexpectedError"),
            detail=str(error),
        )

    # ------------------------------------------------------------------

    async def remove_from_platform(self, product_id: int, platform: PlatformName) -> RemovalResult:
        listing = await self.registry.find(product_id, platform)
        if listing is None or ListingStatus(listing.status).is_terminal:
            raise ListingNotFoundError(f"No live {platform.value} listing for product {product_id}")

        adapter = self.adapters.get(platform)
        if adapter is None:
            raise UnsupportedPlatformError(f"No adapter registered for {platform.value}")

        try:
            ended = await adapter.end_listing(listing.external_id, listing.platform_data)
        except PlatformServiceError as e:
            logger.warning(f"Removing {platform.value} listing {listing.external_id} failed: {e.code}: {str(e)}")
            await self.registry.record_failure(listing.id, f"{e.code}: {str(e)}")
            return RemovalResult(platform=platform, success=False, error=e.code, detail=str(e))

        if not ended:
            logger.info(f"{platform.value} listing {listing.external_id} was already gone remotely")
        await self.registry.mark_status(listing.id, ListingStatus.REMOVED)

        if self.activity_logger:
            await self.activity_logger.log_activity(
                action="remove",
                entity_type="platform_listing",
                entity_id=str(listing.id),
                platform=platform.value,
                details={"product_id": product_id, "external_id": listing.external_id},
            )
        return RemovalResult(platform=platform, success=True)

    async def get_product_listings(self, product_id: int) -> List[ListingSummary]:
        listings = await self.registry.list_by_product(product_id)
        return [ListingSummary.from_orm_model(listing) for listing in listings]

    async def get_active_connections(self) -> List[ConnectionSummary]:
        now = utc_now()
        connections = await self.credential_store.list_active()
        return [
            ConnectionSummary(
                platform=PlatformName(c.platform),
                is_active=c.is_active,
                state=c.state_at(now, self.skew_seconds).value,
                store_id=c.store_id,
                expires_at=c.expires_at,
            )
            for c in connections
        ]
