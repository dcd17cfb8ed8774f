# app/services/listing_registry.py
"""
Persistence for PlatformListing rows and their status state machine.

    ACTIVE -> SOLD      (terminal)
    ACTIVE -> REMOVED   (terminal)
    ACTIVE -> ERROR     (transient)
    ERROR  -> ACTIVE | SOLD | REMOVED

A terminal row may only be brought back by ``upsert`` (an explicit
re-publish), never by ``mark_status``.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.enums import PlatformName, ListingStatus
from app.core.exceptions import InvalidStatusTransitionError, ListingNotFoundError
from app.core.utils import utc_now
from app.models.platform_listing import PlatformListing

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ListingStatus.ACTIVE: {ListingStatus.SOLD, ListingStatus.REMOVED, ListingStatus.ERROR},
    ListingStatus.ERROR: {ListingStatus.ACTIVE, ListingStatus.SOLD, ListingStatus.REMOVED},
    ListingStatus.SOLD: set(),
    ListingStatus.REMOVED: set(),
}

SYNCABLE_STATUSES = (ListingStatus.ACTIVE.value, ListingStatus.ERROR.value)


class ListingRegistry:

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def find(self, product_id: int, platform: PlatformName) -> Optional[PlatformListing]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlatformListing).where(
                    PlatformListing.product_id == product_id,
                    PlatformListing.platform == platform.value,
                )
            )
            return result.scalar_one_or_none()

    async def get(self, listing_id: int) -> Optional[PlatformListing]:
        async with self.session_factory() as session:
            return await session.get(PlatformListing, listing_id)

    async def find_by_external_id(self, platform: PlatformName, external_id: str) -> Optional[PlatformListing]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlatformListing).where(
                    PlatformListing.platform == platform.value,
                    PlatformListing.external_id == str(external_id),
                )
            )
            return result.scalars().first()

    async def list_by_product(self, product_id: int) -> List[PlatformListing]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlatformListing)
                .where(PlatformListing.product_id == product_id)
                .order_by(PlatformListing.platform)
            )
            return list(result.scalars().all())

    async def list_active_by_platform(self, platform: PlatformName) -> List[PlatformListing]:
        """Rows the reconciler should poll: ACTIVE plus ERROR rows awaiting retry."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlatformListing)
                .where(
                    PlatformListing.platform == platform.value,
                    PlatformListing.status.in_(SYNCABLE_STATUSES),
                )
                .order_by(PlatformListing.id)
            )
            return list(result.scalars().all())

    async def list_open_for_product(self, product_id: int, exclude_listing_id: Optional[int] = None) -> List[PlatformListing]:
        async with self.session_factory() as session:
            query = select(PlatformListing).where(
                PlatformListing.product_id == product_id,
                PlatformListing.status.in_(SYNCABLE_STATUSES),
            )
            if exclude_listing_id is not None:
                query = query.where(PlatformListing.id != exclude_listing_id)
            result = await session.execute(query.order_by(PlatformListing.id))
            return list(result.scalars().all())

    async def upsert(
        self,
        product_id: int,
        platform: PlatformName,
        connection_id: int,
        external_id: str,
        external_url: Optional[str] = None,
        platform_data: Optional[Dict[str, Any]] = None,
    ) -> Tuple[PlatformListing, bool]:
        """
        Record a successful remote create as an ACTIVE row.

        Returns (listing, written). ``written`` is False when the pair was
        already ACTIVE, including when a concurrent create won the unique
        constraint race; the returned row is then the existing one.
        """
        now = utc_now()
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(PlatformListing).where(
                        PlatformListing.product_id == product_id,
                        PlatformListing.platform == platform.value,
                    )
                )
                listing = result.scalar_one_or_none()

                if listing is not None and listing.status == ListingStatus.ACTIVE.value:
                    return listing, False

                if listing is None:
                    listing = PlatformListing(
                        product_id=product_id,
                        platform=platform.value,
                        created_at=now,
                    )
                    session.add(listing)
                else:
                    logger.info(
                        f"Re-publishing {platform.value} listing for product {product_id} "
                        f"(was {listing.status}, external id {listing.external_id})"
                    )

                listing.connection_id = connection_id
                listing.external_id = str(external_id)
                listing.external_url = external_url
                listing.platform_data = platform_data or {}
                listing.status = ListingStatus.ACTIVE.value
                listing.sale_amount = None
                listing.failure_count = 0
                listing.last_error = None
                listing.last_sync_at = now
                listing.updated_at = now

                await session.commit()
                await session.refresh(listing)
                return listing, True

        except IntegrityError:
            logger.warning(
                f"Concurrent create detected for product {product_id} on {platform.value}; keeping existing row"
            )
            existing = await self.find(product_id, platform)
            if existing is None:
                raise
            return existing, False

    async def mark_status(
        self,
        listing_id: int,
        status: ListingStatus,
        sale_amount: Optional[Decimal] = None,
        error: Optional[str] = None,
    ) -> PlatformListing:
        """
        Apply a state machine transition. Setting the current status again is a no-op.
        """
        async with self.session_factory() as session:
            listing = await session.get(PlatformListing, listing_id, with_for_update=True)
            if listing is None:
                raise ListingNotFoundError(f"Listing {listing_id} not found")

            current = ListingStatus(listing.status)
            if current == status:
                return listing
            if status not in ALLOWED_TRANSITIONS[current]:
                raise InvalidStatusTransitionError(
                    f"Listing {listing_id} cannot move from {current.value} to {status.value}"
                )

            now = utc_now()
            listing.status = status.value
            listing.updated_at = now
            listing.last_sync_at = now
            if status == ListingStatus.SOLD and sale_amount is not None:
                listing.sale_amount = sale_amount
            if status == ListingStatus.ACTIVE:
                listing.failure_count = 0
                listing.last_error = None
            if status == ListingStatus.ERROR and error:
                listing.last_error = error

            await session.commit()
            await session.refresh(listing)

        logger.info(f"Listing {listing_id} ({listing.platform}) {current.value} -> {status.value}")
        return listing

    async def record_failure(self, listing_id: int, error: str) -> Optional[PlatformListing]:
        """Count a failed remote call against a row without changing its status."""
        async with self.session_factory() as session:
            listing = await session.get(PlatformListing, listing_id)
            if listing is None:
                return None
            listing.failure_count = (listing.failure_count or 0) + 1
            listing.last_error = error[:1000]
            listing.updated_at = utc_now()
            await session.commit()
            await session.refresh(listing)
            return listing

    async def touch(self, listing_id: int) -> None:
        async with self.session_factory() as session:
            listing = await session.get(PlatformListing, listing_id)
            if listing is not None:
                listing.last_sync_at = utc_now()
                await session.commit()
