# app/services/product_service.py
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.enums import ProductStatus, AuctionStatus
from app.core.exceptions import ProductNotFoundError
from app.core.utils import utc_now
from app.models.product import Product, Auction
from app.schemas.product import ProductSnapshot

logger = logging.getLogger(__name__)


class ProductService:
    """
    Narrow view of the canonical product store used by the sync engine.

    Reads produce immutable snapshots; the only write is recording a sale.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_snapshot(self, product_id: int) -> ProductSnapshot:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Product)
                .options(selectinload(Product.images), selectinload(Product.auction))
                .where(Product.id == product_id)
            )
            product = result.scalar_one_or_none()
            if not product:
                raise ProductNotFoundError(f"Product {product_id} not found")
            return ProductSnapshot.from_product(product)

    async def get_status(self, product_id: int) -> Optional[ProductStatus]:
        async with self.session_factory() as session:
            status = await session.scalar(select(Product.status).where(Product.id == product_id))
            return ProductStatus(status) if status else None

    async def mark_sold(self, product_id: int, sale_amount: Optional[Decimal] = None) -> bool:
        """
        Set the product SOLD and close out its auction row.

        The status change is a conditional update, so when two platforms report
        a sale at once only the first caller gets True.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(Product)
                .where(Product.id == product_id, Product.status != ProductStatus.SOLD.value)
                .values(status=ProductStatus.SOLD.value, updated_at=utc_now())
            )
            first_sale = result.rowcount > 0

            if first_sale:
                auction_values = {"status": AuctionStatus.SOLD.value}
                if sale_amount is not None:
                    auction_values["final_price"] = sale_amount
                await session.execute(
                    update(Auction).where(Auction.product_id == product_id).values(**auction_values)
                )

            await session.commit()

        if first_sale:
            logger.info(f"Product {product_id} marked SOLD (amount: {sale_amount})")
        else:
            logger.info(f"Product {product_id} was already SOLD")
        return first_sale
