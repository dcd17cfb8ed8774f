# app/models/platform_listing.py
from sqlalchemy import Column, Integer, String, ForeignKey, JSON, Numeric, Text, UniqueConstraint, text, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB

from ..database import Base
from app.core.enums import ListingStatus


class PlatformListing(Base):
    """
    Canonical record of a product's presence on one marketplace.

    At most one row per (product, platform). A row only exists once a remote
    create succeeded; failed attempts are not recorded here.
    """
    __tablename__ = "platform_listings"
    __table_args__ = (
        UniqueConstraint("product_id", "platform", name="uq_platform_listings_product_platform"),
    )

    id = Column(Integer, primary_key=True)
    created_at = Column(
        TIMESTAMP(timezone=False),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at = Column(
        TIMESTAMP(timezone=False),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    connection_id = Column(Integer, ForeignKey("platform_connections.id"), index=True, nullable=False)
    platform = Column(String, nullable=False, index=True)
    external_id = Column(String, nullable=False, index=True)
    external_url = Column(String)
    status = Column(String, default=ListingStatus.ACTIVE.value, index=True, nullable=False)
    sale_amount = Column(Numeric(12, 2))
    failure_count = Column(Integer, default=0, nullable=False)
    last_error = Column(Text)
    last_sync_at = Column(TIMESTAMP(timezone=False))

    # Adapter-private identifiers (eBay offer id / sku, AuctionFlex event id)
    platform_data = Column(JSON().with_variant(JSONB(), "postgresql"), default=dict)

    product = relationship("Product", back_populates="platform_listings")
    connection = relationship("PlatformConnection", back_populates="listings")

    def __repr__(self):
        return (f"<PlatformListing(id={self.id}, product_id={self.product_id}, platform='{self.platform}', "
                f"external_id='{self.external_id}', status='{self.status}')>")
