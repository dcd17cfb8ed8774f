"""
Models for the canonical product and auction store.

These tables belong to the storefront side of the business. The listing sync
engine reads a product snapshot at cross-list time and is only allowed to
write two things back: the product status (SOLD) and the auction result.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, Text, text, TIMESTAMP
from sqlalchemy.orm import relationship

from ..database import Base
from app.core.enums import ProductStatus, ListingType, AuctionStatus


class Product(Base):
    __tablename__ = "products"

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

    # Core Product Information
    sku = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    short_description = Column(String)
    condition = Column(String)
    listing_type = Column(String, default=ListingType.BUY_NOW.value, nullable=False)

    # Pricing / stock
    price = Column(Numeric(12, 2))
    quantity = Column(Integer, default=1, nullable=False)

    # Bullion attributes
    metal_type = Column(String)
    metal_weight = Column(Numeric(10, 4))  # troy ounces
    metal_purity = Column(Numeric(6, 4))

    # Numismatic attributes
    year = Column(Integer)
    mint = Column(String)
    grade = Column(String)
    certification = Column(String)  # grading service, e.g. PCGS / NGC
    cert_number = Column(String)
    population = Column(Integer)

    status = Column(String, default=ProductStatus.DRAFT.value, index=True, nullable=False)
    featured = Column(Boolean, default=False)

    images = relationship(
        "ProductImage",
        back_populates="product",
        order_by="ProductImage.position",
        cascade="all, delete-orphan",
    )
    auction = relationship("Auction", back_populates="product", uselist=False)
    platform_listings = relationship("PlatformListing", back_populates="product")

    def __repr__(self):
        return f"<Product(id={self.id}, sku='{self.sku}', status='{self.status}')>"


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    url = Column(String, nullable=False)
    alt = Column(String)
    position = Column(Integer, default=0, nullable=False)
    is_primary = Column(Boolean, default=False)

    product = relationship("Product", back_populates="images")


class Auction(Base):
    __tablename__ = "auctions"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), unique=True, nullable=False)
    start_price = Column(Numeric(12, 2))
    reserve_price = Column(Numeric(12, 2))
    buy_now_price = Column(Numeric(12, 2))
    final_price = Column(Numeric(12, 2))
    status = Column(String, default=AuctionStatus.SCHEDULED.value, nullable=False)

    product = relationship("Product", back_populates="auction")
