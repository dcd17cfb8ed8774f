"""
Read-only product snapshot handed to platform adapters.

Adapters never see the ORM row; they get an immutable copy taken at the start
of a cross-list request so every platform publishes the same data.
"""

from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, field_validator

from app.core.enums import ListingType


class AuctionTerms(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    start_price: Optional[Decimal] = None
    reserve_price: Optional[Decimal] = None
    buy_now_price: Optional[Decimal] = None


class ProductSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    sku: str
    title: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    condition: Optional[str] = None
    listing_type: ListingType = ListingType.BUY_NOW
    price: Optional[Decimal] = None
    quantity: int = 1

    metal_type: Optional[str] = None
    metal_weight: Optional[Decimal] = None
    metal_purity: Optional[Decimal] = None

    year: Optional[int] = None
    mint: Optional[str] = None
    grade: Optional[str] = None
    certification: Optional[str] = None
    cert_number: Optional[str] = None
    population: Optional[int] = None

    image_urls: List[str] = []
    auction: Optional[AuctionTerms] = None

    @field_validator('quantity', mode='before')
    @classmethod
    def default_quantity(cls, v):
        return 1 if v is None else v

    @property
    def is_auction(self) -> bool:
        return self.listing_type in (ListingType.AUCTION, ListingType.BOTH)

    @property
    def effective_price(self) -> Decimal:
        """Fixed price, falling back to the auction buy-now / start price."""
        if self.price is not None:
            return self.price
        if self.auction:
            for candidate in (self.auction.buy_now_price, self.auction.start_price):
                if candidate is not None:
                    return candidate
        return Decimal("0")

    @classmethod
    def from_product(cls, product) -> "ProductSnapshot":
        images = sorted(product.images or [], key=lambda img: (not img.is_primary, img.position))
        auction = AuctionTerms.model_validate(product.auction) if product.auction else None
        return cls(
            id=product.id,
            sku=product.sku,
            title=product.title,
            description=product.description,
            short_description=product.short_description,
            condition=product.condition,
            listing_type=product.listing_type or ListingType.BUY_NOW,
            price=product.price,
            quantity=product.quantity,
            metal_type=product.metal_type,
            metal_weight=product.metal_weight,
            metal_purity=product.metal_purity,
            year=product.year,
            mint=product.mint,
            grade=product.grade,
            certification=product.certification,
            cert_number=product.cert_number,
            population=product.population,
            image_urls=[img.url for img in images],
            auction=auction,
        )
