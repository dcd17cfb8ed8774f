"""
Request and response schemas for the cross-listing API.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field

from app.core.enums import PlatformName, ListingStatus
from .base import BaseSchema


class CrossListRequest(BaseModel):
    product_id: int
    platforms: List[PlatformName] = Field(..., min_length=1)
    auction_event_id: Optional[str] = None


class CrossListResult(BaseModel):
    platform: PlatformName
    success: bool
    listing_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None  # error code, e.g. "ValidationRejected"
    detail: Optional[str] = None
    already_listed: bool = False


class RemovalResult(BaseModel):
    platform: PlatformName
    success: bool
    error: Optional[str] = None
    detail: Optional[str] = None


class ListingSummary(BaseSchema):
    platform: PlatformName
    status: ListingStatus
    external_id: str
    url: Optional[str] = Field(default=None, validation_alias="external_url")
    last_sync_at: Optional[datetime] = None
    sale_amount: Optional[Decimal] = None


class ConnectionSummary(BaseModel):
    platform: PlatformName
    is_active: bool
    state: str
    store_id: Optional[str] = None
    expires_at: Optional[datetime] = None


class SyncSummary(BaseModel):
    synced: int = 0
    errors: int = 0
    sold: int = 0
    removed: int = 0

    def merge(self, other: "SyncSummary") -> "SyncSummary":
        return SyncSummary(
            synced=self.synced + other.synced,
            errors=self.errors + other.errors,
            sold=self.sold + other.sold,
            removed=self.removed + other.removed,
        )


class SaleNotification(BaseModel):
    """Body of a marketplace sale webhook."""
    external_id: str
    sale_amount: Optional[Decimal] = None


class AuctionEventCreate(BaseModel):
    title: str
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    description: Optional[str] = None
