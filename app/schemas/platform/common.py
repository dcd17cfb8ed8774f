"""
Data passed between the sync services and the platform adapters.
"""
from decimal import Decimal
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict

from app.core.enums import PlatformName, RemoteListingStatus


class CrossListContext(BaseModel):
    """Per-request, platform-specific publishing context."""
    auction_event_id: Optional[str] = None


class ExternalListingRef(BaseModel):
    """What an adapter returns after a successful create."""
    external_id: str
    external_url: Optional[str] = None
    platform_data: Dict[str, Any] = {}


class RemoteStatus(BaseModel):
    external_id: str
    status: RemoteListingStatus
    sale_amount: Optional[Decimal] = None


class TokenGrant(BaseModel):
    """Normalised token endpoint / link response."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds; None means the token does not expire
    store_id: Optional[str] = None


class PlatformCredentials(BaseModel):
    """A valid access token, as handed to an adapter for one call."""
    model_config = ConfigDict(frozen=True)

    platform: PlatformName
    access_token: str
    store_id: Optional[str] = None
