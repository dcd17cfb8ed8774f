"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema

# Product snapshot
from .product import ProductSnapshot, AuctionTerms

# Adapter-facing schemas
from .platform.common import (
    CrossListContext,
    ExternalListingRef,
    RemoteStatus,
    TokenGrant,
    PlatformCredentials,
)

# API schemas
from .listing import (
    CrossListRequest,
    CrossListResult,
    RemovalResult,
    ListingSummary,
    ConnectionSummary,
    SyncSummary,
    SaleNotification,
    AuctionEventCreate,
)
