"""
Core module exports.
"""
from .enums import (
    PlatformName,
    ProductStatus,
    ListingStatus,
    RemoteListingStatus,
    ConnectionState,
)

from .exceptions import (
    BaseServiceError,
    ProductServiceError,
    ProductNotFoundError,
    ProductAlreadySoldError,
    PlatformServiceError,
    NotConnectedError,
    ReauthorizationRequiredError,
    TokenRefreshError,
    ValidationRejectedError,
    RateLimitedError,
    TransientNetworkError,
    MissingPrerequisiteError,
    ListingNotFoundError,
    UnsupportedPlatformError,
    InvalidStatusTransitionError,
)

from .utils import (
    utc_now,
    expiry_from_seconds,
    to_decimal,
)
