from typing import Optional, Any


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    code = "ServiceError"

class ProductServiceError(BaseServiceError):
    """Base exception for product service errors."""
    code = "ProductError"

class ProductNotFoundError(ProductServiceError):
    """Raised when product is not found."""
    code = "ProductNotFound"

class ProductAlreadySoldError(ProductServiceError):
    """Raised when a sold product is submitted for cross-listing."""
    code = "ProductSold"

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    code = "PlatformError"

class NotConnectedError(PlatformServiceError):
    """Raised when no active credential exists for a platform."""
    code = "NotConnected"

class ReauthorizationRequiredError(PlatformServiceError):
    """Raised when a refresh token was permanently rejected. An operator must re-link."""
    code = "ReauthorizationRequired"

class TokenRefreshError(PlatformServiceError):
    """Raised by auth managers when the token endpoint rejects a refresh token."""
    code = "TokenRefreshRejected"

class ValidationRejectedError(PlatformServiceError):
    """Raised when the platform rejects a payload. Not retried automatically."""
    code = "ValidationRejected"

    def __init__(self, message: str, payload: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.payload = payload
        self.status_code = status_code

class RateLimitedError(PlatformServiceError):
    """Raised when the platform throttles the request."""
    code = "RateLimited"

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after

class TransientNetworkError(PlatformServiceError):
    """Raised on network failures, timeouts and platform-side 5xx responses."""
    code = "TransientNetworkError"

class MissingPrerequisiteError(PlatformServiceError):
    """Raised when platform-specific context needed to publish is absent."""
    code = "MissingPrerequisite"

class ListingNotFoundError(PlatformServiceError):
    """Raised when a platform listing is not found."""
    code = "ListingNotFound"

class UnsupportedPlatformError(PlatformServiceError):
    """Raised when no adapter is registered for a platform."""
    code = "UnsupportedPlatform"

class InvalidStatusTransitionError(BaseServiceError):
    """Raised when a listing status change violates the listing state machine."""
    code = "InvalidStatusTransition"
