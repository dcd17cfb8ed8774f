from fastapi import HTTPException

from app.core.exceptions import (
    BaseServiceError,
    InvalidStatusTransitionError,
    ListingNotFoundError,
    MissingPrerequisiteError,
    NotConnectedError,
    ProductNotFoundError,
    ReauthorizationRequiredError,
    UnsupportedPlatformError,
    ValidationRejectedError,
)

# Checked in order; first match wins
STATUS_BY_ERROR = [
    (ProductNotFoundError, 404),
    (ListingNotFoundError, 404),
    (InvalidStatusTransitionError, 409),
    (MissingPrerequisiteError, 400),
    (UnsupportedPlatformError, 400),
    (NotConnectedError, 409),
    (ReauthorizationRequiredError, 409),
    (ValidationRejectedError, 422),
]


def http_error(error: BaseServiceError) -> HTTPException:
    """Translate a service error into an HTTPException; platform failures default to 502."""
    status_code = next((code for cls, code in STATUS_BY_ERROR if isinstance(error, cls)), 502)
    return HTTPException(
        status_code=status_code,
        detail={"error": getattr(error, "code", "ServiceError"), "message": str(error)},
    )
