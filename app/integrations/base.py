"""
Common contract for marketplace adapters.

An adapter turns a ProductSnapshot into a live listing on one marketplace and
answers status questions about listings it created. Each multi-step publish
sequence is a single call from the orchestrator's point of view: either a
listing ends up live and an ExternalListingRef is returned, or the adapter
cleans up what it created and raises.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from app.core.enums import PlatformName
from app.core.exceptions import RateLimitedError, TransientNetworkError, UnsupportedPlatformError
from app.schemas.platform.common import CrossListContext, ExternalListingRef, PlatformCredentials, RemoteStatus
from app.schemas.product import ProductSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlatformAdapter(ABC):

    platform: PlatformName

    def __init__(self, token_manager, retry_attempts: int = 3, retry_backoff: float = 1.0, timeout: float = 30.0):
        self.token_manager = token_manager
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self.timeout = timeout

    async def _credentials(self) -> PlatformCredentials:
        # Fetched per operation; tokens are never held on the adapter
        return await self.token_manager.ensure_valid_credentials(self.platform)

    def validate_prerequisites(self, product: ProductSnapshot, context: CrossListContext) -> None:
        """Raise MissingPrerequisiteError when context needed to publish is absent."""
        return None

    @abstractmethod
    def map_attributes(self, product: ProductSnapshot) -> Dict[str, Any]:
        """Platform-native attributes. Pure; absent product fields are omitted."""

    @abstractmethod
    async def create_listing(self, product: ProductSnapshot, context: CrossListContext) -> ExternalListingRef:
        pass

    @abstractmethod
    async def end_listing(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> bool:
        """End a live listing. Returns False when the platform no longer has it."""

    @abstractmethod
    async def fetch_status(self, external_id: str, platform_data: Optional[Dict[str, Any]] = None) -> RemoteStatus:
        pass

    async def fetch_event_results(self, event_id: str) -> List[RemoteStatus]:
        """Bulk results for a closed event. Only event-based marketplaces support this."""
        raise UnsupportedPlatformError(f"{self.platform.value} has no event-scoped results")

    async def _with_retries(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """
        Run one step of a publish sequence, retrying transient failures with
        exponential backoff. Validation errors are raised immediately.
        """
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await operation()
            except (TransientNetworkError, RateLimitedError) as e:
                if attempt == self.retry_attempts:
                    logger.error(f"{self.platform.value} {description} failed after {attempt} attempts: {str(e)}")
                    raise
                delay = self.retry_backoff * (2 ** (attempt - 1))
                if isinstance(e, RateLimitedError) and e.retry_after:
                    delay = max(delay, e.retry_after)
                logger.warning(
                    f"{self.platform.value} {description} attempt {attempt} failed ({e.code}), retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
