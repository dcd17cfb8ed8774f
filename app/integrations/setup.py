"""
Wires credential storage, token lifecycle, adapters and the sync services
together. Called once from the application lifespan (and from tests with a
test session factory).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.enums import PlatformName
from app.integrations.base import PlatformAdapter
from app.integrations.platforms.auctionflex import AuctionFlexPlatform
from app.integrations.platforms.ebay import EbayPlatform
from app.integrations.platforms.etsy import EtsyPlatform
from app.services.activity_logger import ActivityLogger
from app.services.auctionflex.auth import AuctionFlexAuthManager
from app.services.credential_store import CredentialStore
from app.services.crosslist_service import CrossListService
from app.services.ebay.auth import EbayAuthManager
from app.services.etsy.auth import EtsyAuthManager
from app.services.listing_registry import ListingRegistry
from app.services.oauth import BaseAuthManager
from app.services.product_service import ProductService
from app.services.reconciliation_service import ReconciliationService
from app.services.token_manager import TokenLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    credential_store: CredentialStore
    token_manager: TokenLifecycleManager
    registry: ListingRegistry
    products: ProductService
    adapters: Dict[PlatformName, PlatformAdapter]
    crosslist: CrossListService
    reconciliation: ReconciliationService
    activity_logger: ActivityLogger


def build_auth_managers(settings: Settings) -> Dict[PlatformName, BaseAuthManager]:
    return {
        PlatformName.EBAY: EbayAuthManager(settings),
        PlatformName.ETSY: EtsyAuthManager(settings),
        PlatformName.AUCTIONFLEX: AuctionFlexAuthManager(settings),
    }


def build_adapters(token_manager: TokenLifecycleManager, settings: Settings) -> Dict[PlatformName, PlatformAdapter]:
    options = {
        "retry_attempts": settings.PUBLISH_RETRY_ATTEMPTS,
        "retry_backoff": settings.PUBLISH_RETRY_BACKOFF_SECONDS,
        "timeout": settings.HTTP_TIMEOUT_SECONDS,
    }
    adapters = {
        PlatformName.EBAY: EbayPlatform(token_manager, settings, **options),
        PlatformName.ETSY: EtsyPlatform(token_manager, settings, **options),
        PlatformName.AUCTIONFLEX: AuctionFlexPlatform(token_manager, settings, **options),
    }
    logger.info(f"Registered platform adapters: {[p.value for p in adapters]}")
    return adapters


def setup_services(
    session_factory: async_sessionmaker,
    settings: Optional[Settings] = None,
    adapters: Optional[Dict[PlatformName, PlatformAdapter]] = None,
    auth_managers: Optional[Dict[PlatformName, BaseAuthManager]] = None,
) -> ServiceContainer:
    """
    Build the service graph. ``adapters`` and ``auth_managers`` can be passed
    in to replace the real marketplace integrations.
    """
    settings = settings or get_settings()

    credential_store = CredentialStore(session_factory)
    token_manager = TokenLifecycleManager(
        credential_store,
        auth_managers if auth_managers is not None else build_auth_managers(settings),
        skew_seconds=settings.TOKEN_REFRESH_SKEW_SECONDS,
    )
    if adapters is None:
        adapters = build_adapters(token_manager, settings)

    registry = ListingRegistry(session_factory)
    products = ProductService(session_factory)
    activity_logger = ActivityLogger(session_factory)

    crosslist = CrossListService(
        products,
        registry,
        credential_store,
        adapters,
        activity_logger=activity_logger,
        skew_seconds=settings.TOKEN_REFRESH_SKEW_SECONDS,
    )
    reconciliation = ReconciliationService(
        products,
        registry,
        credential_store,
        adapters,
        activity_logger=activity_logger,
        max_concurrent_platforms=settings.SYNC_MAX_CONCURRENT_PLATFORMS,
    )

    return ServiceContainer(
        credential_store=credential_store,
        token_manager=token_manager,
        registry=registry,
        products=products,
        adapters=adapters,
        crosslist=crosslist,
        reconciliation=reconciliation,
        activity_logger=activity_logger,
    )
