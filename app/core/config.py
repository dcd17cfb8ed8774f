# app/core/config.py

import os
from functools import lru_cache
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # Security
    SECRET_KEY: str = ""
    WEBHOOK_SECRET: str = ""
    BASIC_AUTH_USERNAME: Optional[str] = None
    BASIC_AUTH_PASSWORD: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Token lifecycle
    TOKEN_REFRESH_SKEW_SECONDS: int = 300  # Refresh 5 minutes before expiry

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0
    PUBLISH_RETRY_ATTEMPTS: int = 3
    PUBLISH_RETRY_BACKOFF_SECONDS: float = 1.0

    # Reconciliation
    SYNC_MAX_CONCURRENT_PLATFORMS: int = 3
    SYNC_SCHEDULE_ENABLED: bool = False
    SYNC_INTERVAL_MINUTES: int = 15

    # eBay (Marketplace-A)
    EBAY_CLIENT_ID: str = ""
    EBAY_CLIENT_SECRET: str = ""
    EBAY_RU_NAME: str = ""
    EBAY_SANDBOX_MODE: bool = False  # Change to True if in Sandbox test mode
    EBAY_MARKETPLACE_ID: str = "EBAY_US"
    EBAY_CURRENCY: str = "USD"
    EBAY_CONTENT_LANGUAGE: str = "en-US"
    EBAY_FULFILLMENT_POLICY_ID: str = ""
    EBAY_PAYMENT_POLICY_ID: str = ""
    EBAY_RETURN_POLICY_ID: str = ""
    EBAY_MERCHANT_LOCATION_KEY: str = ""
    EBAY_COIN_CATEGORY_ID: str = "11116"     # Coins & Paper Money > Coins: US
    EBAY_BULLION_CATEGORY_ID: str = "39482"  # Coins & Paper Money > Bullion

    # Etsy (Marketplace-B)
    ETSY_API_KEY: str = ""
    ETSY_SHARED_SECRET: str = ""
    ETSY_REDIRECT_URI: str = ""
    ETSY_TAXONOMY_ID: int = 1030  # Coins & Money
    ETSY_SHIPPING_PROFILE_ID: Optional[int] = None

    # AuctionFlex (Marketplace-C)
    AUCTIONFLEX_API_KEY: str = ""
    AUCTIONFLEX_COMPANY_ID: str = ""
    AUCTIONFLEX_API_URL: str = "https://api.auctionflex.com"

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists(os.environ.get('ENV_FILE', '.env')) else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def get_webhook_secret():
    """Get the webhook secret for authentication"""
    return get_settings().WEBHOOK_SECRET
