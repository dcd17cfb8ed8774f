"""
AuctionFlex360 uses a long-lived API key plus a company id header rather
than OAuth. Linking validates the key against the account endpoint and
stores it as a non-expiring access token.
"""

import logging
from typing import Optional, Tuple

import httpx

from app.core.config import Settings, get_settings
from app.core.enums import PlatformName
from app.core.exceptions import TokenRefreshError, TransientNetworkError, ValidationRejectedError
from app.schemas.platform.common import TokenGrant
from app.services.oauth import BaseAuthManager

logger = logging.getLogger(__name__)


class AuctionFlexAuthManager(BaseAuthManager):

    platform = PlatformName.AUCTIONFLEX
    supports_refresh = False

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        super().__init__(timeout=self.settings.HTTP_TIMEOUT_SECONDS)
        self.api_url = self.settings.AUCTIONFLEX_API_URL.rstrip("/")
        self.api_key = self.settings.AUCTIONFLEX_API_KEY
        self.company_id = self.settings.AUCTIONFLEX_COMPANY_ID

    def authorization_url(self, state: str) -> Tuple[str, Optional[str]]:
        raise ValueError("AuctionFlex360 is linked with an API key, not a consent redirect")

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenGrant:
        raise ValueError("AuctionFlex360 is linked with an API key, not a consent redirect")

    async def refresh(self, refresh_token: str) -> TokenGrant:
        raise TokenRefreshError("AuctionFlex360 API keys cannot be refreshed; re-link with a new key")

    async def link_with_api_key(self, api_key: Optional[str] = None, company_id: Optional[str] = None) -> TokenGrant:
        """Validate the key against /v1/account and return it as a non-expiring grant."""
        api_key = api_key or self.api_key
        company_id = company_id or self.company_id
        if not api_key or not company_id:
            raise ValueError("AuctionFlex360 API key and company id are required")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.api_url}/v1/account",
                    headers={"Authorization": f"Bearer {api_key}", "X-Company-Id": company_id},
                )
        except httpx.RequestError as e:
            raise TransientNetworkError(f"AuctionFlex360 unreachable: {str(e)}")

        if response.status_code >= 500:
            raise TransientNetworkError(f"AuctionFlex360 account check returned {response.status_code}")
        if response.status_code != 200:
            logger.error(f"AuctionFlex360 rejected API key: {response.status_code}")
            raise ValidationRejectedError(
                f"AuctionFlex360 rejected the API key ({response.status_code})",
                status_code=response.status_code,
            )

        logger.info(f"AuctionFlex360 API key validated for company {company_id}")
        return TokenGrant(access_token=api_key, refresh_token=None, expires_in=None, store_id=company_id)
