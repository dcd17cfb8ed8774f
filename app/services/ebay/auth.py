"""
eBay OAuth (authorization code grant).

Tokens are returned to the caller and persisted by the TokenLifecycleManager;
nothing is cached here.
"""

import logging
from typing import Optional, Tuple
from urllib.parse import urlencode

import httpx

from app.core.config import Settings, get_settings
from app.core.enums import PlatformName
from app.schemas.platform.common import TokenGrant
from app.services.oauth import BaseAuthManager

logger = logging.getLogger(__name__)


class EbayAuthManager(BaseAuthManager):
    """
    Manages eBay OAuth: consent URL, code exchange and refresh.
    """

    platform = PlatformName.EBAY

    SCOPES = [
        "https://api.ebay.com/oauth/api_scope",
        "https://api.ebay.com/oauth/api_scope/sell.inventory",
        "https://api.ebay.com/oauth/api_scope/sell.marketing",
        "https://api.ebay.com/oauth/api_scope/sell.account",
        "https://api.ebay.com/oauth/api_scope/sell.fulfillment",
    ]

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        super().__init__(timeout=self.settings.HTTP_TIMEOUT_SECONDS)
        self.sandbox_mode = self.settings.EBAY_SANDBOX_MODE

        self.client_id = self.settings.EBAY_CLIENT_ID
        self.client_secret = self.settings.EBAY_CLIENT_SECRET
        self.ru_name = self.settings.EBAY_RU_NAME

        if self.sandbox_mode:
            self.auth_url = "https://auth.sandbox.ebay.com/oauth2/authorize"
            self.token_url = "https://api.sandbox.ebay.com/identity/v1/oauth2/token"
        else:
            self.auth_url = "https://auth.ebay.com/oauth2/authorize"
            self.token_url = "https://api.ebay.com/identity/v1/oauth2/token"

        logger.debug(f"EbayAuthManager initialized. Sandbox: {self.sandbox_mode}")

    def _basic_auth(self) -> httpx.BasicAuth:
        if not self.client_id or not self.client_secret:
            raise ValueError(
                f"Missing required eBay {'sandbox' if self.sandbox_mode else 'production'} credentials. "
                f"Please check your .env file."
            )
        return httpx.BasicAuth(self.client_id, self.client_secret)

    def authorization_url(self, state: str) -> Tuple[str, Optional[str]]:
        """Generate the URL for user authorization"""
        if not self.ru_name:
            raise ValueError("RuName is required for authorization URL generation")

        auth_params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.ru_name,
            "scope": " ".join(self.SCOPES),
            "state": state,
        }
        return f"{self.auth_url}?{urlencode(auth_params)}", None

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenGrant:
        data = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.ru_name,
            },
            auth=self._basic_auth(),
        )
        refresh_expires_in = data.get("refresh_token_expires_in")
        if refresh_expires_in:
            logger.info(f"eBay refresh token expires in {int(refresh_expires_in / 86400)} days")
        return self._grant_from_response(data)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        # eBay does not rotate refresh tokens; the response carries only an access token
        data = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": " ".join(self.SCOPES),
            },
            auth=self._basic_auth(),
        )
        logger.info("Successfully refreshed eBay access token")
        return self._grant_from_response(data)
