"""
Etsy Open API v3 OAuth (authorization code grant with PKCE).
"""

import base64
import hashlib
import logging
import secrets
from typing import Optional, Tuple
from urllib.parse import urlencode

import httpx

from app.core.config import Settings, get_settings
from app.core.enums import PlatformName
from app.schemas.platform.common import TokenGrant
from app.services.oauth import BaseAuthManager

logger = logging.getLogger(__name__)


def generate_code_verifier() -> str:
    # 43-128 characters from the unreserved URL set
    return secrets.token_urlsafe(64)


def code_challenge_for(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class EtsyAuthManager(BaseAuthManager):

    platform = PlatformName.ETSY
    token_url = "https://api.etsy.com/v3/public/oauth/token"
    connect_url = "https://www.etsy.com/oauth/connect"
    api_base = "https://openapi.etsy.com/v3"

    SCOPES = ["listings_r", "listings_w", "listings_d", "shops_r", "shops_w", "transactions_r"]

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        super().__init__(timeout=self.settings.HTTP_TIMEOUT_SECONDS)
        self.api_key = self.settings.ETSY_API_KEY
        self.redirect_uri = self.settings.ETSY_REDIRECT_URI

    def authorization_url(self, state: str) -> Tuple[str, Optional[str]]:
        if not self.api_key or not self.redirect_uri:
            raise ValueError("ETSY_API_KEY and ETSY_REDIRECT_URI are required for authorization")

        verifier = generate_code_verifier()
        params = {
            "response_type": "code",
            "client_id": self.api_key,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.SCOPES),
            "state": state,
            "code_challenge": code_challenge_for(verifier),
            "code_challenge_method": "S256",
        }
        return f"{self.connect_url}?{urlencode(params)}", verifier

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenGrant:
        if not code_verifier:
            raise ValueError("Etsy authorization requires the PKCE code verifier")

        data = await self._post_token({
            "grant_type": "authorization_code",
            "client_id": self.api_key,
            "redirect_uri": self.redirect_uri,
            "code": code,
            "code_verifier": code_verifier,
        })
        shop_id = await self._lookup_shop_id(data.get("access_token", ""))
        return self._grant_from_response(data, store_id=shop_id)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        data = await self._post_token({
            "grant_type": "refresh_token",
            "client_id": self.api_key,
            "refresh_token": refresh_token,
        })
        logger.info("Successfully refreshed Etsy access token")
        return self._grant_from_response(data)

    async def _lookup_shop_id(self, access_token: str) -> Optional[str]:
        """
        Etsy access tokens are prefixed with the numeric user id ("12345.abc...").
        The shop id is needed for every listing call, so resolve it once at link time.
        """
        user_id = access_token.split(".", 1)[0]
        if not user_id.isdigit():
            logger.warning("Etsy access token has no user id prefix; shop id left unset")
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.api_base}/application/users/{user_id}/shops",
                    headers={"Authorization": f"Bearer {access_token}", "x-api-key": self.api_key},
                )
        except httpx.RequestError as e:
            logger.warning(f"Could not resolve Etsy shop id: {str(e)}")
            return None

        if response.status_code != 200:
            logger.warning(f"Could not resolve Etsy shop id: {response.status_code}")
            return None

        shop_id = response.json().get("shop_id")
        return str(shop_id) if shop_id is not None else None
