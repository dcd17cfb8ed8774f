"""
Base class for per-marketplace authorization managers.

An auth manager only talks to the token endpoint. It never stores tokens;
persistence and refresh scheduling belong to the TokenLifecycleManager.
"""
import logging
from typing import Dict, Optional, Tuple

import httpx

from app.core.enums import PlatformName
from app.core.exceptions import TokenRefreshError, TransientNetworkError
from app.schemas.platform.common import TokenGrant

logger = logging.getLogger(__name__)


class BaseAuthManager:

    platform: PlatformName
    token_url: str = ""
    supports_refresh: bool = True

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def authorization_url(self, state: str) -> Tuple[str, Optional[str]]:
        """Return (consent URL, PKCE code verifier or None)."""
        raise NotImplementedError

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenGrant:
        raise NotImplementedError

    async def refresh(self, refresh_token: str) -> TokenGrant:
        raise NotImplementedError

    async def _post_token(
        self,
        form: Dict[str, str],
        auth: Optional[httpx.Auth] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict:
        """
        POST a form to the token endpoint.

        4xx answers are permanent (TokenRefreshError). 5xx and network
        failures are TransientNetworkError so callers can retry later.
        """
        request_headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.token_url, data=form, headers=request_headers, auth=auth)
        except httpx.RequestError as e:
            logger.error(f"{self.platform.value} token endpoint unreachable: {str(e)}")
            raise TransientNetworkError(f"Token endpoint unreachable: {str(e)}")

        if response.status_code >= 500 or response.status_code == 429:
            logger.warning(f"{self.platform.value} token endpoint returned {response.status_code}")
            raise TransientNetworkError(f"Token endpoint returned {response.status_code}")
        if response.status_code != 200:
            logger.error(f"{self.platform.value} token request rejected: {response.status_code} {response.text}")
            raise TokenRefreshError(f"Token request rejected ({response.status_code}): {response.text}")

        return response.json()

    @staticmethod
    def _grant_from_response(data: Dict, store_id: Optional[str] = None) -> TokenGrant:
        if not data.get("access_token"):
            raise TokenRefreshError("Token response did not include an access_token")
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            store_id=store_id,
        )
