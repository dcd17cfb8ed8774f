# app/services/token_manager.py
"""
Token lifecycle per platform: UNLINKED -> LINKED -> EXPIRED -> LINKED
(after refresh) -> REVOKED (refresh rejected).

``ensure_valid_token`` is the only way adapters obtain a token. Refreshes are
single-flight per platform: while one refresh is in flight every other caller
for that platform awaits the same task instead of spending the refresh token
again. The refresh task is shielded, so a caller that gets cancelled does not
abort the refresh (and lose the rotated token) for everyone else.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Dict, Optional, Tuple

from app.core.enums import PlatformName, ConnectionState
from app.core.exceptions import (
    NotConnectedError,
    ReauthorizationRequiredError,
    TokenRefreshError,
    UnsupportedPlatformError,
)
from app.core.utils import utc_now, expiry_from_seconds
from app.models.platform_connection import PlatformConnection
from app.schemas.platform.common import TokenGrant, PlatformCredentials
from app.services.credential_store import CredentialStore
from app.services.oauth import BaseAuthManager

logger = logging.getLogger(__name__)


class TokenLifecycleManager:

    def __init__(
        self,
        store: CredentialStore,
        auth_managers: Dict[PlatformName, BaseAuthManager],
        skew_seconds: int = 300,
    ):
        self.store = store
        self.auth_managers = auth_managers
        self.skew_seconds = skew_seconds
        self._locks = defaultdict(asyncio.Lock)
        self._inflight: Dict[PlatformName, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Adapter-facing
    # ------------------------------------------------------------------

    async def ensure_valid_token(self, platform: PlatformName) -> str:
        credentials = await self.ensure_valid_credentials(platform)
        return credentials.access_token

    async def ensure_valid_credentials(self, platform: PlatformName) -> PlatformCredentials:
        connection = self._check_connection(platform, await self.store.get(platform))
        if self._is_fresh(connection):
            return self._credentials(connection)

        async with self._locks[platform]:
            task = self._inflight.get(platform)
            if task is None:
                # Another caller may have finished a refresh while we waited
                connection = self._check_connection(platform, await self.store.get(platform))
                if self._is_fresh(connection):
                    return self._credentials(connection)

                logger.info(f"{platform.value} access token expired or expiring, refreshing")
                task = asyncio.create_task(self._refresh(platform, connection))
                self._inflight[platform] = task
                task.add_done_callback(lambda t, p=platform: self._clear_inflight(p, t))

        connection = await asyncio.shield(task)
        return self._credentials(connection)

    def _clear_inflight(self, platform: PlatformName, task: asyncio.Task) -> None:
        if self._inflight.get(platform) is task:
            del self._inflight[platform]
        # Retrieve the exception so an abandoned shielded task is not reported as unhandled
        if not task.cancelled():
            task.exception()

    def _check_connection(self, platform: PlatformName, connection: Optional[PlatformConnection]) -> PlatformConnection:
        if connection is None:
            raise NotConnectedError(f"{platform.value} is not connected")
        if not connection.is_active:
            raise ReauthorizationRequiredError(f"{platform.value} connection was revoked; re-link required")
        if not connection.access_token:
            raise NotConnectedError(f"{platform.value} has no access token")
        return connection

    def _is_fresh(self, connection: PlatformConnection) -> bool:
        return connection.state_at(utc_now(), self.skew_seconds) == ConnectionState.LINKED

    @staticmethod
    def _credentials(connection: PlatformConnection) -> PlatformCredentials:
        return PlatformCredentials(
            platform=PlatformName(connection.platform),
            access_token=connection.access_token,
            store_id=connection.store_id,
        )

    async def _refresh(self, platform: PlatformName, connection: PlatformConnection) -> PlatformConnection:
        auth_manager = self.auth_managers.get(platform)
        if auth_manager is None:
            raise UnsupportedPlatformError(f"No auth manager registered for {platform.value}")

        if not connection.refresh_token or not auth_manager.supports_refresh:
            await self.store.deactivate(platform)
            raise ReauthorizationRequiredError(f"{platform.value} token expired and cannot be refreshed")

        try:
            grant = await auth_manager.refresh(connection.refresh_token)
        except TokenRefreshError as e:
            logger.error(f"{platform.value} refresh token rejected, deactivating connection: {str(e)}")
            await self.store.deactivate(platform)
            raise ReauthorizationRequiredError(f"{platform.value} refresh token rejected; re-link required") from e

        refreshed = await self.store.upsert(
            platform,
            access_token=grant.access_token,
            # Providers that do not rotate refresh tokens omit them from the response
            refresh_token=grant.refresh_token or connection.refresh_token,
            expires_at=expiry_from_seconds(grant.expires_in),
            store_id=grant.store_id,
        )
        logger.info(f"{platform.value} access token refreshed, expires at {refreshed.expires_at}")
        return refreshed

    # ------------------------------------------------------------------
    # Operator linking
    # ------------------------------------------------------------------

    def _auth_manager(self, platform: PlatformName) -> BaseAuthManager:
        auth_manager = self.auth_managers.get(platform)
        if auth_manager is None:
            raise UnsupportedPlatformError(f"No auth manager registered for {platform.value}")
        return auth_manager

    def authorization_url(self, platform: PlatformName, state: str) -> Tuple[str, Optional[str]]:
        return self._auth_manager(platform).authorization_url(state)

    async def complete_authorization(
        self, platform: PlatformName, code: str, code_verifier: Optional[str] = None
    ) -> PlatformConnection:
        grant = await self._auth_manager(platform).exchange_code(code, code_verifier)
        return await self.link(platform, grant)

    async def link(self, platform: PlatformName, grant: TokenGrant) -> PlatformConnection:
        async with self._locks[platform]:
            connection = await self.store.upsert(
                platform,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=expiry_from_seconds(grant.expires_in),
                store_id=grant.store_id,
            )
        logger.info(f"{platform.value} linked (store: {connection.store_id or 'n/a'})")
        return connection

    async def revoke(self, platform: PlatformName) -> bool:
        async with self._locks[platform]:
            return await self.store.deactivate(platform)
