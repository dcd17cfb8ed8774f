# app/services/credential_store.py
"""
Persistent store for per-platform OAuth / API-key credentials.

One PlatformConnection row per platform. Writers for the same platform are
serialised in-process; the unique index on ``platform`` covers the rest.
"""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.enums import PlatformName
from app.core.utils import utc_now
from app.models.platform_connection import PlatformConnection

logger = logging.getLogger(__name__)


class CredentialStore:

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._locks = defaultdict(asyncio.Lock)

    async def get(self, platform: PlatformName) -> Optional[PlatformConnection]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlatformConnection).where(PlatformConnection.platform == platform.value)
            )
            return result.scalar_one_or_none()

    async def list_all(self) -> List[PlatformConnection]:
        async with self.session_factory() as session:
            result = await session.execute(select(PlatformConnection).order_by(PlatformConnection.platform))
            return list(result.scalars().all())

    async def list_active(self) -> List[PlatformConnection]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlatformConnection)
                .where(PlatformConnection.is_active.is_(True))
                .order_by(PlatformConnection.platform)
            )
            return list(result.scalars().all())

    async def upsert(
        self,
        platform: PlatformName,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
        store_id: Optional[str] = None,
    ) -> PlatformConnection:
        """
        Write a new credential set for a platform and mark it active.

        ``store_id`` is only overwritten when a value is supplied.
        """
        async with self._locks[platform]:
            try:
                return await self._write(platform, access_token, refresh_token, expires_at, store_id)
            except IntegrityError:
                # Another process inserted the row between our select and insert
                logger.info(f"Concurrent insert for {platform.value} connection, retrying as update")
                return await self._write(platform, access_token, refresh_token, expires_at, store_id)

    async def _write(self, platform, access_token, refresh_token, expires_at, store_id) -> PlatformConnection:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlatformConnection).where(PlatformConnection.platform == platform.value)
            )
            connection = result.scalar_one_or_none()
            if connection is None:
                connection = PlatformConnection(platform=platform.value, created_at=utc_now())
                session.add(connection)

            connection.access_token = access_token
            connection.refresh_token = refresh_token
            connection.expires_at = expires_at
            if store_id is not None:
                connection.store_id = store_id
            connection.is_active = True
            connection.updated_at = utc_now()

            await session.commit()
            await session.refresh(connection)
            return connection

    async def deactivate(self, platform: PlatformName) -> bool:
        """Mark a connection inactive. The row and its tokens are kept for audit."""
        async with self._locks[platform]:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(PlatformConnection)
                    .where(PlatformConnection.platform == platform.value)
                    .values(is_active=False, updated_at=utc_now())
                )
                await session.commit()
                changed = result.rowcount > 0

        if changed:
            logger.warning(f"{platform.value} connection deactivated")
        return changed
