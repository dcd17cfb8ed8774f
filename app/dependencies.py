from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session
from app.integrations.setup import ServiceContainer


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_services(request: Request) -> ServiceContainer:
    """Service graph built in the application lifespan."""
    return request.app.state.services
