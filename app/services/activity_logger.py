# app/services/activity_logger.py
import logging
from typing import Dict, Any, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.utils import utc_now
from app.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

class ActivityLogger:
    """
    Service for recording cross-list, removal, sale and sync activity.

    Each entry is written in its own short transaction so a failed audit write
    never rolls back (or blocks) the operation being audited.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def log_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        platform: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActivityLog]:
        """
        Log an activity in the system.

        Args:
            action: The action performed (crosslist, remove, sale, sync, link)
            entity_type: The type of entity affected (product, platform_listing, platform)
            entity_id: The ID of the affected entity
            platform: Optional platform name
            details: Optional additional details as a dictionary

        Returns:
            The created ActivityLog instance, or None if the write failed
        """
        try:
            async with self.session_factory() as session:
                log_entry = ActivityLog(
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    platform=platform,
                    details=details,
                    created_at=utc_now(),
                )
                session.add(log_entry)
                await session.commit()

            logger.debug(
                f"Activity logged: {action} {entity_type} {entity_id} "
                f"(platform: {platform or 'N/A'})"
            )
            return log_entry

        except Exception as e:
            logger.error(f"Error logging activity: {str(e)}")
            # Don't raise, as logging should not interrupt the main flow
            return None

    async def log_crosslist(
        self,
        product_id: int,
        platform: str,
        success: bool,
        external_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        return await self.log_activity(
            action="crosslist",
            entity_type="product",
            entity_id=str(product_id),
            platform=platform,
            details={
                "success": success,
                "external_id": external_id,
                "error": error,
            },
        )

    async def log_sync(
        self,
        platform: str,
        status: str,
        details: Dict[str, Any]
    ) -> Optional[ActivityLog]:
        """
        Log a reconciliation pass for one platform.

        Args:
            platform: The platform that was synced
            status: The sync status (success, partial)
            details: Counters from the sync summary
        """
        return await self.log_activity(
            action="sync",
            entity_type="platform",
            entity_id=platform,
            platform=platform,
            details={
                "status": status,
                "synced": details.get("synced", 0),
                "sold": details.get("sold", 0),
                "removed": details.get("removed", 0),
                "errors": details.get("errors", 0),
                "timestamp": utc_now().isoformat()
            }
        )

    async def log_sale(
        self,
        product_id: int,
        platform: str,
        external_id: str,
        details: Dict[str, Any]
    ) -> Optional[ActivityLog]:
        """
        Log a product sale.

        Args:
            product_id: ID of the sold product
            platform: Platform where the sale occurred
            external_id: External listing ID
            details: Sale details (price, closed platforms)
        """
        return await self.log_activity(
            action="sale",
            entity_type="product",
            entity_id=str(product_id),
            platform=platform,
            details={
                "external_id": external_id,
                "sale_date": utc_now().isoformat(),
                **details
            }
        )
