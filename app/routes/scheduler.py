"""
Scheduler management endpoints
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any

from app.core.security import get_current_username
from app.scheduler import trigger_sync_manually, get_scheduler_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("/status", response_model=Dict[str, Any])
async def scheduler_status(
    current_user: str = Depends(get_current_username)
):
    """Get current scheduler status and configured jobs"""
    return await get_scheduler_status()


@router.post("/trigger-sync")
async def trigger_sync(
    current_user: str = Depends(get_current_username)
):
    """Run the reconciliation job now"""
    logger.info(f"User {current_user} manually triggered reconciliation")
    summary = await trigger_sync_manually()
    if summary is None:
        raise HTTPException(status_code=503, detail="Reconciliation service not initialised")
    return {"status": "success", "summary": summary}
