"""
Operator endpoints for linking and unlinking marketplace accounts.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.core.enums import PlatformName
from app.core.exceptions import BaseServiceError, TokenRefreshError
from app.core.utils import utc_now
from app.dependencies import get_services
from app.integrations.setup import ServiceContainer
from app.routes.errors import http_error
from app.schemas.listing import ConnectionSummary
from app.services.auctionflex.auth import AuctionFlexAuthManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/connections", tags=["connections"])

# state -> (platform, PKCE verifier, started_at) for consent redirects still in progress
pending_authorizations: Dict[str, Dict[str, Any]] = {}
AUTHORIZATION_STATE_TTL = timedelta(minutes=15)


def prune_pending_authorizations(now: Optional[datetime] = None) -> int:
    """Forget consent flows the operator never finished."""
    cutoff = (now or utc_now()) - AUTHORIZATION_STATE_TTL
    expired = [state for state, entry in pending_authorizations.items() if entry["started_at"] < cutoff]
    for state in expired:
        del pending_authorizations[state]
    if expired:
        logger.info(f"Dropped {len(expired)} abandoned authorization state(s)")
    return len(expired)


class AuthorizationCallback(BaseModel):
    code: Optional[str] = None
    state: Optional[str] = None
    # AuctionFlex360 only; falls back to configured values
    api_key: Optional[str] = None
    company_id: Optional[str] = None


@router.get("", response_model=List[ConnectionSummary])
async def list_connections(services: ServiceContainer = Depends(get_services)):
    """Platforms with an active credential."""
    return await services.crosslist.get_active_connections()


@router.get("/{platform}/authorize")
async def authorize(platform: PlatformName, services: ServiceContainer = Depends(get_services)):
    """Start the consent flow; returns the URL the operator should open."""
    state = secrets.token_urlsafe(24)
    try:
        url, verifier = services.token_manager.authorization_url(platform, state)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BaseServiceError as e:
        raise http_error(e)

    prune_pending_authorizations()
    pending_authorizations[state] = {
        "platform": platform.value,
        "code_verifier": verifier,
        "started_at": utc_now(),
    }
    logger.info(f"Started {platform.value} authorization (state {state[:6]}...)")
    return {"authorization_url": url, "state": state}


@router.post("/{platform}/callback", response_model=ConnectionSummary)
async def authorization_callback(
    platform: PlatformName,
    payload: AuthorizationCallback,
    services: ServiceContainer = Depends(get_services),
):
    """Finish linking: exchange the code (or validate the API key) and store the credential."""
    try:
        if platform == PlatformName.AUCTIONFLEX:
            auth_manager = services.token_manager.auth_managers.get(platform)
            if not isinstance(auth_manager, AuctionFlexAuthManager):
                raise HTTPException(status_code=400, detail="AuctionFlex360 is not configured")
            grant = await auth_manager.link_with_api_key(payload.api_key, payload.company_id)
            connection = await services.token_manager.link(platform, grant)
        else:
            if not payload.code or not payload.state:
                raise HTTPException(status_code=400, detail="code and state are required")
            prune_pending_authorizations()
            pending = pending_authorizations.pop(payload.state, None)
            if pending is None or pending["platform"] != platform.value:
                raise HTTPException(status_code=400, detail="Unknown or expired authorization state")
            connection = await services.token_manager.complete_authorization(
                platform, payload.code, pending["code_verifier"]
            )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TokenRefreshError as e:
        raise HTTPException(status_code=400, detail={"error": "AuthorizationRejected", "message": str(e)})
    except BaseServiceError as e:
        raise http_error(e)

    if services.activity_logger:
        await services.activity_logger.log_activity(
            action="link", entity_type="platform", entity_id=platform.value, platform=platform.value,
            details={"store_id": connection.store_id},
        )
    return ConnectionSummary(
        platform=platform,
        is_active=connection.is_active,
        state="LINKED",
        store_id=connection.store_id,
        expires_at=connection.expires_at,
    )


@router.delete("/{platform}")
async def disconnect(platform: PlatformName, services: ServiceContainer = Depends(get_services)):
    changed = await services.token_manager.revoke(platform)
    if not changed:
        raise HTTPException(status_code=404, detail=f"{platform.value} is not connected")

    if services.activity_logger:
        await services.activity_logger.log_activity(
            action="unlink", entity_type="platform", entity_id=platform.value, platform=platform.value,
        )
    return {"platform": platform.value, "is_active": False}
