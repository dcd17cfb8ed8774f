import logging

from fastapi import APIRouter, HTTPException, Depends, Request

from app.core.config import get_webhook_secret
from app.core.enums import PlatformName
from app.core.exceptions import BaseServiceError
from app.core.security import verify_signature
from app.dependencies import get_services
from app.integrations.setup import ServiceContainer
from app.routes.errors import http_error
from app.schemas.listing import SaleNotification

logger = logging.getLogger(__name__)
router = APIRouter()


async def verify_webhook_signature(request: Request, webhook_secret: str = Depends(get_webhook_secret)):
    """Verify the HMAC-SHA256 signature of the raw body"""
    if not webhook_secret:
        raise HTTPException(status_code=503, detail="Webhook secret not configured")

    signature = request.headers.get("X-Webhook-Signature")
    if not signature:
        raise HTTPException(status_code=401, detail="No signature provided")

    body = await request.body()
    if not verify_signature(webhook_secret, body, signature):
        raise HTTPException(status_code=401, detail="Invalid signature")


@router.post("/webhooks/{platform}/sale")
async def platform_sale_webhook(
    platform: PlatformName,
    payload: SaleNotification,
    services: ServiceContainer = Depends(get_services),
    _: None = Depends(verify_webhook_signature),
):
    """Receive a sale notification from a marketplace and run the sold/cascade path"""
    logger.info(f"Sale webhook from {platform.value} for listing {payload.external_id}")
    try:
        summary = await services.reconciliation.record_external_sale(
            platform, payload.external_id, payload.sale_amount
        )
    except BaseServiceError as e:
        raise http_error(e)

    return {"status": "received", "summary": summary.model_dump()}
