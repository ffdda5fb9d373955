import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from app.api.deps import get_dispatcher
from app.core.config import settings
from app.line.client import validate_signature
from app.services.webhook_service import EventDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def line_webhook(
    request: Request,
    x_line_signature: str | None = Header(default=None),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """LINE Messaging API webhook"""
    body = await request.body()
    if not validate_signature(body, x_line_signature, settings.LINE_CHANNEL_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")

    events = payload.get("events", []) if isinstance(payload, dict) else []
    try:
        await dispatcher.dispatch_all(events)
    except Exception:
        logger.exception("Webhook processing failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    return {"success": True}
