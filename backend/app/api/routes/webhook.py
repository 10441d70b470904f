"""Telegram webhook receiver. Only used when WEBHOOK_URL is configured."""
import logging

from fastapi import APIRouter, Request

from app.core.exceptions import BusinessError
from app.telegram.bot import process_webhook_update

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/telegram")
async def telegram_webhook(request: Request):
    payload = await request.json()
    if not await process_webhook_update(payload):
        logger.warning("[TELEGRAM] Webhook update received while the bot is not running")
        raise BusinessError.not_found("Bot")
    return {"success": True}
