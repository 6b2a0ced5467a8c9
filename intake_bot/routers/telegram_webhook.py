import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from intake_bot.dependencies import get_pipeline
from intake_bot.logging_config import get_logger
from intake_bot.pipeline import IntakePipeline
from intake_bot.schemas.telegram import TelegramWebhookResponse
from intake_bot.services.dispatcher import decode_update

logger = get_logger("telegram_webhook")

router = APIRouter()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


async def parse_telegram_update(request: Request) -> Optional[dict]:
    """
    Parse Telegram update with tolerant decoding to avoid utf-8 crashes.
    Returns dict or None.
    """
    try:
        return await request.json()
    except Exception as e:
        logger.warning(f"Standard request.json() failed: {e}, fallback decoding")

    raw = await request.body()
    for enc in ("utf-8", "latin-1"):
        try:
            decoded = raw.decode(enc, errors="replace")
            return json.loads(decoded)
        except Exception:
            continue

    logger.error("Failed to decode Telegram webhook payload after fallbacks")
    return None


@router.post("/telegram/webhook", response_model=TelegramWebhookResponse)
async def handle_telegram_webhook(request: Request, pipeline: IntakePipeline = Depends(get_pipeline)):
    """
    Accept a pushed update and hand it to the dispatcher.

    Responds as soon as the update is queued; confirmation outcomes never
    affect the response.
    """
    expected_secret = pipeline.settings.webhook_secret
    if expected_secret and request.headers.get(SECRET_HEADER) != expected_secret:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook secret")

    body = await parse_telegram_update(request)
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid telegram payload")

    try:
        update = decode_update(body)
    except ValidationError as e:
        logger.warning(f"Rejecting malformed update: {e.error_count()} validation errors")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed telegram update")

    logger.debug(f"Telegram webhook received update {update.update_id}")
    pipeline.dispatcher.submit(update)
    return TelegramWebhookResponse(success=True, message="Accepted")
