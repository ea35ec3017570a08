from fastapi import APIRouter, Request, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
import logging
import re
from typing import Optional, Tuple

from database.connection import get_db
from app.config import get_settings
from app import services

router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = logging.getLogger(__name__)


@router.get("")
async def verify_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """Meta subscription handshake: echo the challenge when the token matches."""
    expected = get_settings().webhook_verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("✅ [WEBHOOK] Verification succeeded")
        return PlainTextResponse(challenge or "")
    logger.warning(f"❌ [WEBHOOK] Verification failed (mode={mode})")
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("")
async def whatsapp_webhook(request: Request, db: Session = Depends(get_db)):
    """Receive one WhatsApp notification. Always acknowledged with 200."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("[WEBHOOK] Body is not JSON, ignoring")
        return {"status": "ignored"}

    message = _extract_text_message(payload)
    if message is None:
        return {"status": "ignored"}
    from_number, message_text = message
    owner_id = _normalize_phone(from_number)
    if not owner_id:
        return {"status": "ignored"}

    logger.info(f"📞 [WEBHOOK] From {owner_id}: '{message_text[:100]}'")
    try:
        reply = await services.message_processor.process_message(owner_id, message_text, db)
    except Exception:
        # Acknowledge receipt so the platform does not redeliver, but send no reply
        logger.exception(f"[WEBHOOK] Processing failed for {owner_id}")
        return JSONResponse(status_code=200, content={"status": "error"})

    if reply:
        await services.whatsapp_client.send_message(owner_id, reply)
    return {"status": "processed"}


def _extract_text_message(payload) -> Optional[Tuple[str, str]]:
    """(sender, text) for the first text message in a notification, else None."""
    if not isinstance(payload, dict):
        return None
    try:
        value = payload["entry"][0]["changes"][0]["value"]
        message = value["messages"][0]
    except (KeyError, IndexError, TypeError):
        # Status callbacks (delivered/read) carry no messages
        return None
    if message.get("type", "text") != "text":
        logger.info(f"[WEBHOOK] Ignoring non-text message of type {message.get('type')}")
        return None
    sender = str(message.get("from") or "").strip()
    text = str((message.get("text") or {}).get("body") or "").strip()
    if not sender or not text:
        return None
    return sender, text


def _normalize_phone(phone: str) -> str:
    """WhatsApp ids are international digits without '+'; keep digits only."""
    return re.sub(r"[^\d]", "", phone or "")
