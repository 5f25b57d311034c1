import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from streambot.core.config import META_WA_VERIFY_TOKEN
from streambot.deps import get_orchestrator
from streambot.services.orchestrator import ResponseOrchestrator
from streambot.whatsapp.base import InboundMessage, safe_json, sanitize_payload
from streambot.whatsapp.cloud_provider import parse_cloud_webhook

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/webhook")
async def verify_webhook(request: Request):
    qp = request.query_params
    mode = qp.get("hub.mode")
    token = qp.get("hub.verify_token")
    challenge = qp.get("hub.challenge")

    if mode == "subscribe" and META_WA_VERIFY_TOKEN and token == META_WA_VERIFY_TOKEN:
        return PlainTextResponse(challenge or "")

    raise HTTPException(status_code=403, detail="Verify token inválido")


async def _handle_safely(orchestrator: ResponseOrchestrator, message: InboundMessage) -> None:
    try:
        await orchestrator.handle_inbound(message)
    except Exception:
        logger.exception("Inbound message handling failed chat_id=%s", message.chat_id)


@router.post("/webhook")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    orchestrator: ResponseOrchestrator = Depends(get_orchestrator),
):
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="JSON inválido")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="JSON inválido")

    messages = parse_cloud_webhook(payload)
    if not messages:
        logger.debug("WhatsApp webhook sem mensagens: %s", safe_json(sanitize_payload(payload))[:500])
        return {"status": "ignored"}

    # responde 200 logo; a Meta reenvia o evento se o webhook demorar
    for message in messages:
        background_tasks.add_task(_handle_safely, orchestrator, message)

    return {"status": "ok", "received": len(messages)}
