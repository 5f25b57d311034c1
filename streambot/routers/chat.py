from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from streambot.ai.base import ModelError
from streambot.ai.context_improver import improve_business_context
from streambot.deps import get_bot_context, get_orchestrator
from streambot.schemas.bot import ChatTestRequest, ImproveContextRequest, StatelessChatRequest
from streambot.services.bot_context import BotContext
from streambot.services.orchestrator import ResponseOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/chat")
async def panel_test_chat(
    body: ChatTestRequest,
    orchestrator: ResponseOrchestrator = Depends(get_orchestrator),
):
    reply = await orchestrator.test_chat(body.message, body.config, reset=body.reset_history)
    return {"reply": reply}


@router.post("/chat/reset")
def reset_test_chat(orchestrator: ResponseOrchestrator = Depends(get_orchestrator)):
    orchestrator.reset_test_chat()
    return {"ok": True}


@router.post("/api/chatbot")
async def stateless_chatbot(
    body: StatelessChatRequest,
    orchestrator: ResponseOrchestrator = Depends(get_orchestrator),
):
    try:
        reply = await orchestrator.stateless_reply(body.message, body.config)
    except ModelError as exc:
        logger.error("Stateless chatbot failed: %s", exc)
        raise HTTPException(status_code=502, detail="Error communicating with AI")
    return {"reply": reply}


@router.post("/improve-context")
async def improve_context(
    body: ImproveContextRequest,
    bot: BotContext = Depends(get_bot_context),
):
    if not body.context.strip():
        raise HTTPException(status_code=400, detail="Context is required")
    try:
        improved = await improve_business_context(bot.generator, body.context)
    except ModelError as exc:
        logger.error("Context improvement failed: %s", exc)
        raise HTTPException(status_code=502, detail="Error communicating with AI")
    if not improved:
        raise HTTPException(status_code=502, detail="No se pudo generar una mejora. Intenta de nuevo.")
    return {"improvedContext": improved}
