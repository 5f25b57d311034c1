# streambot/deps.py
from __future__ import annotations

from fastapi import HTTPException, Request, status

from streambot.services.bot_context import BotContext
from streambot.services.orchestrator import ResponseOrchestrator


def get_bot_context(request: Request) -> BotContext:
    """Contexto do bot criado no lifespan do app."""
    bot = getattr(request.app.state, "bot", None)
    if bot is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Bot não inicializado")
    return bot


def get_orchestrator(request: Request) -> ResponseOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Bot não inicializado")
    return orchestrator
