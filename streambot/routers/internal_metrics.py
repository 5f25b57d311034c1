from __future__ import annotations

from fastapi import APIRouter, Depends

from streambot.core.metrics import request_metrics
from streambot.deps import get_bot_context
from streambot.services.bot_context import BotContext

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def bot_metrics(bot: BotContext = Depends(get_bot_context)):
    return {
        "requests": request_metrics.snapshot(),
        "bot": bot.counters.snapshot(),
    }
