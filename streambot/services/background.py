from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from streambot.core.config import CONVERSATION_SWEEP_SECONDS, SCHEDULER_TICK_SECONDS
from streambot.services.bot_context import BotContext
from streambot.services.orchestrator import ResponseOrchestrator

logger = logging.getLogger(__name__)


async def sweep_once(bot: BotContext, orchestrator: Optional[ResponseOrchestrator] = None) -> int:
    removed = bot.conversations.sweep()
    if orchestrator is not None:
        orchestrator.prune_locks()
    if removed:
        bot.activity.add(f"🧹 {removed} conversación(es) inactiva(s) eliminada(s)")
    return removed


async def scheduler_tick(bot: BotContext) -> int:
    if not bot.transport.connected:
        return 0
    sent = await bot.scheduler.run_due(bot.transport)
    if sent:
        bot.counters.increment("scheduled_sent", sent)
        bot.activity.add(f"⏰ {sent} mensaje(s) programado(s) enviado(s)")
    return sent


async def _run_every(name: str, interval: float, tick: Callable[[], Awaitable[object]]) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await tick()
        except Exception:
            logger.exception("Background task %s failed", name)


def start_background_tasks(bot: BotContext, orchestrator: ResponseOrchestrator) -> list[asyncio.Task]:
    return [
        asyncio.create_task(
            _run_every("conversation-sweep", CONVERSATION_SWEEP_SECONDS, lambda: sweep_once(bot, orchestrator)),
            name="conversation-sweep",
        ),
        asyncio.create_task(
            _run_every("scheduler", SCHEDULER_TICK_SECONDS, lambda: scheduler_tick(bot)),
            name="scheduler",
        ),
    ]


async def stop_background_tasks(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
