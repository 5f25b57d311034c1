from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from streambot.deps import get_bot_context, get_orchestrator
from streambot.schemas.bot import (
    BotSettingsUpdate,
    ManualReplyRequest,
    OrderStatusUpdate,
    ScheduledMessageCreate,
    SyncContextRequest,
)
from streambot.services.bot_context import BotContext
from streambot.services.conversations import ConversationNotFoundError
from streambot.services.orchestrator import ResponseOrchestrator
from streambot.services.orders import OrderNotFoundError
from streambot.services.scheduler import ScheduledMessageNotFoundError
from streambot.services.tenant_store import StoreUnavailableError
from streambot.whatsapp.base import TransportError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/status")
def bot_status(bot: BotContext = Depends(get_bot_context)):
    return {
        "connected": bot.transport.connected,
        "transport": getattr(bot.transport, "name", "unknown"),
        "globalPaused": bot.global_paused,
        "settings": bot.settings.model_dump(by_alias=True),
        "conversations": len(bot.conversations),
        "pendingOrders": bot.orders.pending_count(),
        "totalOrders": len(bot.orders),
        "scheduled": len(bot.scheduler.list()),
        "counters": bot.counters.snapshot(),
        "model": getattr(bot.generator, "model", getattr(bot.generator, "name", "unknown")),
        "hasGeminiKey": "GEMINI_API_KEY" not in bot.missing_env,
        "storeAvailable": bot.store_available,
        "missingEnv": bot.missing_env,
        "activity": bot.activity.recent(30),
    }


# Conversas
@router.get("/conversations")
def list_conversations(bot: BotContext = Depends(get_bot_context)):
    return bot.conversations.list_summaries()


@router.get("/conversations/{chat_id}")
def get_conversation(chat_id: str, bot: BotContext = Depends(get_bot_context)):
    try:
        conversation = bot.conversations.open(chat_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversación no encontrada")
    return conversation.detail()


@router.post("/send")
async def send_manual_reply(
    body: ManualReplyRequest,
    orchestrator: ResponseOrchestrator = Depends(get_orchestrator),
):
    try:
        message = await orchestrator.send_manual(body.chat_id, body.message)
    except TransportError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"ok": True, "message": message.to_dict()}


@router.post("/pause/{chat_id}")
def toggle_conversation_pause(chat_id: str, bot: BotContext = Depends(get_bot_context)):
    try:
        paused = bot.conversations.toggle_pause(chat_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversación no encontrada")
    bot.activity.add(f"{'⏸️ Pausado' if paused else '▶️ Reanudado'}: {chat_id}")
    return {"ok": True, "paused": paused}


# Configurações
@router.get("/settings")
def get_settings(bot: BotContext = Depends(get_bot_context)):
    return bot.settings.model_dump(by_alias=True)


@router.post("/settings")
async def update_settings(body: BotSettingsUpdate, bot: BotContext = Depends(get_bot_context)):
    settings = bot.apply_settings(body)
    persisted = True
    try:
        await bot.store.save_bot_settings(bot.tenant_id, settings.model_dump(by_alias=True))
    except StoreUnavailableError as exc:
        # a config vale em memória mesmo sem store
        persisted = False
        logger.warning("Bot settings not persisted: %s", exc)
    bot.activity.add("⚙️ Ajustes de respuesta actualizados")
    return {"ok": True, "persisted": persisted, "settings": settings.model_dump(by_alias=True)}


@router.get("/global-pause")
def get_global_pause(bot: BotContext = Depends(get_bot_context)):
    return {"paused": bot.global_paused}


@router.post("/global-pause")
def toggle_global_pause(bot: BotContext = Depends(get_bot_context)):
    return {"ok": True, "paused": bot.toggle_global_pause()}


# Pedidos
@router.get("/orders")
def list_orders(bot: BotContext = Depends(get_bot_context)):
    return [order.to_dict() for order in reversed(bot.orders.list())]


@router.post("/orders/{order_id}/status")
def update_order_status(
    order_id: int,
    body: Optional[OrderStatusUpdate] = None,
    bot: BotContext = Depends(get_bot_context),
):
    try:
        order = bot.orders.update_status(order_id, body.status if body else None)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Pedido no encontrado")
    return {"ok": True, "order": order.to_dict()}


@router.delete("/orders/{order_id}")
def delete_order(order_id: int, bot: BotContext = Depends(get_bot_context)):
    try:
        bot.orders.remove(order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Pedido no encontrado")
    return {"ok": True}


# Mensagens programadas
def _parse_run_at(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        # sem fuso: hora local do servidor
        return datetime.fromisoformat(value).timestamp()
    except ValueError:
        raise HTTPException(status_code=400, detail="scheduledTime inválido")


@router.get("/scheduled")
def list_scheduled(bot: BotContext = Depends(get_bot_context)):
    return [message.to_dict() for message in bot.scheduler.list()]


@router.post("/scheduled")
def create_scheduled(body: ScheduledMessageCreate, bot: BotContext = Depends(get_bot_context)):
    if body.recurring and body.interval_minutes <= 0:
        raise HTTPException(status_code=400, detail="intervalMinutes requerido para mensajes recurrentes")
    message = bot.scheduler.create(
        body.chat_id,
        body.message,
        run_at=_parse_run_at(body.scheduled_time),
        recurring=body.recurring,
        interval_minutes=body.interval_minutes,
        label=body.label,
    )
    bot.activity.add(f"⏰ Mensaje programado #{message.id} para {message.label}")
    return {"ok": True, "scheduled": message.to_dict()}


@router.delete("/scheduled/{message_id}")
def delete_scheduled(message_id: int, bot: BotContext = Depends(get_bot_context)):
    try:
        bot.scheduler.remove(message_id)
    except ScheduledMessageNotFoundError:
        raise HTTPException(status_code=404, detail="Mensaje programado no encontrado")
    return {"ok": True}


@router.post("/scheduled/{message_id}/toggle")
def toggle_scheduled(message_id: int, bot: BotContext = Depends(get_bot_context)):
    try:
        message = bot.scheduler.toggle(message_id)
    except ScheduledMessageNotFoundError:
        raise HTTPException(status_code=404, detail="Mensaje programado no encontrado")
    return {"ok": True, "active": message.active}


# Inventário
@router.get("/available-accounts")
async def available_accounts(bot: BotContext = Depends(get_bot_context)):
    entries = await bot.get_available_accounts()
    return [entry.to_public() for entry in entries]


@router.post("/sync-context")
def sync_context(body: SyncContextRequest, bot: BotContext = Depends(get_bot_context)):
    entries = [item.to_entry() for item in body.accounts] if body.accounts is not None else None
    bot.push_inventory_sync(body.config, entries)
    return {
        "ok": True,
        "config": body.config is not None,
        "accounts": len(entries) if entries is not None else 0,
    }
