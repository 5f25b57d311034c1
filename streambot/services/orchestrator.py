from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from streambot.ai.base import ModelError
from streambot.ai.history import normalize_history
from streambot.ai.prompt_builder import render_system_prompt
from streambot.core.config import GEMINI_TIMEOUT_SECONDS, REPLY_DELAY_MAX_SECONDS, REPLY_DELAY_MIN_SECONDS
from streambot.core.request_context import set_request_context
from streambot.schemas.bot import TenantConfig
from streambot.services.bot_context import BotContext
from streambot.services.conversations import Conversation, Message
from streambot.services.orders import strip_order_tags
from streambot.services.text_filters import is_ignored_chat, is_saved_contact, strip_markdown
from streambot.whatsapp.base import PRESENCE_COMPOSING, PRESENCE_PAUSED, InboundMessage, TransportError

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 600
STATELESS_MAX_TOKENS = 512
TEST_CHAT_LIMIT = 30
TEST_CHAT_ID = "test@panel"
TEST_CHAT_NAME = "Cliente de prueba"
TEST_CHAT_PHONE = "Test"

MODEL_UNAVAILABLE_REPLY = "Lo siento, no pude procesar tu mensaje en este momento."
EMPTY_MODEL_REPLY = "Lo siento, no pude generar una respuesta."
ERROR_REPLY = "Lo siento, hubo un error. Un agente te atenderá pronto."

SleepFn = Callable[[float], Awaitable[None]]


class ResponseOrchestrator:
    """Decide se e como responder cada mensagem recebida.

    Mensagens do mesmo chat são processadas uma de cada vez (lock por chat);
    chats diferentes rodam em paralelo.
    """

    def __init__(
        self,
        bot: BotContext,
        *,
        reply_delay: tuple[float, float] = (REPLY_DELAY_MIN_SECONDS, REPLY_DELAY_MAX_SECONDS),
        model_timeout: float = GEMINI_TIMEOUT_SECONDS,
        sleep: SleepFn = asyncio.sleep,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.bot = bot
        self.reply_delay = reply_delay
        self.model_timeout = model_timeout
        self._sleep = sleep
        self._rng = rng
        self._locks: dict[str, asyncio.Lock] = {}
        self._test_history: Deque[Message] = deque(maxlen=TEST_CHAT_LIMIT)

    def _lock_for(self, chat_id: str) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock

    def prune_locks(self) -> int:
        """Descarta locks de chats que já saíram do ConversationStore."""
        stale = [
            chat_id
            for chat_id, lock in self._locks.items()
            if not lock.locked() and chat_id not in self.bot.conversations
        ]
        for chat_id in stale:
            del self._locks[chat_id]
        return len(stale)

    async def handle_inbound(self, message: InboundMessage) -> Optional[str]:
        """Processa uma mensagem recebida; devolve o texto enviado ou None se ignorada."""
        if message.from_me or is_ignored_chat(message.chat_id):
            return None
        text = (message.text or "").strip()
        if not text:
            return None

        set_request_context(tenant_id=self.bot.tenant_id, chat_id=message.chat_id)
        async with self._lock_for(message.chat_id):
            return await self._handle(message, text)

    async def _handle(self, message: InboundMessage, text: str) -> Optional[str]:
        bot = self.bot
        conversation = bot.conversations.get_or_create(message.chat_id, message.push_name)
        history = list(conversation.messages)
        bot.conversations.append(conversation, "customer", text)
        conversation.unread += 1
        bot.counters.increment("messages_received")
        bot.activity.add(f"📩 {conversation.display_name}: {text[:60]}")

        settings = bot.settings
        if conversation.is_group:
            if not settings.respond_groups:
                logger.info("Group message ignored (respond_groups disabled)")
                return None
        else:
            saved = is_saved_contact(message.push_name, conversation.phone)
            if saved and not settings.respond_saved:
                logger.info("Saved contact ignored (respond_saved disabled)")
                return None
            if not saved and not settings.respond_unsaved:
                logger.info("Unsaved contact ignored (respond_unsaved disabled)")
                return None

        if conversation.paused:
            logger.info("Conversation paused, agent in charge")
            return None
        if bot.global_paused:
            logger.info("Bot globally paused")
            return None

        config = await bot.get_config()
        if not config.enabled:
            logger.info("Bot disabled in tenant config")
            return None

        return await self._respond(conversation, message, text, config, history)

    async def _respond(
        self,
        conversation: Conversation,
        message: InboundMessage,
        text: str,
        config: TenantConfig,
        history: list[Message],
    ) -> str:
        bot = self.bot
        try:
            await bot.transport.mark_read(conversation.chat_id, message.message_id)
            await bot.transport.set_presence(conversation.chat_id, PRESENCE_COMPOSING)

            skill_result = await bot.skills.dispatch(text)
            if skill_result is not None:
                bot.counters.increment("skill_replies")
                bot.activity.add(f"🛠️ Skill {skill_result.skill} respondió a {conversation.display_name}")
                reply, from_model = skill_result.response, False
            else:
                reply, from_model = await self._ask_model(text, config, history)

            extraction = bot.order_extractor.extract(
                reply,
                chat_id=conversation.chat_id,
                display_name=conversation.display_name,
                phone=conversation.phone,
            )
            reply = extraction.cleaned_text
            if extraction.order is not None:
                order = extraction.order
                bot.counters.increment("orders_created")
                bot.activity.add(f"🛒 Pedido #{order.id}: {order.platform} para {order.customer_name}")
            if from_model:
                reply = strip_markdown(reply)

            await self._sleep(self._rng(*self.reply_delay))
            await bot.transport.set_presence(conversation.chat_id, PRESENCE_PAUSED)
            await bot.transport.send_message(conversation.chat_id, reply)
        except Exception as exc:
            logger.exception("Failed to answer %s", conversation.chat_id)
            bot.activity.add(f"❌ Error respondiendo a {conversation.display_name}: {exc}", logging.ERROR)
            fallback = config.fallback_message or ERROR_REPLY
            try:
                await bot.transport.send_message(conversation.chat_id, fallback)
            except Exception as send_exc:
                logger.error("Fallback send failed for %s: %s", conversation.chat_id, send_exc)
            bot.conversations.append(conversation, "bot", fallback)
            return fallback

        bot.conversations.append(conversation, "bot", reply)
        bot.counters.increment("messages_sent")
        bot.activity.add(f"🤖 Respuesta a {conversation.display_name}: {reply[:60]}")
        return reply

    async def _ask_model(
        self,
        text: str,
        config: TenantConfig,
        history: list[Message],
    ) -> tuple[str, bool]:
        """Chama o modelo; devolve (texto, veio_do_modelo). Falhas viram a mensagem de fallback."""
        bot = self.bot
        system_prompt = await bot.prompt_builder.build_system_prompt(config, bot.get_available_accounts)
        turns = normalize_history(history, text)
        try:
            raw = await asyncio.wait_for(
                bot.generator.generate(system_prompt, turns, config.max_tokens or DEFAULT_MAX_TOKENS),
                timeout=self.model_timeout,
            )
        except (ModelError, asyncio.TimeoutError) as exc:
            logger.error("Model call failed: %s", str(exc) or "timeout")
            bot.counters.increment("model_failures")
            return config.fallback_message or MODEL_UNAVAILABLE_REPLY, False

        if not (raw or "").strip():
            logger.warning("Model returned an empty reply")
            return config.fallback_message or EMPTY_MODEL_REPLY, False
        return raw, True

    async def send_manual(self, chat_id: str, text: str) -> Message:
        """Resposta escrita por um agente humano no painel."""
        bot = self.bot
        if not bot.transport.connected:
            raise TransportError("Bot no conectado")
        await bot.transport.send_message(chat_id, text)
        conversation = bot.conversations.get_or_create(chat_id)
        message = bot.conversations.append(conversation, "agent", text)
        bot.activity.add(f"👤 Respuesta manual a {conversation.display_name}")
        return message

    async def test_chat(self, text: str, config: Optional[TenantConfig] = None, reset: bool = False) -> str:
        """Chat de teste do painel: histórico próprio, sem transporte."""
        bot = self.bot
        if reset:
            self._test_history.clear()
        config = config or await bot.get_config()
        history = list(self._test_history)
        self._test_history.append(Message(speaker="customer", text=text, timestamp=bot.conversations.now()))

        reply, from_model = await self._ask_model(text, config, history)
        extraction = bot.order_extractor.extract(
            reply,
            chat_id=TEST_CHAT_ID,
            display_name=TEST_CHAT_NAME,
            phone=TEST_CHAT_PHONE,
        )
        reply = extraction.cleaned_text
        if extraction.order is not None:
            bot.activity.add(f"🛒 Pedido de prueba #{extraction.order.id}: {extraction.order.platform}")
        if from_model:
            reply = strip_markdown(reply)
        self._test_history.append(Message(speaker="bot", text=reply, timestamp=bot.conversations.now()))
        return reply

    def reset_test_chat(self) -> None:
        self._test_history.clear()

    async def stateless_reply(self, text: str, config: Optional[TenantConfig] = None) -> str:
        """Resposta avulsa (sem histórico); erros do modelo sobem como ModelError."""
        bot = self.bot
        config = config or await bot.get_config()
        inventory = await bot.get_available_accounts()
        system_prompt = render_system_prompt(config, inventory)
        turns = normalize_history([], text)
        try:
            raw = await asyncio.wait_for(
                bot.generator.generate(system_prompt, turns, config.max_tokens or STATELESS_MAX_TOKENS),
                timeout=self.model_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ModelError(f"model timeout after {self.model_timeout}s") from exc
        reply = strip_markdown(strip_order_tags(raw or ""))
        return reply or config.fallback_message or EMPTY_MODEL_REPLY
