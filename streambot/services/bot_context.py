from __future__ import annotations

import logging
from typing import Optional

from streambot.ai.base import TextGenerator
from streambot.ai.prompt_builder import PromptBuilder
from streambot.core.activity_log import ActivityLog
from streambot.core.metrics import BotCounters
from streambot.schemas.bot import BotSettings, BotSettingsUpdate, InventoryEntry, TenantConfig
from streambot.services.config_cache import ConfigCache, DEFAULT_CONFIG_TTL_SECONDS
from streambot.services.conversations import CONVERSATION_MAX_AGE_SECONDS, ConversationStore
from streambot.services.inventory import DEFAULT_INVENTORY_TTL_SECONDS, InventorySnapshot
from streambot.services.orders import OrderExtractor, OrderLedger
from streambot.services.scheduler import MessageScheduler
from streambot.services.skills import SkillRegistry
from streambot.services.tenant_store import TenantStore
from streambot.whatsapp.base import MessagingTransport

logger = logging.getLogger(__name__)


class BotContext:
    """Estado do processo do bot, construído explicitamente e injetado nos componentes.

    Caches, conversas e pedidos vivem aqui e sobrevivem a reconexões do canal.
    """

    def __init__(
        self,
        *,
        tenant_id: str,
        store: TenantStore,
        generator: TextGenerator,
        transport: MessagingTransport,
        skills: Optional[SkillRegistry] = None,
        config_ttl_seconds: float = DEFAULT_CONFIG_TTL_SECONDS,
        inventory_ttl_seconds: float = DEFAULT_INVENTORY_TTL_SECONDS,
        conversation_max_age_seconds: float = CONVERSATION_MAX_AGE_SECONDS,
        store_available: bool = True,
        missing_env: Optional[list[str]] = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.store = store
        self.generator = generator
        self.transport = transport
        self.store_available = store_available
        self.missing_env = list(missing_env or [])

        self.settings = BotSettings()
        self.global_paused = False

        self.counters = BotCounters()
        self.activity = ActivityLog()
        self.config_cache = ConfigCache(store, ttl_seconds=config_ttl_seconds, on_refresh=self._on_config_refresh)
        self.inventory = InventorySnapshot(store, ttl_seconds=inventory_ttl_seconds)
        self.prompt_builder = PromptBuilder()
        self.conversations = ConversationStore(max_age_seconds=conversation_max_age_seconds)
        self.orders = OrderLedger()
        self.order_extractor = OrderExtractor(self.orders)
        self.scheduler = MessageScheduler()
        self.skills = skills or SkillRegistry()

    def _on_config_refresh(self, config: TenantConfig) -> None:
        if config.bot_settings is not None:
            self.apply_settings(config.bot_settings)

    def apply_settings(self, update: BotSettingsUpdate) -> BotSettings:
        changes = update.model_dump(exclude_none=True)
        if changes:
            self.settings = self.settings.model_copy(update=changes)
        return self.settings

    def toggle_global_pause(self) -> bool:
        self.global_paused = not self.global_paused
        self.activity.add("Bot pausado globalmente" if self.global_paused else "Bot reanudado")
        return self.global_paused

    async def get_config(self) -> TenantConfig:
        return await self.config_cache.get_config(self.tenant_id)

    async def get_available_accounts(self) -> list[InventoryEntry]:
        return await self.inventory.get_available_accounts(self.tenant_id)

    def push_inventory_sync(
        self,
        config: Optional[TenantConfig],
        entries: Optional[list[InventoryEntry]],
    ) -> None:
        """Contexto enviado pelo painel quando o bot não consegue ler o store."""
        if config is not None:
            self.config_cache.override(self.tenant_id, config)
            self.activity.add("Config sincronizada desde panel")
        if entries is not None:
            self.inventory.set_snapshot(self.tenant_id, entries)
            self.activity.add(f"Inventario sincronizado: {len(entries)} plataformas")
        if config is not None or entries is not None:
            self.prompt_builder.invalidate()
