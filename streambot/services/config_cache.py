from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from streambot.core.timed_cache import TimedCache
from streambot.schemas.bot import TenantConfig
from streambot.services.tenant_store import TenantStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_TTL_SECONDS = 60.0

ConfigListener = Callable[[TenantConfig], None]


class ConfigCache:
    """Cache da configuração do bot por tenant (TTL de 60s, fallback no último valor bom)."""

    def __init__(
        self,
        store: TenantStore,
        *,
        ttl_seconds: float = DEFAULT_CONFIG_TTL_SECONDS,
        on_refresh: Optional[ConfigListener] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._on_refresh = on_refresh
        self._clock = clock
        self._caches: dict[str, TimedCache[TenantConfig]] = {}

    def _cache_for(self, tenant_id: str) -> TimedCache[TenantConfig]:
        cache = self._caches.get(tenant_id)
        if cache is None:
            kwargs = {"clock": self._clock} if self._clock else {}
            cache = TimedCache(
                self._ttl_seconds,
                default=TenantConfig(),
                name=f"config[{tenant_id}]",
                **kwargs,
            )
            self._caches[tenant_id] = cache
        return cache

    async def get_config(self, tenant_id: str) -> TenantConfig:
        cache = self._cache_for(tenant_id)

        async def _fetch() -> TenantConfig | None:
            raw = await self._store.fetch_config(tenant_id)
            if raw is None:
                # sem config salva: estado padrão válido (enabled=True)
                return None
            try:
                config = TenantConfig.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Invalid bot config for tenant=%s: %s", tenant_id, exc)
                return None
            logger.info("Bot config reloaded from store (tenant=%s)", tenant_id)
            self._notify(config)
            return config

        config = await cache.get_or_refresh(_fetch)
        return config or TenantConfig()

    def override(self, tenant_id: str, config: TenantConfig) -> None:
        """Config enviada pelo painel; vale por uma janela inteira de TTL."""
        self._cache_for(tenant_id).set(config)
        self._notify(config)

    def peek(self, tenant_id: str) -> TenantConfig:
        cache = self._caches.get(tenant_id)
        if cache is None or cache.value is None:
            return TenantConfig()
        return cache.value

    def _notify(self, config: TenantConfig) -> None:
        if self._on_refresh is None:
            return
        try:
            self._on_refresh(config)
        except Exception:
            logger.exception("Config refresh listener failed")
