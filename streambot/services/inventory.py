from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from streambot.core.timed_cache import TimedCache
from streambot.schemas.bot import InventoryEntry
from streambot.services.tenant_store import AccountRecord, ClientRecord, TenantStore

logger = logging.getLogger(__name__)

DEFAULT_INVENTORY_TTL_SECONDS = 120.0


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_inventory(
    accounts: Iterable[AccountRecord],
    clients: Iterable[ClientRecord],
    now: datetime | None = None,
) -> list[InventoryEntry]:
    """Agrupa perfis por plataforma e desconta clientes com assinatura vigente.

    Clientes de uma plataforma sem conta cadastrada são ignorados. Não se valida
    ocupados <= total; ``available_seats`` já faz o clamp em zero.
    """
    current = _as_aware(now or datetime.now(timezone.utc))
    totals: dict[str, int] = {}
    occupied: dict[str, int] = {}

    for account in accounts:
        totals[account.platform] = totals.get(account.platform, 0) + (account.total_profiles or 0)
        occupied.setdefault(account.platform, 0)

    for client in clients:
        platform = client.platform or ""
        if platform not in totals or client.end_date is None:
            continue
        if _as_aware(client.end_date) > current:
            occupied[platform] += 1

    return [
        InventoryEntry(platform=platform, total_seats=total, occupied_seats=occupied[platform])
        for platform, total in totals.items()
    ]


class InventorySnapshot:
    """Disponibilidade de perfis por plataforma com TTL de 120s."""

    def __init__(
        self,
        store: TenantStore,
        *,
        ttl_seconds: float = DEFAULT_INVENTORY_TTL_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._caches: dict[str, TimedCache[list[InventoryEntry]]] = {}

    def _cache_for(self, tenant_id: str) -> TimedCache[list[InventoryEntry]]:
        cache = self._caches.get(tenant_id)
        if cache is None:
            kwargs = {"clock": self._clock} if self._clock else {}
            cache = TimedCache(self._ttl_seconds, default=[], name=f"inventory[{tenant_id}]", **kwargs)
            self._caches[tenant_id] = cache
        return cache

    async def get_available_accounts(self, tenant_id: str) -> list[InventoryEntry]:
        async def _fetch() -> list[InventoryEntry]:
            accounts, clients = await self._store.fetch_accounts_and_clients(tenant_id)
            return compute_inventory(accounts, clients)

        entries = await self._cache_for(tenant_id).get_or_refresh(_fetch)
        return list(entries or [])

    def set_snapshot(self, tenant_id: str, entries: list[InventoryEntry]) -> None:
        self._cache_for(tenant_id).set(list(entries))
        logger.info("Inventory pushed for tenant=%s (%d platforms)", tenant_id, len(entries))
