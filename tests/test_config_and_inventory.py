import asyncio
from datetime import datetime, timedelta, timezone

from streambot.schemas.bot import InventoryEntry, TenantConfig
from streambot.services.config_cache import ConfigCache
from streambot.services.inventory import InventorySnapshot, compute_inventory
from streambot.services.tenant_store import AccountRecord, ClientRecord
from tests.fakes import FakeClock, FakeStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_config_cache_hits_store_once_per_ttl_window():
    store = FakeStore(config={"businessName": "Streaming MX", "maxTokens": 300})
    clock = FakeClock()
    cache = ConfigCache(store, ttl_seconds=60, clock=clock)

    async def scenario():
        first = await cache.get_config("owner")
        clock.advance(30)
        second = await cache.get_config("owner")
        return first, second

    first, second = asyncio.run(scenario())

    assert store.config_calls == 1
    assert first.business_name == "Streaming MX"
    assert first.max_tokens == 300
    assert second is first


def test_config_cache_returns_last_good_config_when_store_fails():
    store = FakeStore(config={"businessName": "Streaming MX"})
    clock = FakeClock()
    cache = ConfigCache(store, ttl_seconds=60, clock=clock)

    async def scenario():
        await cache.get_config("owner")
        store.fail = True
        clock.advance(61)
        return await cache.get_config("owner")

    config = asyncio.run(scenario())

    assert config.business_name == "Streaming MX"
    assert store.config_calls == 2


def test_config_cache_defaults_to_enabled_without_any_good_value():
    store = FakeStore()
    store.fail = True
    cache = ConfigCache(store)

    config = asyncio.run(cache.get_config("owner"))

    assert config.enabled is True
    assert config.business_name is None


def test_config_cache_notifies_listener_with_fresh_config():
    received = []
    store = FakeStore(config={"botSettings": {"respondGroups": True}})
    cache = ConfigCache(store, on_refresh=received.append)

    asyncio.run(cache.get_config("owner"))

    assert len(received) == 1
    assert received[0].bot_settings.respond_groups is True


def test_config_override_is_honored_for_a_full_window():
    store = FakeStore(config={"businessName": "Desde store"})
    clock = FakeClock()
    cache = ConfigCache(store, ttl_seconds=60, clock=clock)
    cache.override("owner", TenantConfig(business_name="Desde panel"))
    clock.advance(59)

    config = asyncio.run(cache.get_config("owner"))

    assert config.business_name == "Desde panel"
    assert store.config_calls == 0


def test_compute_inventory_counts_only_active_subscriptions():
    accounts = [
        AccountRecord(platform="Netflix", total_profiles=5),
        AccountRecord(platform="Netflix", total_profiles=5),
        AccountRecord(platform="Disney+", total_profiles=4),
    ]
    clients = [
        ClientRecord(platform="Netflix", end_date=NOW + timedelta(days=10)),
        ClientRecord(platform="Netflix", end_date=NOW - timedelta(days=1)),
        ClientRecord(platform="Disney+", end_date=NOW + timedelta(days=1)),
        ClientRecord(platform="Disney+", end_date=None),
        ClientRecord(platform="HBO Max", end_date=NOW + timedelta(days=3)),
    ]

    entries = {entry.platform: entry for entry in compute_inventory(accounts, clients, now=NOW)}

    assert set(entries) == {"Netflix", "Disney+"}
    assert entries["Netflix"].total_seats == 10
    assert entries["Netflix"].occupied_seats == 1
    assert entries["Netflix"].available_seats == 9
    assert entries["Disney+"].available_seats == 3


def test_available_seats_never_negative():
    entry = InventoryEntry(platform="Spotify", total_seats=1, occupied_seats=3)

    assert entry.available_seats == 0
    assert entry.to_public() == {"plataforma": "Spotify", "disponibles": 0, "total": 1, "ocupados": 3}


def test_inventory_snapshot_serves_previous_value_on_failure():
    store = FakeStore(accounts=[AccountRecord(platform="Netflix", total_profiles=5)])
    clock = FakeClock()
    snapshot = InventorySnapshot(store, ttl_seconds=120, clock=clock)

    async def scenario():
        first = await snapshot.get_available_accounts("owner")
        store.fail = True
        clock.advance(121)
        second = await snapshot.get_available_accounts("owner")
        return first, second

    first, second = asyncio.run(scenario())

    assert [entry.platform for entry in first] == ["Netflix"]
    assert [entry.platform for entry in second] == ["Netflix"]
    assert store.inventory_calls == 2


def test_inventory_snapshot_empty_when_store_never_answered():
    store = FakeStore()
    store.fail = True
    snapshot = InventorySnapshot(store)

    assert asyncio.run(snapshot.get_available_accounts("owner")) == []


def test_inventory_push_skips_store_for_ttl_window():
    store = FakeStore(accounts=[AccountRecord(platform="Netflix", total_profiles=5)])
    clock = FakeClock()
    snapshot = InventorySnapshot(store, ttl_seconds=120, clock=clock)
    snapshot.set_snapshot("owner", [InventoryEntry(platform="Max", total_seats=2, occupied_seats=0)])
    clock.advance(100)

    entries = asyncio.run(snapshot.get_available_accounts("owner"))

    assert [entry.platform for entry in entries] == ["Max"]
    assert store.inventory_calls == 0
