import pytest
from fastapi.testclient import TestClient

from streambot.services.bot_context import BotContext
from streambot.services.orchestrator import ResponseOrchestrator
from streambot.whatsapp.mock_provider import MockTransport
from tests.fakes import FakeGenerator, FakeStore, model_outage

CHAT = "5215551234567@s.whatsapp.net"

REQUIRED_ROUTES = {
    "/",
    "/status",
    "/webhook",
    "/conversations",
    "/conversations/{chat_id}",
    "/send",
    "/pause/{chat_id}",
    "/settings",
    "/global-pause",
    "/orders",
    "/orders/{order_id}/status",
    "/orders/{order_id}",
    "/scheduled",
    "/scheduled/{message_id}",
    "/scheduled/{message_id}/toggle",
    "/available-accounts",
    "/sync-context",
    "/chat",
    "/api/chatbot",
    "/improve-context",
    "/chat/reset",
    "/internal/metrics",
}


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def bot_env(monkeypatch):
    from streambot import main

    store = FakeStore()
    generator = FakeGenerator(
        replies=['Listo Ana [PEDIDO_CONFIRMADO]{"plataforma":"Netflix","nombre":"Ana","telefono":"5551234567"}']
    )
    bot = BotContext(tenant_id="owner", store=store, generator=generator, transport=MockTransport())
    orchestrator = ResponseOrchestrator(bot, sleep=_no_sleep, rng=lambda low, high: 0.0)
    monkeypatch.setattr(main, "_build_bot", lambda: (bot, orchestrator))

    with TestClient(main.app) as client:
        yield client, bot


def _webhook(text="Quiero Netflix", wa_id="5215551234567", name="Ana"):
    return {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "contacts": [{"wa_id": wa_id, "profile": {"name": name}}],
                            "messages": [
                                {"from": wa_id, "id": "wamid.1", "type": "text", "text": {"body": text}},
                            ],
                        }
                    }
                ]
            }
        ]
    }


def test_app_startup_and_route_registration(bot_env):
    from streambot import main

    client, _ = bot_env
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"name": "streambot", "status": "ok", "missing_env": []}
    assert response.headers["X-Request-ID"]
    assert REQUIRED_ROUTES.issubset(main.app.openapi()["paths"])


def test_webhook_verification(bot_env, monkeypatch):
    from streambot.routers import webhook

    client, _ = bot_env
    monkeypatch.setattr(webhook, "META_WA_VERIFY_TOKEN", "verify-me")

    ok = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "42"})
    denied = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "42"})

    assert ok.status_code == 200
    assert ok.text == "42"
    assert denied.status_code == 403


def test_inbound_webhook_replies_and_creates_order(bot_env):
    client, bot = bot_env

    response = client.post("/webhook", json=_webhook())

    assert response.json() == {"status": "ok", "received": 1}
    assert [sent.text for sent in bot.transport.sent] == ["Listo Ana"]

    orders = client.get("/orders").json()
    assert len(orders) == 1
    assert orders[0]["plataforma"] == "Netflix"
    assert orders[0]["estado"] == "pending"

    conversations = client.get("/conversations").json()
    assert conversations[0]["jid"] == CHAT
    assert conversations[0]["unread"] == 1

    detail = client.get(f"/conversations/{CHAT}").json()
    assert [message["from"] for message in detail["messages"]] == ["customer", "bot"]
    assert client.get("/conversations").json()[0]["unread"] == 0


def test_webhook_without_messages_is_ignored(bot_env):
    client, bot = bot_env

    response = client.post("/webhook", json={"entry": [{"changes": [{"value": {"statuses": []}}]}]})

    assert response.json() == {"status": "ignored"}
    assert bot.transport.sent == []


def test_order_status_and_delete(bot_env):
    client, _ = bot_env
    client.post("/webhook", json=_webhook())
    order_id = client.get("/orders").json()[0]["id"]

    updated = client.post(f"/orders/{order_id}/status", json={"estado": "completed"})
    missing = client.post("/orders/999/status", json={"estado": "completed"})
    deleted = client.delete(f"/orders/{order_id}")
    deleted_again = client.delete(f"/orders/{order_id}")

    assert updated.json()["order"]["estado"] == "completed"
    assert missing.status_code == 404
    assert deleted.json() == {"ok": True}
    assert deleted_again.status_code == 404


def test_manual_send_and_pause(bot_env):
    client, bot = bot_env

    sent = client.post("/send", json={"jid": CHAT, "message": "Hola, soy Pedro"})
    paused = client.post(f"/pause/{CHAT}")
    missing = client.post("/pause/000@s.whatsapp.net")

    assert sent.status_code == 200
    assert bot.transport.sent[-1].text == "Hola, soy Pedro"
    assert paused.json() == {"ok": True, "paused": True}
    assert missing.status_code == 404

    client.post("/webhook", json=_webhook("¿sigues ahí?"))
    assert bot.transport.sent[-1].text == "Hola, soy Pedro"


def test_manual_send_rejected_when_disconnected(bot_env):
    client, bot = bot_env
    bot.transport.disconnect()

    response = client.post("/send", json={"jid": CHAT, "message": "Hola"})

    assert response.status_code == 400


def test_settings_update_persists_best_effort(bot_env):
    client, bot = bot_env

    saved = client.post("/settings", json={"respondGroups": True})
    bot.store.fail = True
    unsaved = client.post("/settings", json={"respondUnsaved": False})

    assert saved.json()["persisted"] is True
    assert bot.store.saved_settings[0]["respondGroups"] is True
    assert unsaved.json()["persisted"] is False
    assert client.get("/settings").json() == {"respondGroups": True, "respondSaved": True, "respondUnsaved": False}


def test_global_pause_toggle(bot_env):
    client, bot = bot_env

    assert client.get("/global-pause").json() == {"paused": False}
    assert client.post("/global-pause").json() == {"ok": True, "paused": True}

    client.post("/webhook", json=_webhook())
    assert bot.transport.sent == []


def test_scheduled_messages_crud(bot_env):
    client, _ = bot_env

    created = client.post(
        "/scheduled",
        json={
            "jid": "120363000000@g.us",
            "message": "Promo",
            "groupName": "Clientes",
            "scheduledTime": "2030-01-01T10:00:00Z",
            "recurring": True,
            "intervalMinutes": 60,
        },
    )
    invalid = client.post("/scheduled", json={"jid": "1@g.us", "message": "x", "scheduledTime": "mañana"})
    no_interval = client.post("/scheduled", json={"jid": "1@g.us", "message": "x", "recurring": True})

    assert created.status_code == 200
    scheduled = created.json()["scheduled"]
    assert scheduled["groupName"] == "Clientes"
    assert scheduled["nextRun"] == 1893492000000
    assert invalid.status_code == 400
    assert no_interval.status_code == 400

    toggled = client.post(f"/scheduled/{scheduled['id']}/toggle")
    assert toggled.json() == {"ok": True, "active": False}
    assert client.delete(f"/scheduled/{scheduled['id']}").json() == {"ok": True}
    assert client.delete(f"/scheduled/{scheduled['id']}").status_code == 404
    assert client.get("/scheduled").json() == []


def test_sync_context_feeds_inventory_and_config(bot_env):
    client, bot = bot_env
    bot.store.fail = True

    response = client.post(
        "/sync-context",
        json={
            "config": {"businessName": "Streaming MX", "fallbackMsg": "Un agente te atiende"},
            "accounts": [
                {"plataforma": "Netflix", "disponibles": 3},
                {"plataforma": "Disney+", "total": 4, "ocupados": 4},
            ],
        },
    )

    assert response.json() == {"ok": True, "config": True, "accounts": 2}
    accounts = client.get("/available-accounts").json()
    assert accounts == [
        {"plataforma": "Netflix", "disponibles": 3, "total": 3, "ocupados": 0},
        {"plataforma": "Disney+", "disponibles": 0, "total": 4, "ocupados": 4},
    ]

    client.post("/webhook", json=_webhook("hola"))
    prompt = bot.generator.calls[-1]["system_prompt"]
    assert "Eres Streaming MX" in prompt
    assert "Disney+: AGOTADO" in prompt


def test_status_reports_counters_and_activity(bot_env):
    client, _ = bot_env
    client.post("/webhook", json=_webhook())

    status = client.get("/status").json()

    assert status["connected"] is True
    assert status["transport"] == "mock"
    assert status["pendingOrders"] == 1
    assert status["conversations"] == 1
    assert status["counters"]["messages_sent"] == 1
    assert status["model"] == "fake-model"
    assert status["activity"]


def test_panel_chat_and_stateless_endpoint(bot_env):
    client, bot = bot_env

    chat = client.post("/chat", json={"message": "Quiero Netflix", "config": {"businessName": "Demo"}})
    stateless = client.post("/api/chatbot", json={"message": "hola"})

    assert chat.json() == {"reply": "Listo Ana"}
    assert bot.orders.list()[0].source_chat_id == "test@panel"
    assert stateless.json() == {"reply": "Listo Ana"}

    bot.generator = model_outage()
    failed = client.post("/api/chatbot", json={"message": "hola"})
    assert failed.status_code == 502


def test_request_metrics_group_chat_paths_by_route(bot_env):
    client, _ = bot_env
    client.post("/webhook", json=_webhook())
    client.get(f"/conversations/{CHAT}")
    client.get("/conversations/000@s.whatsapp.net")

    metrics = client.get("/internal/metrics").json()

    route = metrics["requests"]["GET /conversations/{chat_id}"]
    assert route["total_requests"] >= 2
    assert route["error_count"] >= 1
    assert metrics["bot"]["messages_sent"] == 1
    assert not any(CHAT in key for key in metrics["requests"])


def test_improve_context_returns_rewritten_text(bot_env):
    client, bot = bot_env
    bot.generator = FakeGenerator(replies=["🏪 IDENTIDAD\nStreaming MX\n\n📋 CATÁLOGO\n- Netflix: $89 /mes"])

    improved = client.post("/improve-context", json={"context": "vendo netflix a 89 al mes"})
    empty = client.post("/improve-context", json={"context": "   "})

    assert improved.status_code == 200
    assert improved.json() == {"improvedContext": "🏪 IDENTIDAD\nStreaming MX\n\n📋 CATÁLOGO\n- Netflix: $89 /mes"}
    assert empty.status_code == 400
    call = bot.generator.calls[0]
    assert call["max_tokens"] == 2048
    assert call["turns"][0].text == "vendo netflix a 89 al mes"
    assert call["options"].safety_threshold == "BLOCK_MEDIUM_AND_ABOVE"


def test_improve_context_reports_model_failures(bot_env):
    client, bot = bot_env

    bot.generator = FakeGenerator(replies=["   "])
    blank = client.post("/improve-context", json={"context": "vendo netflix"})
    bot.generator = model_outage()
    failed = client.post("/improve-context", json={"context": "vendo netflix"})

    assert blank.status_code == 502
    assert blank.json()["detail"] == "No se pudo generar una mejora. Intenta de nuevo."
    assert failed.status_code == 502
