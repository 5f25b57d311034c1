from __future__ import annotations

from typing import Any, Optional, Sequence

from streambot.ai.base import ModelError
from streambot.services.tenant_store import AccountRecord, ClientRecord, StoreUnavailableError


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    def __init__(
        self,
        config: Optional[dict[str, Any]] = None,
        accounts: Optional[list[AccountRecord]] = None,
        clients: Optional[list[ClientRecord]] = None,
    ):
        self.config = config
        self.accounts = accounts or []
        self.clients = clients or []
        self.fail = False
        self.config_calls = 0
        self.inventory_calls = 0
        self.saved_settings: list[dict[str, Any]] = []

    async def fetch_config(self, tenant_id: str) -> dict[str, Any] | None:
        self.config_calls += 1
        if self.fail:
            raise StoreUnavailableError("store offline")
        return self.config

    async def save_bot_settings(self, tenant_id: str, settings: dict[str, Any]) -> None:
        if self.fail:
            raise StoreUnavailableError("store offline")
        self.saved_settings.append(settings)

    async def fetch_accounts_and_clients(self, tenant_id: str):
        self.inventory_calls += 1
        if self.fail:
            raise StoreUnavailableError("store offline")
        return list(self.accounts), list(self.clients)


class FakeGenerator:
    name = "fake"
    model = "fake-model"

    def __init__(self, replies: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or ["Hola, ¿qué plataforma te interesa?"])
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def generate(self, system_prompt: str, turns: Sequence, max_tokens: int, options: Any = None) -> str:
        self.calls.append(
            {"system_prompt": system_prompt, "turns": list(turns), "max_tokens": max_tokens, "options": options}
        )
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


def model_outage() -> FakeGenerator:
    return FakeGenerator(error=ModelError("Gemini error (503): unavailable", status_code=503))
