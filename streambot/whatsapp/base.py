from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Protocol

PRESENCE_COMPOSING = "composing"
PRESENCE_PAUSED = "paused"


class TransportError(RuntimeError):
    """Falha ao entregar algo pelo canal (desconectado, HTTP != 2xx)."""


@dataclass
class InboundMessage:
    chat_id: str
    text: str
    message_id: Optional[str] = None
    push_name: Optional[str] = None
    from_me: bool = False
    timestamp: Optional[float] = None


class MessagingTransport(Protocol):
    name: str

    @property
    def connected(self) -> bool:
        ...

    async def send_message(self, chat_id: str, text: str) -> None:
        ...

    async def set_presence(self, chat_id: str, state: str) -> None:
        ...

    async def mark_read(self, chat_id: str, message_id: Optional[str] = None) -> None:
        ...


SENSITIVE_KEYS = {"access_token", "verify_token", "authorization", "token", "key"}


def _mask_value(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"****{text[-4:]}"


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _sanitize_value(key, inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    def _sanitize_value(key: str, value: Any) -> Any:
        if key.lower() in SENSITIVE_KEYS:
            return _mask_value(value)
        return _sanitize(value)

    return _sanitize(payload)


def safe_json(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        return "{}"
