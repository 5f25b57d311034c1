from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from streambot.whatsapp.base import TransportError

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    chat_id: str
    text: str
    provider_message_id: str = field(default_factory=lambda: f"mock-{uuid.uuid4().hex[:10]}")


class MockTransport:
    """Canal em memória: registra envios, presença e leituras (dev e testes)."""

    name = "mock"

    def __init__(self, connected: bool = True, fail_sends: int = 0) -> None:
        self._connected = connected
        self.fail_sends = fail_sends
        self.sent: list[SentMessage] = []
        self.presence: list[tuple[str, str]] = []
        self.read: list[tuple[str, Optional[str]]] = []

    @property
    def connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        self._connected = False

    def connect(self) -> None:
        self._connected = True

    async def send_message(self, chat_id: str, text: str) -> None:
        if not self._connected:
            raise TransportError("transport disconnected")
        if self.fail_sends > 0:
            self.fail_sends -= 1
            raise TransportError("mock send failure")
        self.sent.append(SentMessage(chat_id=chat_id, text=text))
        logger.debug("[WA:mock] sent to=%s len=%d", chat_id, len(text))

    async def set_presence(self, chat_id: str, state: str) -> None:
        if not self._connected:
            raise TransportError("transport disconnected")
        self.presence.append((chat_id, state))

    async def mark_read(self, chat_id: str, message_id: Optional[str] = None) -> None:
        if not self._connected:
            raise TransportError("transport disconnected")
        self.read.append((chat_id, message_id))
