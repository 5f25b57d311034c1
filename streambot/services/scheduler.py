from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from streambot.services.text_filters import chat_phone

if TYPE_CHECKING:
    from streambot.whatsapp.base import MessagingTransport

logger = logging.getLogger(__name__)

DEFAULT_FIRST_RUN_DELAY_SECONDS = 60.0
INACTIVE_RETENTION_SECONDS = 24 * 60 * 60


class ScheduledMessageNotFoundError(LookupError):
    pass


@dataclass
class ScheduledMessage:
    id: int
    chat_id: str
    text: str
    label: str
    next_run_at: float
    recurring: bool
    interval_seconds: float
    active: bool
    created_at: float
    last_sent_at: Optional[float] = None
    send_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "jid": self.chat_id,
            "groupName": self.label,
            "message": self.text,
            "recurring": self.recurring,
            "intervalMinutes": self.interval_seconds / 60 if self.interval_seconds else 0,
            "intervalMs": int(self.interval_seconds * 1000),
            "nextRun": int(self.next_run_at * 1000),
            "active": self.active,
            "createdAt": int(self.created_at * 1000),
            "lastSent": int(self.last_sent_at * 1000) if self.last_sent_at else None,
            "sendCount": self.send_count,
        }


class MessageScheduler:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._messages: list[ScheduledMessage] = []
        self._ids = itertools.count(1)

    def list(self) -> list[ScheduledMessage]:
        return list(self._messages)

    def create(
        self,
        chat_id: str,
        text: str,
        *,
        run_at: Optional[float] = None,
        recurring: bool = False,
        interval_minutes: float = 0,
        label: Optional[str] = None,
    ) -> ScheduledMessage:
        now = self._clock()
        interval_seconds = interval_minutes * 60 if recurring and interval_minutes else 0.0
        message = ScheduledMessage(
            id=next(self._ids),
            chat_id=chat_id,
            text=text,
            label=label or chat_phone(chat_id),
            next_run_at=run_at if run_at is not None else now + DEFAULT_FIRST_RUN_DELAY_SECONDS,
            recurring=bool(recurring),
            interval_seconds=interval_seconds,
            active=True,
            created_at=now,
        )
        self._messages.append(message)
        return message

    def get(self, message_id: int) -> ScheduledMessage:
        for message in self._messages:
            if message.id == message_id:
                return message
        raise ScheduledMessageNotFoundError(message_id)

    def remove(self, message_id: int) -> ScheduledMessage:
        message = self.get(message_id)
        self._messages.remove(message)
        return message

    def toggle(self, message_id: int) -> ScheduledMessage:
        message = self.get(message_id)
        message.active = not message.active
        if message.active and message.recurring and message.interval_seconds > 0:
            message.next_run_at = self._clock() + message.interval_seconds
        return message

    async def run_due(self, transport: "MessagingTransport", now: Optional[float] = None) -> int:
        """Envia as mensagens vencidas; devolve quantas foram enviadas."""
        current = self._clock() if now is None else now
        sent = 0
        for message in list(self._messages):
            if not message.active or current < message.next_run_at:
                continue
            try:
                await transport.send_message(message.chat_id, message.text)
            except Exception as exc:
                logger.error("Scheduled message #%s failed: %s", message.id, exc)
                continue
            sent += 1
            message.last_sent_at = current
            message.send_count += 1
            if message.recurring and message.interval_seconds > 0:
                message.next_run_at = current + message.interval_seconds
            else:
                message.active = False
        self.purge(current)
        return sent

    def purge(self, now: Optional[float] = None) -> int:
        current = self._clock() if now is None else now
        cutoff = current - INACTIVE_RETENTION_SECONDS
        before = len(self._messages)
        self._messages = [
            message
            for message in self._messages
            if message.active or message.last_sent_at is None or message.last_sent_at > cutoff
        ]
        return before - len(self._messages)
