from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Optional

from streambot.services.text_filters import chat_phone, is_group_chat

logger = logging.getLogger(__name__)

MAX_MESSAGES_PER_CONVERSATION = 50
CONVERSATION_MAX_AGE_SECONDS = 24 * 60 * 60

SPEAKERS = {"customer", "bot", "agent"}


class ConversationNotFoundError(LookupError):
    pass


@dataclass
class Message:
    speaker: str
    text: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.speaker, "text": self.text, "timestamp": int(self.timestamp * 1000)}


@dataclass
class Conversation:
    chat_id: str
    display_name: str
    phone: str
    is_group: bool
    messages: Deque[Message] = field(default_factory=lambda: deque(maxlen=MAX_MESSAGES_PER_CONVERSATION))
    paused: bool = False
    last_activity: float = 0.0
    unread: int = 0

    def summary(self) -> dict[str, Any]:
        last = self.messages[-1] if self.messages else None
        return {
            "jid": self.chat_id,
            "name": self.display_name,
            "phone": self.phone,
            "isGroup": self.is_group,
            "paused": self.paused,
            "unread": self.unread,
            "lastTimestamp": int(self.last_activity * 1000),
            "lastMessage": last.text[:100] if last else "",
            "lastFrom": last.speaker if last else "",
            "messageCount": len(self.messages),
        }

    def detail(self) -> dict[str, Any]:
        return {
            "jid": self.chat_id,
            "name": self.display_name,
            "phone": self.phone,
            "isGroup": self.is_group,
            "paused": self.paused,
            "messages": [message.to_dict() for message in self.messages],
        }


class ConversationStore:
    """Conversas em memória por chat_id, com histórico limitado e limpeza por idade."""

    def __init__(
        self,
        *,
        max_age_seconds: float = CONVERSATION_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._conversations: dict[str, Conversation] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._conversations

    def now(self) -> float:
        return self._clock()

    def get_or_create(self, chat_id: str, display_name_hint: Optional[str] = None) -> Conversation:
        conversation = self._conversations.get(chat_id)
        if conversation is None:
            phone = chat_phone(chat_id)
            conversation = Conversation(
                chat_id=chat_id,
                display_name=display_name_hint or phone,
                phone=phone,
                is_group=is_group_chat(chat_id),
                last_activity=self._clock(),
            )
            self._conversations[chat_id] = conversation
        elif display_name_hint and display_name_hint != conversation.phone:
            conversation.display_name = display_name_hint
        return conversation

    def get(self, chat_id: str) -> Conversation:
        conversation = self._conversations.get(chat_id)
        if conversation is None:
            raise ConversationNotFoundError(chat_id)
        return conversation

    def append(self, conversation: Conversation, speaker: str, text: str) -> Message:
        if speaker not in SPEAKERS:
            raise ValueError(f"unknown speaker: {speaker}")
        message = Message(speaker=speaker, text=text, timestamp=self._clock())
        conversation.messages.append(message)
        conversation.last_activity = message.timestamp
        return message

    def toggle_pause(self, chat_id: str) -> bool:
        conversation = self.get(chat_id)
        conversation.paused = not conversation.paused
        return conversation.paused

    def open(self, chat_id: str) -> Conversation:
        """Leitura pelo painel: zera o contador de não lidas."""
        conversation = self.get(chat_id)
        conversation.unread = 0
        return conversation

    def list_summaries(self) -> list[dict[str, Any]]:
        conversations = sorted(self._conversations.values(), key=lambda conv: conv.last_activity, reverse=True)
        return [conversation.summary() for conversation in conversations]

    def sweep(self, now: Optional[float] = None) -> int:
        """Remove conversas inativas há mais de 24h; pausadas nunca são removidas."""
        cutoff = (self._clock() if now is None else now) - self.max_age_seconds
        stale = [
            chat_id
            for chat_id, conversation in self._conversations.items()
            if conversation.last_activity < cutoff and not conversation.paused
        ]
        for chat_id in stale:
            del self._conversations[chat_id]
        if stale:
            logger.info("Swept %d inactive conversation(s)", len(stale))
        return len(stale)
