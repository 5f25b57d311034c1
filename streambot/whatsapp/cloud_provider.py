from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from streambot.integrations import whatsapp as cloud_api
from streambot.services.text_filters import chat_phone, to_chat_id
from streambot.whatsapp.base import PRESENCE_COMPOSING, InboundMessage, TransportError

logger = logging.getLogger(__name__)


def parse_cloud_webhook(payload: dict[str, Any]) -> list[InboundMessage]:
    messages: list[InboundMessage] = []
    for entry in payload.get("entry", []) or []:
        for change in entry.get("changes", []) or []:
            value = change.get("value") or {}

            names: dict[str, str] = {}
            for contact in value.get("contacts") or []:
                wa_id = contact.get("wa_id")
                name = (contact.get("profile") or {}).get("name")
                if wa_id and name:
                    names[wa_id] = name

            for msg in value.get("messages", []) or []:
                msg_type = msg.get("type") or "text"
                from_number = msg.get("from")
                if not from_number:
                    continue
                text = ""
                if msg_type == "text":
                    text = ((msg.get("text") or {}).get("body")) or ""
                elif msg_type in {"image", "video", "document"}:
                    text = ((msg.get(msg_type) or {}).get("caption")) or ""
                timestamp = msg.get("timestamp")
                messages.append(
                    InboundMessage(
                        chat_id=to_chat_id(from_number),
                        text=text,
                        message_id=msg.get("id"),
                        push_name=names.get(from_number),
                        timestamp=float(timestamp) if timestamp else None,
                    )
                )
    return messages


class CloudWhatsAppTransport:
    """Canal WhatsApp Cloud API (Meta Graph)."""

    name = "cloud"

    def __init__(
        self,
        phone_number_id: Optional[str] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._options: dict[str, Any] = {
            "phone_number_id": phone_number_id,
            "access_token": access_token,
            "transport": transport,
        }
        self._connected = bool(
            (phone_number_id or cloud_api.META_WA_PHONE_NUMBER_ID) and (access_token or cloud_api.META_WA_ACCESS_TOKEN)
        )
        # Cloud API só mostra "digitando" junto com o recibo de leitura de uma mensagem
        self._last_inbound: dict[str, str] = {}

    @property
    def connected(self) -> bool:
        return self._connected

    async def send_message(self, chat_id: str, text: str) -> None:
        try:
            await cloud_api.send_text(chat_phone(chat_id), text, **self._options)
        except (cloud_api.WhatsAppSendError, httpx.HTTPError, RuntimeError) as exc:
            raise TransportError(str(exc)) from exc

    async def mark_read(self, chat_id: str, message_id: Optional[str] = None) -> None:
        if not message_id:
            return
        self._last_inbound[chat_id] = message_id
        try:
            await cloud_api.mark_read(message_id, **self._options)
        except (cloud_api.WhatsAppSendError, httpx.HTTPError, RuntimeError) as exc:
            raise TransportError(str(exc)) from exc

    async def set_presence(self, chat_id: str, state: str) -> None:
        message_id = self._last_inbound.get(chat_id)
        if state != PRESENCE_COMPOSING or not message_id:
            # o indicador some sozinho ao enviar a resposta
            return
        try:
            await cloud_api.mark_read(message_id, typing=True, **self._options)
        except (cloud_api.WhatsAppSendError, httpx.HTTPError, RuntimeError) as exc:
            raise TransportError(str(exc)) from exc
