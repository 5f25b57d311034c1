from __future__ import annotations

import re

GROUP_SUFFIX = "@g.us"
USER_SUFFIX = "@s.whatsapp.net"
BROADCAST_CHAT_ID = "status@broadcast"

_DIGITS_RE = re.compile(r"^\+?\d+$")

_MD_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_MD_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_MD_ITALIC_RE = re.compile(r"\*(.+?)\*")
_MD_HEADING_RE = re.compile(r"^#+\s", re.MULTILINE)


def is_group_chat(chat_id: str) -> bool:
    return chat_id.endswith(GROUP_SUFFIX)


def is_ignored_chat(chat_id: str) -> bool:
    return chat_id == BROADCAST_CHAT_ID or chat_id.endswith("@broadcast")


def chat_phone(chat_id: str) -> str:
    """'5215551234567@s.whatsapp.net' -> '5215551234567'"""
    return chat_id.split("@", 1)[0]


def to_chat_id(phone: str) -> str:
    if "@" in phone:
        return phone
    return f"{phone.lstrip('+')}{USER_SUFFIX}"


def is_saved_contact(display_name: str | None, phone: str) -> bool:
    """Contato salvo: tem nome, diferente do número e não é só dígitos.

    >>> is_saved_contact("Ana", "5551234567")
    True
    >>> is_saved_contact("+5551234567", "5551234567")
    False
    """
    if not display_name:
        return False
    if display_name == phone:
        return False
    return not _DIGITS_RE.match(display_name)


def strip_markdown(text: str) -> str:
    """Remove marcações que o WhatsApp mostraria literalmente.

    >>> strip_markdown("**Netflix** disponible")
    'Netflix disponible'
    """
    cleaned = _MD_CODE_BLOCK_RE.sub("", text)
    cleaned = _MD_BOLD_RE.sub(r"\1", cleaned)
    cleaned = _MD_ITALIC_RE.sub(r"\1", cleaned)
    cleaned = _MD_HEADING_RE.sub("", cleaned)
    return cleaned.strip()
