import pytest

from streambot.ai.history import normalize_history
from streambot.services.conversations import ConversationNotFoundError, ConversationStore, Message
from streambot.services.text_filters import (
    chat_phone,
    is_group_chat,
    is_ignored_chat,
    is_saved_contact,
    strip_markdown,
    to_chat_id,
)
from tests.fakes import FakeClock

DAY = 24 * 60 * 60


def test_get_or_create_derives_group_flag_and_display_name():
    store = ConversationStore()

    person = store.get_or_create("5215551234567@s.whatsapp.net")
    group = store.get_or_create("120363000000@g.us", "Clientes VIP")

    assert person.is_group is False
    assert person.display_name == "5215551234567"
    assert person.phone == "5215551234567"
    assert group.is_group is True
    assert group.display_name == "Clientes VIP"
    assert store.get_or_create("5215551234567@s.whatsapp.net") is person


def test_conversation_keeps_last_fifty_messages():
    store = ConversationStore()
    conversation = store.get_or_create("5215551234567@s.whatsapp.net")

    for index in range(51):
        store.append(conversation, "customer", f"msg {index}")

    assert len(conversation.messages) == 50
    assert conversation.messages[0].text == "msg 1"
    assert conversation.messages[-1].text == "msg 50"


def test_append_rejects_unknown_speaker():
    store = ConversationStore()
    conversation = store.get_or_create("5215551234567@s.whatsapp.net")

    with pytest.raises(ValueError):
        store.append(conversation, "robot", "hola")


def test_sweep_removes_stale_conversations_but_keeps_paused():
    clock = FakeClock(now=0.0)
    store = ConversationStore(clock=clock)
    stale = store.get_or_create("111@s.whatsapp.net")
    store.append(stale, "customer", "hola")
    paused = store.get_or_create("222@s.whatsapp.net")
    store.append(paused, "customer", "hola")
    paused.paused = True
    clock.advance(DAY - 10)
    recent = store.get_or_create("333@s.whatsapp.net")
    store.append(recent, "customer", "hola")
    clock.advance(20)

    removed = store.sweep()

    assert removed == 1
    assert "111@s.whatsapp.net" not in store
    assert "222@s.whatsapp.net" in store
    assert "333@s.whatsapp.net" in store


def test_open_resets_unread_and_unknown_chat_raises():
    store = ConversationStore()
    conversation = store.get_or_create("111@s.whatsapp.net")
    conversation.unread = 3

    assert store.open("111@s.whatsapp.net").unread == 0
    with pytest.raises(ConversationNotFoundError):
        store.open("999@s.whatsapp.net")


def test_summaries_sorted_by_last_activity():
    clock = FakeClock(now=10.0)
    store = ConversationStore(clock=clock)
    older = store.get_or_create("111@s.whatsapp.net", "Ana")
    store.append(older, "customer", "hola")
    clock.advance(5)
    newer = store.get_or_create("222@s.whatsapp.net", "Luis")
    store.append(newer, "bot", "¿En qué te ayudo?")

    summaries = store.list_summaries()

    assert [item["name"] for item in summaries] == ["Luis", "Ana"]
    assert summaries[0]["lastFrom"] == "bot"
    assert summaries[0]["lastTimestamp"] == 15000


def _msg(speaker, text):
    return Message(speaker=speaker, text=text, timestamp=0.0)


def test_history_drops_leading_model_turns_and_merges_user_turns():
    stored = [_msg("bot", "Hola"), _msg("bot", "¿Sigues ahí?"), _msg("customer", "sí"), _msg("customer", "Netflix")]

    turns = normalize_history(stored, "¿precio?")

    assert [turn.role for turn in turns] == ["user"]
    assert turns[0].text == "sí\nNetflix\n¿precio?"


def test_history_alternates_roles_and_maps_agent_to_model():
    stored = [
        _msg("customer", "hola"),
        _msg("bot", "¡Hola!"),
        _msg("agent", "Soy Pedro"),
        _msg("customer", "quiero Disney"),
    ]

    turns = normalize_history(stored, "¿cuánto cuesta?")

    assert [turn.role for turn in turns] == ["user", "model", "user"]
    assert turns[1].text == "¡Hola!\nSoy Pedro"
    assert turns[2].text == "quiero Disney\n¿cuánto cuesta?"


def test_history_uses_only_the_last_twenty_messages():
    stored = []
    for index in range(30):
        stored.append(_msg("customer", f"c{index}"))
        stored.append(_msg("bot", f"b{index}"))

    turns = normalize_history(stored, "nuevo")

    assert turns[0].text == "c20"
    assert sum(1 for turn in turns if turn.role == "user") == 11
    assert turns[-1].text == "nuevo"


def test_chat_id_helpers():
    assert is_group_chat("123@g.us")
    assert not is_group_chat("123@s.whatsapp.net")
    assert is_ignored_chat("status@broadcast")
    assert chat_phone("5215551234567@s.whatsapp.net") == "5215551234567"
    assert to_chat_id("+5215551234567") == "5215551234567@s.whatsapp.net"


def test_saved_contact_classification():
    assert is_saved_contact("Ana López", "5215551234567") is True
    assert is_saved_contact("5215551234567", "5215551234567") is False
    assert is_saved_contact("+52 1555", "5215551234567") is True
    assert is_saved_contact("+521555", "5215551234567") is False
    assert is_saved_contact(None, "5215551234567") is False


def test_strip_markdown_removes_channel_incompatible_markup():
    text = "# Oferta\n**Netflix** a *buen* precio\n```code```\nListo"

    assert strip_markdown(text) == "Oferta\nNetflix a buen precio\n\nListo"
