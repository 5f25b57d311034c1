import asyncio

import pytest

from streambot.services.background import scheduler_tick, sweep_once
from streambot.services.bot_context import BotContext
from streambot.services.scheduler import MessageScheduler, ScheduledMessageNotFoundError
from streambot.whatsapp.mock_provider import MockTransport
from tests.fakes import FakeClock, FakeGenerator, FakeStore

GROUP = "120363000000@g.us"
DAY = 24 * 60 * 60


def test_one_shot_message_sends_once_and_deactivates():
    clock = FakeClock(now=0.0)
    scheduler = MessageScheduler(clock=clock)
    transport = MockTransport()
    message = scheduler.create(GROUP, "Promo del día", run_at=100.0, label="Clientes")

    async def scenario():
        early = await scheduler.run_due(transport, now=50.0)
        due = await scheduler.run_due(transport, now=100.0)
        again = await scheduler.run_due(transport, now=200.0)
        return early, due, again

    assert asyncio.run(scenario()) == (0, 1, 0)
    assert message.active is False
    assert message.send_count == 1
    assert [sent.text for sent in transport.sent] == ["Promo del día"]


def test_default_first_run_is_one_minute_ahead():
    clock = FakeClock(now=500.0)
    scheduler = MessageScheduler(clock=clock)

    message = scheduler.create(GROUP, "hola")

    assert message.next_run_at == 560.0
    assert message.label == "120363000000"


def test_recurring_message_advances_by_interval():
    scheduler = MessageScheduler(clock=FakeClock(now=0.0))
    transport = MockTransport()
    message = scheduler.create(GROUP, "Recordatorio", run_at=10.0, recurring=True, interval_minutes=30)

    asyncio.run(scheduler.run_due(transport, now=10.0))

    assert message.active is True
    assert message.next_run_at == 10.0 + 30 * 60
    assert message.to_dict()["intervalMinutes"] == 30


def test_failed_send_stays_due():
    scheduler = MessageScheduler(clock=FakeClock(now=0.0))
    transport = MockTransport(fail_sends=1)
    message = scheduler.create(GROUP, "hola", run_at=0.0)

    async def scenario():
        first = await scheduler.run_due(transport, now=1.0)
        second = await scheduler.run_due(transport, now=2.0)
        return first, second

    assert asyncio.run(scenario()) == (0, 1)
    assert message.send_count == 1


def test_purge_drops_inactive_messages_sent_long_ago():
    scheduler = MessageScheduler(clock=FakeClock(now=0.0))
    sent = scheduler.create(GROUP, "ya enviado", run_at=0.0)
    paused = scheduler.create(GROUP, "pausado sin enviar", run_at=10.0)
    scheduler.toggle(paused.id)

    asyncio.run(scheduler.run_due(MockTransport(), now=0.0))
    removed = scheduler.purge(now=DAY + 1)

    assert removed == 1
    assert [message.id for message in scheduler.list()] == [paused.id]
    assert sent not in scheduler.list()


def test_toggle_rearms_recurring_message():
    clock = FakeClock(now=0.0)
    scheduler = MessageScheduler(clock=clock)
    message = scheduler.create(GROUP, "hola", run_at=10.0, recurring=True, interval_minutes=5)

    scheduler.toggle(message.id)
    clock.advance(1_000)
    scheduler.toggle(message.id)

    assert message.active is True
    assert message.next_run_at == 1_000 + 300


def test_unknown_scheduled_message_raises():
    scheduler = MessageScheduler()

    with pytest.raises(ScheduledMessageNotFoundError):
        scheduler.remove(7)
    with pytest.raises(ScheduledMessageNotFoundError):
        scheduler.toggle(7)


def _bot(transport):
    return BotContext(tenant_id="owner", store=FakeStore(), generator=FakeGenerator(), transport=transport)


def test_scheduler_tick_skipped_while_disconnected():
    transport = MockTransport(connected=False)
    bot = _bot(transport)
    bot.scheduler.create(GROUP, "hola", run_at=0.0)

    assert asyncio.run(scheduler_tick(bot)) == 0

    transport.connect()
    assert asyncio.run(scheduler_tick(bot)) == 1
    assert bot.counters.get("scheduled_sent") == 1


def test_sweep_once_reports_removed_conversations():
    bot = _bot(MockTransport())
    conversation = bot.conversations.get_or_create("111@s.whatsapp.net")
    conversation.last_activity = 0.0

    assert asyncio.run(sweep_once(bot)) == 1
    assert len(bot.conversations) == 0
