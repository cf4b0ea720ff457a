# tests/test_dispatch.py

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from eisenhower_sync.core.timeutil import to_iso
from eisenhower_sync.notifications.dispatch import ReminderDispatcher, run_reminder_loop
from eisenhower_sync.notifications.ledger import LEDGER_KEY, FiredLedger
from eisenhower_sync.notifications.preferences import default_preferences
from eisenhower_sync.notifications.scheduler import NotificationType
from eisenhower_sync.tasks.normalize import mark_completed, normalize_task

from .fakes import FakeNotifier, InMemoryKeyValueStore

SAT_08 = datetime(2026, 1, 10, 8, 0, tzinfo=UTC)


def _task(task_id: str = "t1", *, urgent=True, important=True, due: datetime | None = None):
    raw = {"id": task_id, "title": "Pay rent", "urgent": urgent, "important": important}
    if due is not None:
        raw["dueDate"] = to_iso(due)
    return normalize_task(raw, now=SAT_08)


def _dispatcher(tasks, notifier, *, kv=None, prefs=None, ledger=None) -> ReminderDispatcher:
    return ReminderDispatcher(
        lambda: tasks,
        notifier,
        preferences=prefs or default_preferences(),
        ledger=ledger if ledger is not None else FiredLedger(),
        ledger_store=kv,
    )


@pytest.mark.asyncio
async def test_plan_is_delivered_once_when_its_time_comes() -> None:
    notifier = FakeNotifier()
    kv = InMemoryKeyValueStore()
    dispatcher = _dispatcher([_task()], notifier, kv=kv)

    assert await dispatcher.tick(SAT_08) == []
    assert [p.id for p in dispatcher.pending] == ["t1-reminder-2026-01-10"]

    # The 09:00 slot has passed by the next tick; the remembered plan still fires.
    delivered = await dispatcher.tick(SAT_08 + timedelta(hours=1, seconds=20))
    assert [p.id for p in delivered] == ["t1-reminder-2026-01-10"]
    assert [n.message for n in notifier.delivered] == ["Reminder: Pay rent"]
    assert "t1-reminder-2026-01-10" in json.loads(kv.data[LEDGER_KEY])

    assert await dispatcher.tick(SAT_08 + timedelta(hours=1, seconds=50)) == []
    assert len(notifier.delivered) == 1


@pytest.mark.asyncio
async def test_drift_is_delivered_immediately() -> None:
    notifier = FakeNotifier()
    task = _task(urgent=False, due=SAT_08 + timedelta(hours=20))
    dispatcher = _dispatcher([task], notifier)

    delivered = await dispatcher.tick(SAT_08)

    assert [p.type for p in delivered] == [NotificationType.DRIFT]
    assert await dispatcher.tick(SAT_08 + timedelta(seconds=30)) == []


@pytest.mark.asyncio
async def test_failed_delivery_is_retried_next_tick() -> None:
    notifier = FakeNotifier(fail=True)
    ledger = FiredLedger()
    task = _task(urgent=False, due=SAT_08 + timedelta(hours=20))
    dispatcher = _dispatcher([task], notifier, ledger=ledger)

    assert await dispatcher.tick(SAT_08) == []
    assert "drift-t1" not in ledger

    notifier.fail = False
    delivered = await dispatcher.tick(SAT_08 + timedelta(seconds=30))
    assert [p.id for p in delivered] == ["drift-t1"]
    assert "drift-t1" in ledger


@pytest.mark.asyncio
async def test_nothing_is_delivered_when_reminders_are_off() -> None:
    notifier = FakeNotifier()
    prefs = replace(default_preferences(), in_app_reminders=False, browser_notifications=False)
    task = _task(urgent=False, due=SAT_08 + timedelta(hours=20))
    dispatcher = _dispatcher([task], notifier, prefs=prefs)

    assert await dispatcher.tick(SAT_08) == []
    assert notifier.delivered == []


@pytest.mark.asyncio
async def test_completing_a_task_drops_its_pending_plan() -> None:
    notifier = FakeNotifier()
    tasks = [_task()]
    dispatcher = _dispatcher(tasks, notifier)

    await dispatcher.tick(SAT_08)
    assert dispatcher.pending

    tasks[0] = mark_completed(tasks[0], SAT_08)
    assert await dispatcher.tick(SAT_08 + timedelta(hours=2)) == []
    assert dispatcher.pending == []


@pytest.mark.asyncio
async def test_task_loading_failure_is_survived() -> None:
    def broken():
        raise RuntimeError("store gone")

    dispatcher = ReminderDispatcher(
        broken,
        FakeNotifier(),
        preferences=default_preferences(),
        ledger=FiredLedger(),
    )
    assert await dispatcher.tick(SAT_08) == []


@pytest.mark.asyncio
async def test_async_task_source_and_preferences_callable() -> None:
    notifier = FakeNotifier()
    task = _task(urgent=False, due=SAT_08 + timedelta(hours=20))

    async def load():
        return [task]

    dispatcher = ReminderDispatcher(
        load,
        notifier,
        preferences=default_preferences,
        ledger=FiredLedger(),
    )
    assert len(await dispatcher.tick(SAT_08)) == 1


@pytest.mark.asyncio
async def test_reminder_loop_delivers_and_stops_on_cancel() -> None:
    notifier = FakeNotifier()
    task = _task(urgent=False, due=SAT_08 + timedelta(hours=20))
    dispatcher = _dispatcher([task], notifier)

    runner = asyncio.create_task(run_reminder_loop(dispatcher, interval_seconds=0.5, clock=lambda: SAT_08))
    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert [n.id for n in notifier.delivered] == ["drift-t1"]
