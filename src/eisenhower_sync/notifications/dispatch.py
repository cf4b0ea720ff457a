# src/eisenhower_sync/notifications/dispatch.py

from __future__ import annotations

"""
Reminder dispatcher.

A small polling loop that:
- loads the current task list,
- asks the scheduler for plans (pure, idempotent),
- delivers the ones whose fire instant has been reached via an injected notifier,
- records delivered ids in the fired ledger and persists it (best-effort).

Plans computed on one tick are remembered until they fire, so a slot that
passes between two ticks is still delivered on the next one.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, tzinfo

from ..core.ports import KeyValueStore, Notifier
from ..core.timeutil import utc_now
from ..tasks.task_models import TaskRecord
from .ledger import FiredLedger, save_ledger
from .preferences import NotificationPreferences
from .scheduler import PlannedNotification, due_now, schedule_next

logger = logging.getLogger(__name__)

TaskSource = Callable[[], Awaitable[Sequence[TaskRecord]] | Sequence[TaskRecord]]
PreferencesSource = NotificationPreferences | Callable[[], NotificationPreferences]


class ReminderDispatcher:
    def __init__(
        self,
        load_tasks: TaskSource,
        notifier: Notifier,
        *,
        preferences: PreferencesSource,
        ledger: FiredLedger,
        ledger_store: KeyValueStore | None = None,
        default_zone: tzinfo | None = None,
    ) -> None:
        self._load_tasks = load_tasks
        self._notifier = notifier
        self._preferences = preferences
        self._ledger = ledger
        self._ledger_store = ledger_store
        self._default_zone = default_zone
        self._pending: dict[str, PlannedNotification] = {}

    @property
    def pending(self) -> list[PlannedNotification]:
        return sorted(self._pending.values(), key=lambda p: p.fire_at)

    def _current_preferences(self) -> NotificationPreferences:
        if isinstance(self._preferences, NotificationPreferences):
            return self._preferences
        return self._preferences()

    async def _fetch_tasks(self) -> Sequence[TaskRecord]:
        result = self._load_tasks()
        if inspect.isawaitable(result):
            result = await result
        return list(result)

    async def tick(self, now: datetime | None = None) -> list[PlannedNotification]:
        """Run one planning + delivery pass. Returns what was delivered."""
        now = now or utc_now()

        try:
            tasks = await self._fetch_tasks()
        except Exception:
            logger.exception("Reminder tick: loading tasks failed")
            return []

        prefs = self._current_preferences()
        if not prefs.delivery_enabled:
            self._pending.clear()
            return []

        planned = schedule_next(tasks, prefs, now, self._ledger, default_zone=self._default_zone)
        fresh = {p.id: p for p in planned}
        due_ids = {p.id for p in due_now(self._pending.values(), now)}

        # Keep plans still in the latest schedule, plus earlier ones that came due since.
        kept = {
            pid: p
            for pid, p in self._pending.items()
            if pid in due_ids and pid not in self._ledger
        }
        kept.update(fresh)
        live_ids = {t.id for t in tasks if not (t.is_completed or t.is_deleted)}
        self._pending = {pid: p for pid, p in kept.items() if p.task_id in live_ids}

        delivered: list[PlannedNotification] = []
        for plan in due_now(self._pending.values(), now):
            try:
                await self._notifier.notify(plan)
            except Exception:
                logger.exception("Reminder delivery failed id=%s", plan.id)
                continue

            self._ledger.record(plan.id, now)
            self._pending.pop(plan.id, None)
            delivered.append(plan)
            logger.info("Reminder delivered id=%s task=%s", plan.id, plan.task_id)

        if delivered and self._ledger_store is not None:
            save_ledger(self._ledger_store, self._ledger)

        return delivered


async def run_reminder_loop(
        dispatcher: ReminderDispatcher,
        *,
        interval_seconds: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
) -> None:
    """
    Simple polling loop around ReminderDispatcher.tick().

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))

    while True:
        try:
            await dispatcher.tick(clock())
        except Exception:
            logger.exception("Reminder tick failed")

        await asyncio.sleep(sleep_s)
