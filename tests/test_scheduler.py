# tests/test_scheduler.py

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

from eisenhower_sync.core.timeutil import to_iso
from eisenhower_sync.notifications.ledger import FiredLedger
from eisenhower_sync.notifications.preferences import (
    NotificationPreferences,
    QuietHours,
    ReminderTime,
    default_preferences,
)
from eisenhower_sync.notifications.scheduler import (
    NotificationType,
    adjust_for_quiet_hours,
    due_now,
    next_occurrence,
    notification_id,
    schedule_next,
)
from eisenhower_sync.tasks.normalize import mark_completed, mark_deleted, normalize_task
from eisenhower_sync.tasks.task_models import NotificationFrequency

# Saturday
SAT_10 = datetime(2026, 1, 10, 10, 0, tzinfo=UTC)
TIMES = default_preferences().default_times


def _task(task_id: str = "t1", *, urgent=False, important=False, due: datetime | None = None, title="Write report"):
    raw = {"id": task_id, "title": title, "urgent": urgent, "important": important}
    if due is not None:
        raw["dueDate"] = to_iso(due)
    return normalize_task(raw, now=SAT_10)


def _with_high_hour(hour: int) -> NotificationPreferences:
    prefs = default_preferences()
    times = dict(prefs.default_times)
    times[NotificationFrequency.HIGH] = ReminderTime(days_of_week=(0, 1, 2, 3, 4, 5, 6), hour=hour)
    return replace(prefs, default_times=times)


def test_high_tier_today_or_tomorrow() -> None:
    before = SAT_10.replace(hour=8)
    assert next_occurrence(NotificationFrequency.HIGH, before, TIMES) == SAT_10.replace(hour=9)
    assert next_occurrence(NotificationFrequency.HIGH, SAT_10, TIMES) == datetime(2026, 1, 11, 9, tzinfo=UTC)


def test_low_tier_weekly_slot() -> None:
    assert next_occurrence(NotificationFrequency.LOW, SAT_10, TIMES) == datetime(2026, 1, 11, 18, tzinfo=UTC)

    sunday_before = datetime(2026, 1, 11, 17, 0, tzinfo=UTC)
    assert next_occurrence(NotificationFrequency.LOW, sunday_before, TIMES) == datetime(2026, 1, 11, 18, tzinfo=UTC)

    sunday_after = datetime(2026, 1, 11, 19, 0, tzinfo=UTC)
    assert next_occurrence(NotificationFrequency.LOW, sunday_after, TIMES) == datetime(2026, 1, 18, 18, tzinfo=UTC)


def test_medium_tier_next_listed_weekday() -> None:
    assert next_occurrence(NotificationFrequency.MEDIUM, SAT_10, TIMES) == datetime(2026, 1, 12, 9, tzinfo=UTC)

    wednesday_early = datetime(2026, 1, 14, 8, 0, tzinfo=UTC)
    assert next_occurrence(NotificationFrequency.MEDIUM, wednesday_early, TIMES) == datetime(2026, 1, 14, 9, tzinfo=UTC)

    wednesday_late = datetime(2026, 1, 14, 9, 30, tzinfo=UTC)
    assert next_occurrence(NotificationFrequency.MEDIUM, wednesday_late, TIMES) == datetime(2026, 1, 16, 9, tzinfo=UTC)


def test_medium_tier_single_day_wraps_to_next_week() -> None:
    times = dict(TIMES)
    times[NotificationFrequency.MEDIUM] = ReminderTime(days_of_week=(6,), hour=9)
    assert next_occurrence(NotificationFrequency.MEDIUM, SAT_10, times) == datetime(2026, 1, 17, 9, tzinfo=UTC)


def test_quiet_hours_spanning_midnight() -> None:
    quiet = QuietHours("22:00", "08:00")

    late = datetime(2026, 1, 10, 23, 0, tzinfo=UTC)
    assert adjust_for_quiet_hours(late, quiet) == datetime(2026, 1, 11, 8, 0, tzinfo=UTC)

    early = datetime(2026, 1, 10, 3, 0, tzinfo=UTC)
    assert adjust_for_quiet_hours(early, quiet) == datetime(2026, 1, 10, 8, 0, tzinfo=UTC)

    outside = datetime(2026, 1, 10, 8, 0, tzinfo=UTC)
    assert adjust_for_quiet_hours(outside, quiet) == outside


def test_quiet_hours_same_day_window() -> None:
    quiet = QuietHours("12:00", "14:30")
    assert adjust_for_quiet_hours(datetime(2026, 1, 10, 13, 0, tzinfo=UTC), quiet) == datetime(
        2026, 1, 10, 14, 30, tzinfo=UTC
    )
    assert adjust_for_quiet_hours(datetime(2026, 1, 10, 14, 30, tzinfo=UTC), quiet) == datetime(
        2026, 1, 10, 14, 30, tzinfo=UTC
    )


def test_disabled_or_malformed_quiet_hours() -> None:
    at = datetime(2026, 1, 10, 23, 0, tzinfo=UTC)
    assert adjust_for_quiet_hours(at, None) == at
    assert adjust_for_quiet_hours(at, QuietHours("25:00", "08:00")) == at
    assert adjust_for_quiet_hours(at, QuietHours("08:00", "08:00")) == at


def test_reminder_plan_shape() -> None:
    plans = schedule_next([_task(urgent=True, important=True)], default_preferences(), SAT_10.replace(hour=8))

    assert len(plans) == 1
    plan = plans[0]
    assert plan.type == NotificationType.REMINDER
    assert plan.fire_at == "2026-01-10T09:00:00.000Z"
    assert plan.id == "t1-reminder-2026-01-10"
    assert plan.message == "Reminder: Write report"
    assert plan.to_dict()["taskId"] == "t1"


def test_quiet_hours_move_the_plan_and_its_id() -> None:
    # Q3 is low by default; a near due date escalates it to the 23:00 high tier.
    urgent_due = _task(urgent=True, due=SAT_10 + timedelta(days=1))
    (plan,) = schedule_next([urgent_due], _with_high_hour(23), SAT_10)
    assert plan.fire_at == "2026-01-11T08:00:00.000Z"
    assert plan.id == "t1-reminder-2026-01-11"


def test_drift_plan_for_important_task_due_soon() -> None:
    task = _task(important=True, due=SAT_10 + timedelta(hours=26), title="")
    plans = schedule_next([task], default_preferences(), SAT_10)

    drift = [p for p in plans if p.type == NotificationType.DRIFT]
    reminders = [p for p in plans if p.type == NotificationType.REMINDER]
    assert len(drift) == 1
    assert drift[0].id == "drift-t1"
    assert drift[0].fire_at == to_iso(SAT_10)
    assert drift[0].message == "Task moved to Urgent: Untitled task is due soon."
    # Escalated to the daily tier.
    assert reminders[0].fire_at == "2026-01-11T09:00:00.000Z"


def test_scheduling_is_idempotent_with_ledger() -> None:
    tasks = [
        _task("a", important=True, due=SAT_10 + timedelta(hours=10)),
        _task("b", urgent=True, important=True),
        _task("c"),
    ]
    prefs = default_preferences()
    ledger = FiredLedger()

    first = schedule_next(tasks, prefs, SAT_10, ledger)
    assert first
    for plan in first:
        ledger.record(plan.id, SAT_10)

    assert schedule_next(tasks, prefs, SAT_10, ledger) == []
    assert schedule_next(tasks, prefs, SAT_10 + timedelta(seconds=30), ledger) == []


def test_same_inputs_same_plans() -> None:
    tasks = [_task("a"), _task("b", important=True)]
    prefs = default_preferences()
    assert schedule_next(tasks, prefs, SAT_10) == schedule_next(tasks, prefs, SAT_10)


def test_completed_and_deleted_tasks_are_skipped() -> None:
    done = mark_completed(_task("a", urgent=True, important=True), SAT_10)
    gone = mark_deleted(_task("b", urgent=True, important=True), SAT_10)
    assert schedule_next([done, gone], default_preferences(), SAT_10) == []


def test_local_zone_drives_weekday_and_hour() -> None:
    prefs = replace(default_preferences(), timezone="America/New_York")
    # 13:30 UTC is 08:30 in New York (UTC-5 in January).
    now = datetime(2026, 1, 10, 13, 30, tzinfo=UTC)

    (plan,) = schedule_next([_task(urgent=True, important=True)], prefs, now)

    assert plan.fire_at == "2026-01-10T14:00:00.000Z"
    assert plan.id == notification_id("t1", NotificationType.REMINDER, plan.fire_at)


def test_due_now_filters_and_orders() -> None:
    tasks = [_task("a", urgent=True, important=True), _task("b", important=True, due=SAT_10 + timedelta(hours=5))]
    plans = schedule_next(tasks, default_preferences(), SAT_10.replace(hour=8))

    due = due_now(plans, SAT_10.replace(hour=8))
    assert [p.type for p in due] == [NotificationType.DRIFT]

    later = due_now(plans, SAT_10.replace(hour=9))
    assert [p.id for p in later] == ["drift-b", "a-reminder-2026-01-10", "b-reminder-2026-01-10"]
