# src/eisenhower_sync/notifications/scheduler.py

from __future__ import annotations

"""
Notification scheduler.

schedule_next() is a pure function: given tasks, preferences, the current
instant and the fired ledger it returns the notifications that are due now or
upcoming. Calling it on every tick is safe; ids are deterministic, so a plan
already present in the ledger is never emitted again.

Weekday/hour arithmetic happens in the user's zone (preferences.timezone or
the configured default); ids are bucketed by the UTC date of the fire instant.
"""

from collections.abc import Container, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from enum import StrEnum
from typing import Any

from ..core.timeutil import parse_instant, resolve_zone, to_iso
from ..tasks.task_models import NotificationFrequency, TaskRecord
from .preferences import NotificationPreferences, QuietHours, ReminderTime, default_preferences
from .rules import effective_frequency, should_drift_to_urgent

# A reminder this far in the past still counts as "due right now".
DUE_TOLERANCE = timedelta(minutes=1)


class NotificationType(StrEnum):
    REMINDER = "reminder"
    DRIFT = "drift"


@dataclass(frozen=True, slots=True)
class PlannedNotification:
    id: str
    task_id: str
    fire_at: str
    type: NotificationType
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "fireAt": self.fire_at,
            "type": self.type.value,
            "message": self.message,
        }


def _weekday(dt: datetime) -> int:
    # datetime.weekday(): Monday=0; persisted preferences: Sunday=0.
    return (dt.weekday() + 1) % 7


def _at_hour(dt: datetime, hour: int) -> datetime:
    return dt.replace(hour=hour, minute=0, second=0, microsecond=0)


def next_occurrence(
    frequency: NotificationFrequency,
    now: datetime,
    default_times: dict[NotificationFrequency, ReminderTime],
) -> datetime:
    """
    Next reminder slot for a tier, in now's zone.

    A slot today counts only while its hour has not started yet
    (now.hour < slot hour); otherwise the search moves on.
    - low:    first configured weekday, weekly
    - medium: next of the configured weekdays
    - high:   daily
    """
    config = default_times.get(frequency)
    if config is None:
        frequency = NotificationFrequency.HIGH
        config = default_times.get(frequency) or default_preferences().default_times[frequency]

    today = _weekday(now)
    slot_today = _at_hour(now, config.hour)
    hour_passed = now.hour >= config.hour

    if frequency == NotificationFrequency.LOW:
        target = config.days_of_week[0]
        if today > target or (today == target and hour_passed):
            return slot_today + timedelta(days=7 - today + target)
        return slot_today + timedelta(days=target - today)

    if frequency == NotificationFrequency.MEDIUM:
        days = set(config.days_of_week)
        for offset in range(8):
            if (today + offset) % 7 not in days:
                continue
            if offset == 0 and hour_passed:
                continue
            return slot_today + timedelta(days=offset)

    return slot_today + timedelta(days=1) if hour_passed else slot_today


def adjust_for_quiet_hours(fire_at: datetime, quiet_hours: QuietHours | None) -> datetime:
    """Push `fire_at` to the end of the quiet window when it falls inside it."""
    window = quiet_hours.window() if quiet_hours is not None else None
    if window is None:
        return fire_at

    start, end = window
    minute_of_day = fire_at.hour * 60 + fire_at.minute
    spans_midnight = start > end

    if spans_midnight:
        inside = minute_of_day >= start or minute_of_day < end
    else:
        inside = start <= minute_of_day < end
    if not inside:
        return fire_at

    adjusted = fire_at.replace(hour=end // 60, minute=end % 60, second=0, microsecond=0)
    if spans_midnight and minute_of_day >= start:
        adjusted += timedelta(days=1)
    return adjusted


def notification_id(task_id: str, kind: NotificationType, fire_at_iso: str) -> str:
    """Idempotency key: one id per task, type and UTC calendar day of the fire instant."""
    return f"{task_id}-{kind.value}-{fire_at_iso.split('T')[0]}"


def drift_id(task_id: str) -> str:
    return f"drift-{task_id}"


def _title(task: TaskRecord) -> str:
    return task.title or "Untitled task"


def schedule_next(
    tasks: Iterable[TaskRecord],
    preferences: NotificationPreferences,
    now: datetime,
    fired: Container[str] | None = None,
    *,
    default_zone: tzinfo | None = None,
) -> list[PlannedNotification]:
    now_utc = parse_instant(now)
    if now_utc is None:
        raise TypeError(f"now must be a datetime, got {type(now).__name__}")

    zone = resolve_zone(preferences.timezone) if preferences.timezone else (default_zone or UTC)
    now_local = now_utc.astimezone(zone)
    fired_ids: Container[str] = fired if fired is not None else ()
    planned: list[PlannedNotification] = []

    for task in tasks:
        if task.is_completed or task.is_deleted:
            continue

        if should_drift_to_urgent(task, now_utc):
            nid = drift_id(task.id)
            if nid not in fired_ids:
                planned.append(
                    PlannedNotification(
                        id=nid,
                        task_id=task.id,
                        fire_at=to_iso(now_utc),
                        type=NotificationType.DRIFT,
                        message=f"Task moved to Urgent: {_title(task)} is due soon.",
                    )
                )

        tier = effective_frequency(task, now_utc)
        slot = next_occurrence(tier, now_local, preferences.default_times)
        fire_at = adjust_for_quiet_hours(slot, preferences.quiet_hours).astimezone(UTC)

        if fire_at - now_utc < -DUE_TOLERANCE:
            continue

        fire_iso = to_iso(fire_at)
        nid = notification_id(task.id, NotificationType.REMINDER, fire_iso)
        if nid in fired_ids:
            continue
        planned.append(
            PlannedNotification(
                id=nid,
                task_id=task.id,
                fire_at=fire_iso,
                type=NotificationType.REMINDER,
                message=f"Reminder: {_title(task)}",
            )
        )

    return planned


def due_now(planned: Iterable[PlannedNotification], now: datetime) -> list[PlannedNotification]:
    """Plans whose fire instant has been reached, earliest first."""
    at = parse_instant(now)
    if at is None:
        return []
    due = [p for p in planned if (parse_instant(p.fire_at) or at) <= at]
    return sorted(due, key=lambda p: p.fire_at)
