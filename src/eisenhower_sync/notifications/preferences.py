# src/eisenhower_sync/notifications/preferences.py

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import StorageUnavailable
from ..core.ports import KeyValueStore
from ..tasks.task_models import NotificationFrequency

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "eisenhower.notificationPreferences.v1"

# Weekdays follow the persisted convention: 0 = Sunday ... 6 = Saturday.
SUNDAY, MONDAY, WEDNESDAY, FRIDAY = 0, 1, 3, 5
ALL_DAYS = (0, 1, 2, 3, 4, 5, 6)


def parse_hhmm(raw: Any) -> int | None:
    """Parse "HH:MM" into minutes since midnight; None when malformed."""
    if not isinstance(raw, str):
        return None
    parts = raw.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hh, mm = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hh <= 23 and 0 <= mm <= 59):
        return None
    return hh * 60 + mm


@dataclass(frozen=True, slots=True)
class QuietHours:
    start: str = "22:00"
    end: str = "08:00"

    def window(self) -> tuple[int, int] | None:
        start, end = parse_hhmm(self.start), parse_hhmm(self.end)
        if start is None or end is None or start == end:
            return None
        return start, end


@dataclass(frozen=True, slots=True)
class ReminderTime:
    days_of_week: tuple[int, ...]
    hour: int

    def to_dict(self, *, single_day: bool = False) -> dict[str, Any]:
        if single_day and len(self.days_of_week) == 1:
            return {"dayOfWeek": self.days_of_week[0], "hour": self.hour}
        return {"daysOfWeek": list(self.days_of_week), "hour": self.hour}

    @classmethod
    def from_dict(cls, raw: Any, fallback: ReminderTime) -> ReminderTime:
        if not isinstance(raw, dict):
            return fallback

        hour = raw.get("hour", fallback.hour)
        if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
            hour = fallback.hour

        days: tuple[int, ...] = fallback.days_of_week
        if "daysOfWeek" in raw and isinstance(raw["daysOfWeek"], list):
            parsed = tuple(sorted({d for d in raw["daysOfWeek"] if isinstance(d, int) and 0 <= d <= 6}))
            days = parsed or fallback.days_of_week
        elif isinstance(raw.get("dayOfWeek"), int) and 0 <= raw["dayOfWeek"] <= 6:
            days = (raw["dayOfWeek"],)

        return cls(days_of_week=days, hour=hour)


def _default_times() -> dict[NotificationFrequency, ReminderTime]:
    return {
        NotificationFrequency.LOW: ReminderTime(days_of_week=(SUNDAY,), hour=18),
        NotificationFrequency.MEDIUM: ReminderTime(days_of_week=(MONDAY, WEDNESDAY, FRIDAY), hour=9),
        NotificationFrequency.HIGH: ReminderTime(days_of_week=ALL_DAYS, hour=9),
    }


@dataclass(frozen=True, slots=True)
class NotificationPreferences:
    """
    User-level notification settings.

    quiet_hours=None disables the quiet window. timezone=None means "use the
    configured default zone" (see Settings.timezone).
    """

    quiet_hours: QuietHours | None = field(default_factory=QuietHours)
    in_app_reminders: bool = True
    browser_notifications: bool = False
    default_times: dict[NotificationFrequency, ReminderTime] = field(default_factory=_default_times)
    timezone: str | None = None

    @property
    def delivery_enabled(self) -> bool:
        return self.in_app_reminders or self.browser_notifications

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "quietHours": (
                None
                if self.quiet_hours is None
                else {"start": self.quiet_hours.start, "end": self.quiet_hours.end}
            ),
            "inAppReminders": self.in_app_reminders,
            "browserNotifications": self.browser_notifications,
            "defaultTimes": {
                freq.value: rt.to_dict(single_day=freq == NotificationFrequency.LOW)
                for freq, rt in self.default_times.items()
            },
        }
        if self.timezone:
            out["timezone"] = self.timezone
        return out


def default_preferences() -> NotificationPreferences:
    return NotificationPreferences()


def preferences_from_dict(raw: Any) -> NotificationPreferences:
    """Overlay a stored preferences dict onto the defaults, ignoring malformed parts."""
    defaults = default_preferences()
    if not isinstance(raw, dict):
        return defaults

    quiet: QuietHours | None = defaults.quiet_hours
    if "quietHours" in raw:
        q = raw["quietHours"]
        if q is None:
            quiet = None
        elif isinstance(q, dict):
            base = defaults.quiet_hours or QuietHours()
            quiet = QuietHours(
                start=str(q.get("start", base.start)),
                end=str(q.get("end", base.end)),
            )

    times = dict(defaults.default_times)
    stored_times = raw.get("defaultTimes")
    if isinstance(stored_times, dict):
        for freq in NotificationFrequency:
            if freq.value in stored_times:
                times[freq] = ReminderTime.from_dict(stored_times[freq.value], times[freq])

    def _flag(name: str, default: bool) -> bool:
        v = raw.get(name)
        return v if isinstance(v, bool) else default

    tz = raw.get("timezone")
    return NotificationPreferences(
        quiet_hours=quiet,
        in_app_reminders=_flag("inAppReminders", defaults.in_app_reminders),
        browser_notifications=_flag("browserNotifications", defaults.browser_notifications),
        default_times=times,
        timezone=tz if isinstance(tz, str) and tz.strip() else None,
    )


def load_preferences(store: KeyValueStore) -> NotificationPreferences:
    try:
        raw = store.get(PREFERENCES_KEY)
    except StorageUnavailable:
        logger.exception("Failed to load notification preferences; using defaults")
        return default_preferences()
    if not raw:
        return default_preferences()
    try:
        return preferences_from_dict(json.loads(raw))
    except json.JSONDecodeError:
        logger.error("Notification preferences are corrupt; using defaults")
        return default_preferences()


def save_preferences(store: KeyValueStore, prefs: NotificationPreferences) -> bool:
    try:
        store.set(PREFERENCES_KEY, json.dumps(prefs.to_dict()))
        return True
    except StorageUnavailable:
        logger.exception("Failed to save notification preferences")
        return False
