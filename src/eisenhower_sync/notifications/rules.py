# src/eisenhower_sync/notifications/rules.py

"""
Notification rules.

Pure predicates over a single task:
- effective_frequency: stored tier, escalated to "high" when due within 4 days
- should_drift_to_urgent: important-only task due within 48 hours
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..core.timeutil import parse_instant
from ..tasks.task_models import NotificationFrequency, Quadrant, TaskRecord

ESCALATION_WINDOW = timedelta(days=4)
DRIFT_WINDOW = timedelta(hours=48)


def _until_due(task: TaskRecord, now: datetime) -> timedelta | None:
    if not task.due_date:
        return None
    due = parse_instant(task.due_date)
    at = parse_instant(now)
    if due is None or at is None:
        return None
    return due - at


def effective_frequency(task: TaskRecord, now: datetime) -> NotificationFrequency:
    """
    Escalation only ever raises the tier: an unparseable or distant due date
    keeps the stored tier, including "high".
    """
    base = task.notification_frequency or NotificationFrequency.LOW
    remaining = _until_due(task, now)
    if remaining is not None and timedelta(0) <= remaining <= ESCALATION_WINDOW:
        return NotificationFrequency.HIGH
    return base


def should_drift_to_urgent(task: TaskRecord, now: datetime) -> bool:
    if task.quadrant != Quadrant.Q2:
        return False
    remaining = _until_due(task, now)
    if remaining is None:
        return False
    return timedelta(0) <= remaining <= DRIFT_WINDOW
