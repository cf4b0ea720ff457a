# src/eisenhower_sync/tasks/normalize.py

"""
Record normalizer.

Turns anything resembling a task (legacy shapes, remote payloads, imported
files) into a fully populated TaskRecord. Merge and scheduling only ever see
TaskRecord instances produced here.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..core.errors import MalformedRecord
from ..core.timeutil import from_epoch_ms, is_number, to_iso, utc_now
from .device import current_device_id
from .task_models import KNOWN_KEYS, NotificationFrequency, Quadrant, TaskRecord, quadrant_of

logger = logging.getLogger(__name__)

# Keys that are dropped instead of being carried in TaskRecord.extra.
_DERIVED_KEYS = frozenset({"quadrant"})


def derive_default_frequency(quadrant: Quadrant) -> NotificationFrequency:
    if quadrant == Quadrant.Q1:
        return NotificationFrequency.HIGH
    if quadrant == Quadrant.Q2:
        return NotificationFrequency.MEDIUM
    return NotificationFrequency.LOW


def _instant(value: Any) -> str | None:
    # Strings are left exactly as stored.
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return to_iso(value)
    if is_number(value):
        return from_epoch_ms(value)
    return None


def _now_iso(now: datetime | str | None) -> str:
    if now is None:
        return to_iso(utc_now())
    if isinstance(now, str):
        return now
    return to_iso(now)


def require_fields(raw: Any) -> None:
    """
    Minimum shape a persisted/imported record must have to be worth keeping:
    an object with an id and a title (or the legacy "name").
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"task must be an object, got {type(raw).__name__}")
    if raw.get("id") is None or raw.get("id") == "":
        raise MalformedRecord("task missing required field: id")
    if raw.get("title") is None and raw.get("name") is None:
        raise MalformedRecord(f"task {raw.get('id')!r} missing required field: title")


def normalize_task(
    raw: Mapping[str, Any] | TaskRecord | None,
    *,
    now: datetime | str | None = None,
    device_id: str | None = None,
) -> TaskRecord:
    """
    Return the canonical record for `raw`.

    Raises MalformedRecord only when `raw` is absent or not an object; every
    missing or broken field is repaired with its default instead.
    """
    if raw is None:
        raise MalformedRecord("task is required")
    if isinstance(raw, TaskRecord):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"task must be an object, got {type(raw).__name__}")

    now_iso = _now_iso(now)

    raw_id = raw.get("id")
    task_id = str(uuid.uuid4()) if raw_id is None or raw_id == "" else str(raw_id)

    title_raw = raw.get("title")
    used_name = False
    if title_raw is None and raw.get("name") is not None:
        title_raw = raw.get("name")
        used_name = True
    title = "" if title_raw is None else str(title_raw)

    urgent = raw.get("urgent") is True
    important = raw.get("important") is True

    created_at = _instant(raw.get("createdAt")) or now_iso
    updated_at = _instant(raw.get("updatedAt")) or created_at

    revision_raw = raw.get("revision")
    revision = max(0, int(revision_raw)) if is_number(revision_raw) else 0

    estimate_raw = raw.get("estimateMinutesTotal")
    estimate = int(estimate_raw) if is_number(estimate_raw) and estimate_raw >= 0 else None

    priority_raw = raw.get("priority")
    priority = None if priority_raw is None else str(priority_raw)

    device_raw = raw.get("deviceId")
    if isinstance(device_raw, str) and device_raw:
        device = device_raw
    else:
        device = device_id or current_device_id()

    frequency = NotificationFrequency.parse(raw.get("notificationFrequency"))
    if frequency is None:
        frequency = derive_default_frequency(quadrant_of(urgent, important))

    extra = {
        k: v
        for k, v in raw.items()
        if k not in KNOWN_KEYS and k not in _DERIVED_KEYS and not (used_name and k == "name")
    }

    return TaskRecord(
        id=task_id,
        title=title,
        urgent=urgent,
        important=important,
        notification_frequency=frequency,
        created_at=created_at,
        updated_at=updated_at,
        device_id=device,
        revision=revision,
        priority=priority,
        estimate_minutes_total=estimate,
        due_date=_instant(raw.get("dueDate")),
        deleted_at=_instant(raw.get("deletedAt")),
        completed_at=_instant(raw.get("completedAt")),
        extra=extra,
    )


# ---- mutation helpers (one call = one replica-local mutation) ----


def touch(task: TaskRecord, now: datetime | str | None = None, **changes: Any) -> TaskRecord:
    """Apply `changes`, bump revision by exactly one and stamp updatedAt."""
    return dataclasses.replace(
        task,
        **changes,
        revision=task.revision + 1,
        updated_at=_now_iso(now),
    )


def mark_deleted(task: TaskRecord, now: datetime | str | None = None) -> TaskRecord:
    stamp = _now_iso(now)
    return touch(task, stamp, deleted_at=stamp)


def mark_completed(task: TaskRecord, now: datetime | str | None = None) -> TaskRecord:
    stamp = _now_iso(now)
    return touch(task, stamp, completed_at=stamp)


def create_task(
    title: str,
    *,
    urgent: bool = False,
    important: bool = False,
    now: datetime | str | None = None,
    device_id: str | None = None,
    **fields: Any,
) -> TaskRecord:
    """New record with a fresh id; `fields` use wire (camelCase) keys."""
    stamp = _now_iso(now)
    raw = {
        **fields,
        "title": title,
        "urgent": urgent,
        "important": important,
        "createdAt": stamp,
        "updatedAt": stamp,
        "revision": 0,
    }
    task = normalize_task(raw, now=stamp, device_id=device_id)
    logger.debug("Task created id=%s quadrant=%s", task.id, task.quadrant.value)
    return task
