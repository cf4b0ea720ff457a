# src/eisenhower_sync/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Quadrant(StrEnum):
    """
    Urgency/importance quadrant.

    Always derived from the urgent/important flags, never persisted.
    """

    Q1 = "Q1"  # urgent + important
    Q2 = "Q2"  # important only
    Q3 = "Q3"  # urgent only
    Q4 = "Q4"  # neither


class NotificationFrequency(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: Any) -> NotificationFrequency | None:
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


def quadrant_of(urgent: bool, important: bool) -> Quadrant:
    if urgent and important:
        return Quadrant.Q1
    if important:
        return Quadrant.Q2
    if urgent:
        return Quadrant.Q3
    return Quadrant.Q4


# Wire keys written by to_dict(); anything else found on input is kept in `extra`.
KNOWN_KEYS = frozenset(
    {
        "id",
        "title",
        "urgent",
        "important",
        "priority",
        "estimateMinutesTotal",
        "dueDate",
        "notificationFrequency",
        "createdAt",
        "updatedAt",
        "deletedAt",
        "completedAt",
        "deviceId",
        "revision",
    }
)


@dataclass(frozen=True, slots=True)
class TaskRecord:
    """
    Canonical task record, the unit of synchronization.

    Produced only by the normalizer; every field is present with the right type.
    Instants are canonical ISO strings (see core.timeutil).
    """

    id: str
    title: str
    urgent: bool
    important: bool
    notification_frequency: NotificationFrequency
    created_at: str
    updated_at: str
    device_id: str
    revision: int = 0

    priority: str | None = None
    estimate_minutes_total: int | None = None
    due_date: str | None = None
    deleted_at: str | None = None
    completed_at: str | None = None

    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def quadrant(self) -> Quadrant:
        return quadrant_of(self.urgent, self.important)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out.update(
            {
                "id": self.id,
                "title": self.title,
                "urgent": self.urgent,
                "important": self.important,
                "priority": self.priority,
                "estimateMinutesTotal": self.estimate_minutes_total,
                "dueDate": self.due_date,
                "notificationFrequency": self.notification_frequency.value,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "deletedAt": self.deleted_at,
                "completedAt": self.completed_at,
                "deviceId": self.device_id,
                "revision": self.revision,
            }
        )
        return out
