# src/eisenhower_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
Shipped adapters: SqliteKeyValueStore, JsonFileRemote and ConsoleNotifier;
anything else (HTTP remotes, desktop notifications) plugs in through these.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    from ..notifications.scheduler import PlannedNotification

# Wire form of a task record: camelCase keys as persisted ({"id": ..., "updatedAt": ...}).
TaskDict = dict[str, Any]


class KeyValueStore(Protocol):
    """
    Persistent key-value store holding JSON text.

    Any method may raise StorageUnavailable; callers in the core swallow it.
    """

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...


class RemoteTaskStore(Protocol):
    """
    Remote replica of a user's task list.

    Both calls may raise (RemoteUnavailable or anything else); the core treats
    every exception as "remote unavailable".
    """

    def load_for_user(self, user_id: str) -> Awaitable[list[TaskDict]]: ...
    def save_for_user(self, user_id: str, tasks: list[TaskDict]) -> Awaitable[None]: ...


class Notifier(Protocol):
    """Delivery channel for planned notifications (in-app toast, browser, console)."""

    def notify(self, notification: PlannedNotification) -> Awaitable[None]: ...
