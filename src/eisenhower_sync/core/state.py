# src/eisenhower_sync/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from ..notifications.ledger import FiredLedger
from ..notifications.preferences import NotificationPreferences
from ..storage.kv_store import SqliteKeyValueStore
from ..storage.migrator import SchemaMigrator
from ..sync.outbox import Outbox
from ..sync.repository import TaskRepository


@dataclass
class AppState:
    # Settings object (or a SimpleNamespace in tests).
    settings: Any

    store: SqliteKeyValueStore
    migrator: SchemaMigrator
    outbox: Outbox
    repository: TaskRepository
    preferences: NotificationPreferences
    ledger: FiredLedger
    device_id: str
    zone: tzinfo
