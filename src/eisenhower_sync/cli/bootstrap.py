# src/eisenhower_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the key-value store, migrator, outbox, repository and reminder state into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import RemoteTaskStore
from ..core.state import AppState
from ..core.timeutil import resolve_zone
from ..notifications.ledger import load_ledger
from ..notifications.preferences import load_preferences
from ..storage.file_remote import JsonFileRemote
from ..storage.kv_store import SqliteKeyValueStore
from ..storage.migrator import SchemaMigrator
from ..sync.outbox import Outbox
from ..sync.repository import TaskRepository
from ..tasks.device import load_or_create_device_id

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_path.parent.mkdir(parents=True, exist_ok=True)
    settings.log_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, remote: RemoteTaskStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings(). The remote replica is
    the injected one, else a JsonFileRemote when settings.remote_dir is set.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = SqliteKeyValueStore(settings.store_path)
    device_id = load_or_create_device_id(store)

    remote_dir = getattr(settings, "remote_dir", None)
    if remote is None and remote_dir:
        remote = JsonFileRemote(remote_dir)

    offline = bool(getattr(settings, "offline", False))
    migrator = SchemaMigrator(store, max_tasks=settings.max_tasks)
    outbox = Outbox(store)
    repository = TaskRepository(
        migrator,
        outbox,
        remote=remote,
        user_id=settings.user_id,
        is_online=lambda: not offline,
    )

    state = AppState(
        settings=settings,
        store=store,
        migrator=migrator,
        outbox=outbox,
        repository=repository,
        preferences=load_preferences(store),
        ledger=load_ledger(store, cap=settings.fired_ledger_cap),
        device_id=device_id,
        zone=resolve_zone(settings.timezone),
    )
    logger.debug(
        "State ready: store=%s device=%s syncing=%s",
        settings.store_path,
        device_id,
        repository.syncing,
    )
    return state
