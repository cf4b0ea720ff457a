# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from eisenhower_sync.cli.bootstrap import create_initial_state
from eisenhower_sync.core.state import AppState
from eisenhower_sync.storage.kv_store import SqliteKeyValueStore
from eisenhower_sync.storage.migrator import SchemaMigrator
from eisenhower_sync.sync.outbox import Outbox

from .fakes import FakeRemote, InMemoryKeyValueStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="eisenhower-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        store_path=tmp_path / "data" / "store.sqlite3",
        log_dir=tmp_path / "logs",
        user_id=None,
        remote_dir=None,
        offline=False,
        max_tasks=100,
        timezone="UTC",
        fired_ledger_cap=50,
        reminder_interval_seconds=0.5,
    )


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def sqlite_kv(tmp_path: Path) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(tmp_path / "kv.sqlite3")


@pytest.fixture()
def migrator(kv: InMemoryKeyValueStore) -> SchemaMigrator:
    return SchemaMigrator(kv, max_tasks=100)


@pytest.fixture()
def outbox(kv: InMemoryKeyValueStore) -> Outbox:
    return Outbox(kv)


@pytest.fixture()
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState built through the real composition root.

    NOTE: the SQLite key-value store is real here; its behaviour is part of
    what the command tests exercise.
    """
    return create_initial_state(settings=settings)
