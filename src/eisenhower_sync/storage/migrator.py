# src/eisenhower_sync/storage/migrator.py

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ..core.errors import CorruptEnvelope, MalformedRecord, StorageUnavailable
from ..core.ports import KeyValueStore
from ..tasks.normalize import normalize_task, require_fields
from ..tasks.task_models import TaskRecord

logger = logging.getLogger(__name__)

TASKS_KEY = "eisenhower.tasks.v1"
CURRENT_SCHEMA_VERSION = 1
LEGACY_SCHEMA_VERSION = 0
DEFAULT_MAX_TASKS = 10_000


def read_envelope(payload: Any, *, max_tasks: int = DEFAULT_MAX_TASKS) -> tuple[int, list[Any]]:
    """
    Classify a raw persisted payload.

    Returns (version, raw_tasks):
    - bare JSON array         -> (0, items)   legacy, unwrapped
    - {"version": 1, "tasks"} -> (1, items)

    Raises CorruptEnvelope for anything else (bad JSON, unknown version,
    non-array tasks, more than max_tasks entries).
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise CorruptEnvelope(f"unparseable payload: {e}") from e

    if isinstance(payload, list):
        version, items = LEGACY_SCHEMA_VERSION, payload
    elif isinstance(payload, dict) and "version" in payload and "tasks" in payload:
        version = payload["version"]
        if isinstance(version, bool) or version != CURRENT_SCHEMA_VERSION:
            raise CorruptEnvelope(f"unknown schema version: {version!r}")
        items = payload["tasks"]
        if not isinstance(items, list):
            raise CorruptEnvelope("tasks is not an array in version 1 envelope")
    else:
        raise CorruptEnvelope(f"unexpected payload shape: {type(payload).__name__}")

    if len(items) > max_tasks:
        raise CorruptEnvelope(f"too many tasks ({len(items)} > {max_tasks})")
    return version, items


def migrate_records(items: Iterable[Any]) -> list[TaskRecord]:
    """
    Normalize every raw record, skipping (and logging) the malformed ones.

    The first record wins when the same id appears twice.
    """
    out: list[TaskRecord] = []
    seen: set[str] = set()
    for index, item in enumerate(items):
        try:
            if isinstance(item, TaskRecord):
                record = item
            else:
                require_fields(item)
                record = normalize_task(item)
        except MalformedRecord as e:
            logger.warning("Skipping invalid task at index %d: %s", index, e)
            continue
        except Exception:
            logger.exception("Skipping task at index %d after unexpected normalize failure", index)
            continue
        if record.id in seen:
            logger.warning("Skipping duplicate task id=%s at index %d", record.id, index)
            continue
        seen.add(record.id)
        out.append(record)
    return out


class SchemaMigrator:
    """
    Loads/saves the persisted task list through a KeyValueStore.

    Never raises to the caller: corrupt or untrusted data loads as None
    ("absent"), and storage failures are logged and swallowed.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = TASKS_KEY,
        max_tasks: int = DEFAULT_MAX_TASKS,
    ) -> None:
        self._store = store
        self._key = key
        self._max_tasks = int(max_tasks)

    def load(self, payload: Any) -> list[TaskRecord] | None:
        if payload is None:
            return None
        try:
            version, items = read_envelope(payload, max_tasks=self._max_tasks)
            tasks = migrate_records(items)
        except CorruptEnvelope as e:
            logger.error("Ignoring corrupt task storage: %s", e)
            return None
        except Exception:
            logger.exception("Unexpected failure while loading tasks; treating as absent")
            return None

        if version == LEGACY_SCHEMA_VERSION:
            logger.info("Migrated %d tasks from schema v0 to v%d", len(tasks), CURRENT_SCHEMA_VERSION)
            # Best-effort: if this fails we simply migrate again on next load.
            if tasks and not self.save(tasks):
                logger.warning("Failed to persist migrated schema; will migrate again on next load")
        return tasks

    def load_from_store(self) -> list[TaskRecord] | None:
        try:
            payload = self._store.get(self._key)
        except StorageUnavailable:
            logger.exception("Failed to read tasks from storage")
            return None
        return self.load(payload)

    def save(self, tasks: Sequence[TaskRecord | dict[str, Any]]) -> bool:
        if not isinstance(tasks, (list, tuple)):
            logger.error("save: tasks must be a list, got %s", type(tasks).__name__)
            return False
        if len(tasks) > self._max_tasks:
            logger.error("save: refusing to persist %d tasks (limit %d)", len(tasks), self._max_tasks)
            return False

        records = migrate_records(tasks)
        envelope = {
            "version": CURRENT_SCHEMA_VERSION,
            "tasks": [r.to_dict() for r in records],
        }
        try:
            self._store.set(self._key, json.dumps(envelope, ensure_ascii=False))
        except (TypeError, ValueError):
            logger.exception("save: tasks are not JSON-serializable")
            return False
        except StorageUnavailable:
            logger.exception("Failed to save tasks to storage")
            return False
        logger.debug("Saved %d tasks key=%s", len(records), self._key)
        return True

    def clear(self) -> None:
        try:
            self._store.remove(self._key)
        except StorageUnavailable:
            logger.exception("Failed to clear tasks from storage")
