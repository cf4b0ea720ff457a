# src/eisenhower_sync/sync/outbox.py

from __future__ import annotations

import inspect
import json
import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import StorageUnavailable
from ..core.ports import KeyValueStore, TaskDict
from ..core.timeutil import to_iso, utc_now
from ..tasks.task_models import TaskRecord

logger = logging.getLogger(__name__)

OUTBOX_KEY = "eisenhower.syncOutbox.v1"
SAVE_SNAPSHOT = "saveSnapshot"
SUPPORTED_TYPES = frozenset({SAVE_SNAPSHOT})

RemoteSave = Callable[[str, list[TaskDict]], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class OutboxEntry:
    id: str
    type: str
    created_at: str
    user_id: str
    tasks: list[TaskDict] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "createdAt": self.created_at,
            "payload": {"tasks": self.tasks, "userId": self.user_id},
        }

    @classmethod
    def from_dict(cls, raw: Any) -> OutboxEntry | None:
        if not isinstance(raw, dict):
            return None
        payload = raw.get("payload")
        if not isinstance(payload, dict):
            return None
        user_id = payload.get("userId")
        tasks = payload.get("tasks")
        if not isinstance(user_id, str) or not user_id or not isinstance(tasks, list):
            return None
        return cls(
            id=str(raw.get("id") or uuid.uuid4()),
            type=str(raw.get("type") or ""),
            # Older entries used createdAtISO.
            created_at=str(raw.get("createdAt") or raw.get("createdAtISO") or ""),
            user_id=user_id,
            tasks=tasks,
        )


class Outbox:
    """
    Durable queue of remote writes that could not be delivered.

    - at most one pending saveSnapshot per user (a newer snapshot supersedes)
    - flush() replays pending entries for one user and drops the successful ones
    - the queue is mirrored in memory, so a failing store degrades to a
      session-only queue instead of losing writes
    """

    def __init__(self, store: KeyValueStore, *, key: str = OUTBOX_KEY) -> None:
        self._store = store
        self._key = key
        self._cache: list[OutboxEntry] = []
        # Set while the in-memory queue holds writes the store rejected.
        self._unpersisted = False
        self._read()

    # ---- persistence ----

    def _read(self) -> list[OutboxEntry]:
        if self._unpersisted:
            return list(self._cache)
        try:
            raw = self._store.get(self._key)
        except StorageUnavailable:
            logger.exception("Failed to load outbox; using in-memory copy")
            return list(self._cache)

        if not raw:
            self._cache = []
            return []
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Outbox storage is corrupt; starting empty")
            parsed = []
        items = parsed if isinstance(parsed, list) else []
        entries = [e for e in (OutboxEntry.from_dict(x) for x in items) if e is not None]
        self._cache = entries
        return list(entries)

    def _write(self, entries: list[OutboxEntry]) -> None:
        self._cache = list(entries)
        try:
            self._store.set(self._key, json.dumps([e.to_dict() for e in entries], ensure_ascii=False))
        except StorageUnavailable:
            self._unpersisted = True
            logger.exception("Failed to save outbox; keeping %d entries in memory", len(entries))
        else:
            self._unpersisted = False

    # ---- public API ----

    def enqueue(
        self,
        *,
        user_id: str,
        tasks: Sequence[TaskRecord | TaskDict],
        op_type: str = SAVE_SNAPSHOT,
    ) -> OutboxEntry:
        if not user_id:
            raise ValueError("user_id is required")
        if op_type not in SUPPORTED_TYPES:
            raise ValueError(f"unsupported outbox operation: {op_type}")

        entry = OutboxEntry(
            id=str(uuid.uuid4()),
            type=op_type,
            created_at=to_iso(utc_now()),
            user_id=user_id,
            tasks=[t.to_dict() if isinstance(t, TaskRecord) else dict(t) for t in tasks],
        )

        entries = self._read()
        if op_type == SAVE_SNAPSHOT:
            entries = [e for e in entries if not (e.type == SAVE_SNAPSHOT and e.user_id == user_id)]
        entries.append(entry)
        self._write(entries)

        logger.info("Outbox enqueue user=%s tasks=%d pending=%d", user_id, len(entry.tasks), len(entries))
        return entry

    async def flush(self, user_id: str, remote_save: RemoteSave | None) -> int:
        """
        Replay pending snapshots of `user_id` through remote_save.

        Returns the number of entries delivered. Never raises: a failing entry
        stays queued for the next flush; entries of other users are untouched.
        """
        if not user_id or remote_save is None:
            return 0

        entries = self._read()
        remaining: list[OutboxEntry] = []
        flushed = 0

        for entry in entries:
            if entry.type != SAVE_SNAPSHOT or entry.user_id != user_id:
                remaining.append(entry)
                continue
            try:
                res = remote_save(user_id, entry.tasks)
                if inspect.isawaitable(res):
                    await res
                flushed += 1
            except Exception:
                logger.warning("Outbox flush failed entry=%s user=%s", entry.id, user_id, exc_info=True)
                remaining.append(entry)

        if flushed:
            self._write(remaining)
            logger.info("Outbox flushed %d entries for user=%s (remaining=%d)", flushed, user_id, len(remaining))
        return flushed

    def list_pending(self, user_id: str | None = None) -> list[OutboxEntry]:
        entries = self._read()
        if user_id is None:
            return entries
        return [e for e in entries if e.user_id == user_id]

    def discard(self, user_id: str) -> int:
        """Drop pending snapshots of `user_id` (superseded by a successful direct save)."""
        entries = self._read()
        remaining = [e for e in entries if not (e.type == SAVE_SNAPSHOT and e.user_id == user_id)]
        dropped = len(entries) - len(remaining)
        if dropped:
            self._write(remaining)
            logger.info("Outbox discarded %d superseded entries for user=%s", dropped, user_id)
        return dropped

    def clear(self) -> None:
        self._write([])
