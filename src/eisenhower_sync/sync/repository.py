# src/eisenhower_sync/sync/repository.py

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ..core.ports import RemoteTaskStore
from ..storage.migrator import SchemaMigrator, migrate_records
from ..tasks.task_models import TaskRecord
from .merge import merge_tasks
from .outbox import Outbox

logger = logging.getLogger(__name__)


def _always_online() -> bool:
    return True


class TaskRepository:
    """
    Local-first task repository with optional remote replica.

    The local store is always authoritative for the session; the remote is
    consulted only when both a remote and a user id are configured. Remote
    failures never propagate: loads fall back to local data, saves are
    queued in the outbox.
    """

    def __init__(
        self,
        migrator: SchemaMigrator,
        outbox: Outbox,
        *,
        remote: RemoteTaskStore | None = None,
        user_id: str | None = None,
        is_online: Callable[[], bool] = _always_online,
    ) -> None:
        self._migrator = migrator
        self._outbox = outbox
        self._remote = remote
        self._user_id = user_id or None
        self._is_online = is_online

    @property
    def syncing(self) -> bool:
        return self._remote is not None and self._user_id is not None

    async def load(self) -> list[TaskRecord]:
        local = self._migrator.load_from_store() or []
        remote_store, user_id = self._remote, self._user_id
        if remote_store is None or user_id is None:
            return local

        try:
            remote_raw = await remote_store.load_for_user(user_id)
        except Exception:
            logger.warning("Remote load failed for user=%s; using local tasks only", user_id, exc_info=True)
            return local

        remote = migrate_records(remote_raw or [])
        result = merge_tasks(local, remote)
        logger.info(
            "Merged tasks user=%s local=%d remote=%d merged=%d (local wins=%d, remote wins=%d)",
            user_id,
            len(local),
            len(remote),
            len(result.merged),
            len(result.changed_local_ids),
            len(result.changed_remote_ids),
        )
        self._migrator.save(result.merged)
        return result.merged

    async def save(self, tasks: Sequence[TaskRecord]) -> None:
        if not isinstance(tasks, (list, tuple)):
            raise TypeError("tasks must be a list")

        self._migrator.save(list(tasks))
        remote_store, user_id = self._remote, self._user_id
        if remote_store is None or user_id is None:
            return

        payload = [t.to_dict() for t in tasks]

        if not self._is_online():
            logger.info("Offline; queueing snapshot for user=%s", user_id)
            self._outbox.enqueue(user_id=user_id, tasks=payload)
            return

        try:
            await remote_store.save_for_user(user_id, payload)
        except Exception:
            logger.warning("Remote save failed for user=%s; queueing snapshot", user_id, exc_info=True)
            self._outbox.enqueue(user_id=user_id, tasks=payload)
            return

        # Anything still queued for this user is older than the snapshot just saved.
        self._outbox.discard(user_id)

    async def flush_pending(self) -> int:
        """Replay queued snapshots (call on reconnect / visibility regain)."""
        remote_store, user_id = self._remote, self._user_id
        if remote_store is None or user_id is None or not self._is_online():
            return 0
        return await self._outbox.flush(user_id, remote_store.save_for_user)

    def clear(self) -> None:
        """Clears local tasks only; the remote copy is left untouched."""
        self._migrator.clear()
