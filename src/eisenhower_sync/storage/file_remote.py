# src/eisenhower_sync/storage/file_remote.py

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from ..core.errors import RemoteUnavailable
from ..core.ports import TaskDict
from ..core.timeutil import to_iso, utc_now

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileRemote:
    """
    Remote replica kept as one JSON document per user in a shared directory
    (a synced folder, a network mount, ...).

    Implements RemoteTaskStore. Every I/O or decode failure surfaces as
    RemoteUnavailable; records themselves are not validated here.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def path_for(self, user_id: str) -> Path:
        return self._root / f"{_UNSAFE.sub('_', user_id)}.json"

    async def load_for_user(self, user_id: str) -> list[TaskDict]:
        return await asyncio.to_thread(self._read, user_id)

    async def save_for_user(self, user_id: str, tasks: list[TaskDict]) -> None:
        await asyncio.to_thread(self._write, user_id, tasks)

    def _read(self, user_id: str) -> list[TaskDict]:
        path = self.path_for(user_id)
        if not path.exists():
            return []
        try:
            data: Any = json.loads(path.read_text("utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise RemoteUnavailable(f"cannot read remote tasks at {path}: {e}") from e

        tasks = data.get("tasks") if isinstance(data, dict) else data
        if not isinstance(tasks, list):
            raise RemoteUnavailable(f"unexpected remote document shape at {path}")
        return [t for t in tasks if isinstance(t, dict)]

    def _write(self, user_id: str, tasks: list[TaskDict]) -> None:
        path = self.path_for(user_id)
        doc = {"userId": user_id, "updatedAt": to_iso(utc_now()), "tasks": tasks}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(doc, ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            raise RemoteUnavailable(f"cannot write remote tasks at {path}: {e}") from e
        logger.debug("Wrote %d remote tasks for user=%s to %s", len(tasks), user_id, path)
