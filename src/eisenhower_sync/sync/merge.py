# src/eisenhower_sync/sync/merge.py

from __future__ import annotations

"""
Merge engine.

Reconciles the local and remote copies of a task list, record by record:

- id on one side only       -> that record (tombstones included, so deletions propagate)
- both sides tombstoned     -> later deletedAt
- one side tombstoned       -> deletion wins iff deletedAt >= the other side's updatedAt
- neither tombstoned        -> higher revision, then later updatedAt, ties to local

The winning record replaces the other wholesale; there is no field-level merge.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from ..core.timeutil import instant_or_epoch
from ..tasks.task_models import TaskRecord


class Side(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(slots=True)
class MergeResult:
    """
    merged:            one record per id, local order first, then remote-only ids
    changed_local_ids: ids where the local record won and the remote copy is
                       missing or different (remote needs this record)
    changed_remote_ids: ids where the remote record won and the local copy is
                       missing or different (local needs this record)
    """

    merged: list[TaskRecord] = field(default_factory=list)
    changed_local_ids: set[str] = field(default_factory=set)
    changed_remote_ids: set[str] = field(default_factory=set)


def _index(tasks: Iterable[TaskRecord]) -> dict[str, TaskRecord]:
    out: dict[str, TaskRecord] = {}
    for t in tasks:
        out[t.id] = t
    return out


def pick_winner(local: TaskRecord, remote: TaskRecord) -> Side:
    """Resolve one id present on both sides."""
    if local.is_deleted and remote.is_deleted:
        if instant_or_epoch(local.deleted_at) >= instant_or_epoch(remote.deleted_at):
            return Side.LOCAL
        return Side.REMOTE

    if local.is_deleted:
        if instant_or_epoch(local.deleted_at) >= instant_or_epoch(remote.updated_at):
            return Side.LOCAL
        return Side.REMOTE

    if remote.is_deleted:
        if instant_or_epoch(remote.deleted_at) >= instant_or_epoch(local.updated_at):
            return Side.REMOTE
        return Side.LOCAL

    if local.revision != remote.revision:
        return Side.LOCAL if local.revision > remote.revision else Side.REMOTE

    if instant_or_epoch(local.updated_at) >= instant_or_epoch(remote.updated_at):
        return Side.LOCAL
    return Side.REMOTE


def merge_tasks(local: Iterable[TaskRecord], remote: Iterable[TaskRecord]) -> MergeResult:
    local_map = _index(local)
    remote_map = _index(remote)
    result = MergeResult()

    all_ids = list(local_map)
    all_ids.extend(i for i in remote_map if i not in local_map)

    for task_id in all_ids:
        mine = local_map.get(task_id)
        theirs = remote_map.get(task_id)

        if theirs is None:
            if mine is not None:
                result.merged.append(mine)
                result.changed_local_ids.add(task_id)
            continue

        if mine is None:
            result.merged.append(theirs)
            result.changed_remote_ids.add(task_id)
            continue

        if pick_winner(mine, theirs) == Side.LOCAL:
            result.merged.append(mine)
            if mine.to_dict() != theirs.to_dict():
                result.changed_local_ids.add(task_id)
        else:
            result.merged.append(theirs)
            if mine.to_dict() != theirs.to_dict():
                result.changed_remote_ids.add(task_id)

    return result
