# src/eisenhower_sync/sync/transfer.py

"""Import/export of task lists as standalone JSON files."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ..core.errors import InvalidImport
from ..core.timeutil import to_iso, utc_now
from ..tasks.task_models import TaskRecord

EXPORT_VERSION = 1


def serialize_tasks_for_export(tasks: Sequence[TaskRecord], now: datetime | None = None) -> str:
    data = {
        "version": EXPORT_VERSION,
        "exportedAt": to_iso(now or utc_now()),
        "tasks": [t.to_dict() for t in tasks],
        "meta": {"app": "Eisenhower", "schema": "tasks"},
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def parse_imported_tasks(text: str) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """
    Parse an export file (versioned object) or a legacy bare array.

    Returns (raw_tasks, meta). Raises InvalidImport naming every invalid entry;
    a file is accepted or rejected as a whole.
    """
    if not isinstance(text, str):
        raise InvalidImport("input must be a JSON string")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidImport(f"invalid JSON file: {e}") from e

    if isinstance(parsed, dict) and "version" in parsed and "tasks" in parsed:
        if parsed["version"] != EXPORT_VERSION or isinstance(parsed["version"], bool):
            raise InvalidImport(f"unsupported export version: {parsed['version']!r}")
        tasks = parsed["tasks"]
        extra_meta = parsed.get("meta") if isinstance(parsed.get("meta"), dict) else {}
        meta = {"version": EXPORT_VERSION, "exportedAt": parsed.get("exportedAt"), **extra_meta}
    elif isinstance(parsed, list):
        tasks = parsed
        meta = {"version": 0, "exportedAt": None}
    else:
        raise InvalidImport("invalid file format: expected versioned object or array of tasks")

    if not isinstance(tasks, list):
        raise InvalidImport("invalid format: tasks must be an array")

    problems: list[str] = []
    for i, task in enumerate(tasks):
        if not isinstance(task, dict):
            problems.append(f"task at index {i} is not an object")
        elif task.get("id") is None:
            problems.append(f"task at index {i} is missing id")
        elif not task.get("title") and not task.get("name"):
            problems.append(f"task at index {i} is missing both title and name")
    if problems:
        raise InvalidImport("invalid tasks found: " + "; ".join(problems))

    return tasks, meta


def merge_imported(existing: Sequence[TaskRecord], incoming: Sequence[TaskRecord]) -> list[TaskRecord]:
    """Incoming wins per id; existing order is kept and new ids are appended."""
    by_id = {t.id: t for t in existing}
    by_id.update((t.id, t) for t in incoming)

    out: list[TaskRecord] = []
    seen: set[str] = set()
    for t in (*existing, *incoming):
        if t.id not in seen:
            seen.add(t.id)
            out.append(by_id[t.id])
    return out
