# tests/test_migrator.py

from __future__ import annotations

import json

import pytest

from eisenhower_sync.core.errors import CorruptEnvelope
from eisenhower_sync.storage.migrator import (
    TASKS_KEY,
    SchemaMigrator,
    migrate_records,
    read_envelope,
)
from eisenhower_sync.tasks.normalize import normalize_task

from .fakes import FailingKeyValueStore, InMemoryKeyValueStore


def _raw(task_id: str, **kw) -> dict:
    return {"id": task_id, "title": f"Task {task_id}", **kw}


def test_legacy_array_is_version_zero() -> None:
    version, items = read_envelope(json.dumps([_raw("a")]))
    assert version == 0
    assert items == [_raw("a")]


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        json.dumps({"version": 2, "tasks": []}),
        json.dumps({"version": True, "tasks": []}),
        json.dumps({"version": 1, "tasks": {"a": 1}}),
        json.dumps({"tasks": []}),
        json.dumps("just a string"),
    ],
)
def test_corrupt_envelopes_are_rejected(payload: str) -> None:
    with pytest.raises(CorruptEnvelope):
        read_envelope(payload)


def test_size_guard() -> None:
    with pytest.raises(CorruptEnvelope):
        read_envelope([_raw(str(i)) for i in range(11)], max_tasks=10)


def test_invalid_records_are_skipped() -> None:
    items = [
        _raw("a"),
        {"title": "no id"},
        _raw("b"),
        {"id": "c"},
        _raw("d"),
    ]
    records = migrate_records(items)
    assert [r.id for r in records] == ["a", "b", "d"]


def test_first_duplicate_wins() -> None:
    records = migrate_records([_raw("a", title="first"), _raw("a", title="second")])
    assert len(records) == 1
    assert records[0].title == "first"


def test_legacy_payload_is_migrated_and_resaved() -> None:
    kv = InMemoryKeyValueStore({TASKS_KEY: json.dumps([_raw("a"), {"name": "broken"}, _raw("b")])})
    migrator = SchemaMigrator(kv)

    tasks = migrator.load_from_store()

    assert tasks is not None
    assert [t.id for t in tasks] == ["a", "b"]
    stored = json.loads(kv.data[TASKS_KEY])
    assert stored["version"] == 1
    assert [t["id"] for t in stored["tasks"]] == ["a", "b"]


def test_missing_and_corrupt_storage_load_as_absent() -> None:
    assert SchemaMigrator(InMemoryKeyValueStore()).load_from_store() is None
    corrupt = InMemoryKeyValueStore({TASKS_KEY: "{oops"})
    assert SchemaMigrator(corrupt).load_from_store() is None
    assert SchemaMigrator(FailingKeyValueStore()).load_from_store() is None


def test_save_then_load_round_trip(migrator: SchemaMigrator) -> None:
    tasks = [normalize_task(_raw("a", important=True)), normalize_task(_raw("b"))]
    assert migrator.save(tasks) is True
    assert migrator.load_from_store() == tasks


def test_save_refuses_oversize_and_non_lists(kv: InMemoryKeyValueStore) -> None:
    migrator = SchemaMigrator(kv, max_tasks=2)
    assert migrator.save([_raw("a"), _raw("b"), _raw("c")]) is False
    assert migrator.save("nope") is False  # type: ignore[arg-type]
    assert TASKS_KEY not in kv.data


def test_save_swallows_storage_failure() -> None:
    migrator = SchemaMigrator(FailingKeyValueStore(fail_reads=False))
    assert migrator.save([_raw("a")]) is False


def test_clear(migrator: SchemaMigrator, kv: InMemoryKeyValueStore) -> None:
    migrator.save([_raw("a")])
    migrator.clear()
    assert TASKS_KEY not in kv.data


class _ExplodingRecord(dict):
    def items(self):
        raise RuntimeError("boom")


def test_unexpected_record_failure_skips_only_that_record() -> None:
    tasks = migrate_records([_raw("a"), _ExplodingRecord(_raw("b")), _raw("c")])
    assert [t.id for t in tasks] == ["a", "c"]


def test_out_of_range_timestamp_does_not_drop_batch(kv: InMemoryKeyValueStore) -> None:
    envelope = {"version": 1, "tasks": [_raw("a"), _raw("b", updatedAt=1e20), _raw("c")]}
    kv.data[TASKS_KEY] = json.dumps(envelope)

    tasks = SchemaMigrator(kv).load_from_store()

    assert tasks is not None
    assert [t.id for t in tasks] == ["a", "b", "c"]
    assert tasks[1].updated_at == tasks[1].created_at
