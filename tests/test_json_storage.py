# tests/test_json_storage.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from task_tracker.domain.errors import LoadError, PersistenceError
from task_tracker.infra.storage.json_file import JsonFileStorage
from task_tracker.services.task_store import TaskStore


@pytest.mark.asyncio
async def test_initialize_creates_directory_and_starts_empty(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "data" / "tasks.json"
    store = TaskStore(JsonFileStorage(path))

    await store.initialize()

    assert path.parent.is_dir()
    assert not path.exists()
    assert store.get_tasks() == []
    assert store.next_id == 1


@pytest.mark.asyncio
async def test_file_layout_and_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    store = TaskStore(JsonFileStorage(path))
    await store.initialize()
    await store.add_task({"title": "Plan trip", "tags": ["travel"], "dueDate": "2030-06-01T08:00:00+02:00"})
    second = await store.add_task({"title": "Pack", "priority": "low"})
    await store.update_task(second.id, {"status": "in-progress"})

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert set(raw) == {"tasks", "nextId", "lastSaved"}
    assert raw["nextId"] == 3
    first = raw["tasks"][0]
    assert set(first) == {
        "id", "title", "description", "status", "priority",
        "tags", "dueDate", "createdAt", "updatedAt",
    }
    assert raw["tasks"][1]["status"] == "in-progress"
    assert raw["tasks"][1]["dueDate"] is None

    reloaded = TaskStore(JsonFileStorage(path))
    await reloaded.initialize()
    assert reloaded.get_tasks() == store.get_tasks()
    assert reloaded.next_id == 3


@pytest.mark.asyncio
async def test_malformed_file_raises_load_error(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    path.write_text("{not json", encoding="utf-8")
    store = TaskStore(JsonFileStorage(path))

    with pytest.raises(LoadError) as exc:
        await store.initialize()

    assert str(path.resolve()) in str(exc.value)
    assert store.initialized is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "[]",
        '{"tasks": [{"id": 1}], "nextId": 2}',
        '{"tasks": [], "nextId": "seven"}',
        '{"tasks": 5, "nextId": 1}',
        '{"tasks": {"id": 1}, "nextId": 2}',
    ],
)
async def test_invalid_documents_raise_load_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "tasks.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(LoadError):
        await TaskStore(JsonFileStorage(path)).initialize()


@pytest.mark.asyncio
async def test_next_id_behind_stored_ids_is_raised(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    doc = {
        "tasks": [
            {
                "id": 5,
                "title": "imported",
                "createdAt": "2026-01-01T00:00:00Z",
                "updatedAt": "2026-01-01T00:00:00Z",
            }
        ],
        "nextId": 2,
    }
    path.write_text(json.dumps(doc), encoding="utf-8")
    store = TaskStore(JsonFileStorage(path))
    await store.initialize()

    task = store.get_task_by_id(5)
    assert task is not None and task.status.value == "pending" and task.tags == []
    assert (await store.add_task({"title": "new"})).id == 6


@pytest.mark.asyncio
async def test_unwritable_target_raises_persistence_error(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    store = TaskStore(JsonFileStorage(path))
    await store.initialize()
    path.mkdir()  # a directory where the file should go

    with pytest.raises(PersistenceError) as exc:
        await store.add_task({"title": "lost"})

    assert "add_task" in str(exc.value)
    assert len(store.get_tasks()) == 1
    assert not (tmp_path / "tasks.json.tmp").exists()


@pytest.mark.asyncio
async def test_duplicate_ids_raise_load_error(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    stamp = "2026-01-01T00:00:00Z"
    doc = {
        "tasks": [
            {"id": 1, "title": "a", "createdAt": stamp, "updatedAt": stamp},
            {"id": 1, "title": "b", "createdAt": stamp, "updatedAt": stamp},
        ],
        "nextId": 2,
    }
    path.write_text(json.dumps(doc), encoding="utf-8")
    store = TaskStore(JsonFileStorage(path))

    with pytest.raises(LoadError) as exc:
        await store.initialize()

    assert "duplicate task id 1" in str(exc.value)
    assert store.initialized is False
