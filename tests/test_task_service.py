# tests/test_task_service.py

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from task_manager.tasks.errors import CapacityError, DuplicateError, ValidationError
from task_manager.tasks.task_models import Task, TaskPriority, TaskStatus
from task_manager.tasks.task_service import TaskService
from task_manager.tasks.task_storage import XmlTaskStorage

from .fakes import MemoryStorage


def _now() -> datetime:
    return datetime.now().astimezone()


@pytest.mark.asyncio
async def test_create_then_get_by_id_returns_same_fields(service: TaskService) -> None:
    t = Task(
        title="Write docs",
        description="for the API",
        priority=TaskPriority.HIGH,
        assigned_to="John",
        due_date=_now() + timedelta(days=3),
        estimated_hours=8.0,
        tags="docs",
    )
    assert await service.create(t) is True

    got = await service.get_by_id(t.id)
    assert got is not None
    assert got.field_values() == t.field_values()
    # string ids are accepted too
    assert await service.get_by_id(str(t.id)) == t


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   ", "\t\n"])
async def test_create_rejects_blank_title(service: TaskService, storage: MemoryStorage, title: str) -> None:
    with pytest.raises(ValidationError):
        await service.create(Task(title=title))
    assert service.count == 0
    assert storage.save_calls == 0


@pytest.mark.asyncio
async def test_create_rejects_none_and_negative_hours(service: TaskService) -> None:
    with pytest.raises(ValidationError):
        await service.create(None)
    with pytest.raises(ValidationError):
        await service.create(Task(title="x", estimated_hours=-1.0))
    with pytest.raises(ValidationError):
        await service.create(Task(title="x", actual_hours=-0.5))
    assert service.count == 0


@pytest.mark.asyncio
async def test_create_rejects_duplicate_id(service: TaskService) -> None:
    t = Task(title="one")
    await service.create(t)

    dup = t.copy()
    dup.title = "other"
    with pytest.raises(DuplicateError):
        await service.create(dup)
    assert service.count == 1
    assert (await service.get_by_id(t.id)).title == "one"


@pytest.mark.asyncio
async def test_create_rejects_when_full() -> None:
    storage = MemoryStorage()
    service = TaskService(storage, max_tasks=2)
    await service.create(Task(title="a"))
    await service.create(Task(title="b"))

    with pytest.raises(CapacityError):
        await service.create(Task(title="c"))
    assert service.count == 2
    assert storage.save_calls == 2


@pytest.mark.asyncio
async def test_every_mutation_saves_whole_collection(service: TaskService, storage: MemoryStorage) -> None:
    a, b = Task(title="a"), Task(title="b")
    await service.create(a)
    await service.create(b)
    assert storage.save_calls == 2
    assert [t.id for t in storage.saved] == [a.id, b.id]

    a.status = TaskStatus.IN_PROGRESS
    await service.update(a)
    assert storage.save_calls == 3
    assert storage.saved[0].status == TaskStatus.IN_PROGRESS

    await service.delete(b.id)
    assert storage.save_calls == 4
    assert [t.id for t in storage.saved] == [a.id]


@pytest.mark.asyncio
async def test_auto_save_off_only_saves_explicitly() -> None:
    storage = MemoryStorage()
    service = TaskService(storage, auto_save=False)
    t = Task(title="a")
    await service.create(t)
    await service.update(t)
    await service.delete(t.id)
    assert storage.save_calls == 0

    assert await service.save() is True
    assert storage.save_calls == 1


@pytest.mark.asyncio
async def test_update_missing_task_returns_false(service: TaskService, storage: MemoryStorage) -> None:
    await service.create(Task(title="a"))
    calls = storage.save_calls

    assert await service.update(Task(title="ghost")) is False
    assert service.count == 1
    assert storage.save_calls == calls

    with pytest.raises(ValidationError):
        await service.update(None)


@pytest.mark.asyncio
async def test_update_replaces_record_and_stamps_updated_at(service: TaskService) -> None:
    t = Task(title="a")
    await service.create(t)
    previous = (await service.get_by_id(t.id)).updated_at

    changed = await service.get_by_id(t.id)
    changed.title = "renamed"
    changed.priority = TaskPriority.CRITICAL
    changed.assigned_to = "Bob"
    changed.actual_hours = 3.0
    assert await service.update(changed) is True

    stored = await service.get_by_id(t.id)
    assert stored.updated_at >= previous
    expected = changed.field_values()
    got = stored.field_values()
    expected.pop("updated_at")
    got.pop("updated_at")
    assert got == expected


@pytest.mark.asyncio
async def test_delete(service: TaskService) -> None:
    a, b = Task(title="a"), Task(title="b")
    await service.create(a)
    await service.create(b)

    assert await service.delete(a.id) is True
    assert await service.get_by_id(a.id) is None
    assert service.count == 1

    assert await service.delete(a.id) is False
    assert await service.delete("not-a-uuid") is False
    assert service.count == 1


@pytest.mark.asyncio
async def test_snapshots_are_independent(service: TaskService) -> None:
    t = Task(title="a")
    await service.create(t)

    # mutating the caller's object after create does not leak in
    t.title = "mutated outside"
    snapshot = await service.get_all()
    assert snapshot[0].title == "a"

    snapshot[0].title = "mutated snapshot"
    snapshot.clear()
    again = await service.get_all()
    assert len(again) == 1
    assert again[0].title == "a"

    one = await service.get_by_id(t.id)
    one.status = TaskStatus.CANCELLED
    assert (await service.get_by_id(t.id)).status == TaskStatus.NOT_STARTED


@pytest.mark.asyncio
async def test_filters_preserve_order(service: TaskService) -> None:
    t1 = Task(title="1", status=TaskStatus.IN_PROGRESS, priority=TaskPriority.HIGH)
    t2 = Task(title="2", status=TaskStatus.COMPLETED, priority=TaskPriority.LOW)
    t3 = Task(title="3", status=TaskStatus.IN_PROGRESS, priority=TaskPriority.HIGH)
    for t in (t1, t2, t3):
        await service.create(t)

    in_progress = await service.get_by_status(TaskStatus.IN_PROGRESS)
    assert [t.title for t in in_progress] == ["1", "3"]

    high = await service.get_by_priority(TaskPriority.HIGH)
    assert [t.title for t in high] == ["1", "3"]
    assert await service.get_by_priority(TaskPriority.CRITICAL) == []


@pytest.mark.asyncio
async def test_get_overdue(service: TaskService) -> None:
    yesterday = _now() - timedelta(days=1)
    late = Task(title="late", due_date=yesterday, status=TaskStatus.IN_PROGRESS)
    done = Task(title="done", due_date=yesterday, status=TaskStatus.COMPLETED)
    later = Task(title="later", due_date=_now() + timedelta(days=1))
    none = Task(title="no due")
    for t in (late, done, later, none):
        await service.create(t)

    assert [t.title for t in await service.get_overdue()] == ["late"]


@pytest.mark.asyncio
async def test_get_by_assignee_is_case_insensitive(service: TaskService) -> None:
    await service.create(Task(title="a", assigned_to="Jane Smith"))
    await service.create(Task(title="b", assigned_to="john"))
    await service.create(Task(title="c", assigned_to="JANE SMITH"))

    assert [t.title for t in await service.get_by_assignee("jane smith")] == ["a", "c"]
    with pytest.raises(ValidationError):
        await service.get_by_assignee("  ")


@pytest.mark.asyncio
async def test_search_matches_title_description_and_tags(service: TaskService) -> None:
    await service.create(Task(title="Fix Login", description=""))
    await service.create(Task(title="Docs", description="explain the login flow"))
    await service.create(Task(title="Other", tags="auth, LOGIN"))
    await service.create(Task(title="Unrelated"))

    assert [t.title for t in await service.search("login")] == ["Fix Login", "Docs", "Other"]
    with pytest.raises(ValidationError):
        await service.search("")


@pytest.mark.asyncio
async def test_load_replaces_collection(service: TaskService, storage: MemoryStorage) -> None:
    await service.create(Task(title="in memory"))
    storage.to_load = [Task(title="from disk 1"), Task(title="from disk 2")]

    assert await service.load() is True
    assert [t.title for t in await service.get_all()] == ["from disk 1", "from disk 2"]


@pytest.mark.asyncio
async def test_failed_load_keeps_existing_state(service: TaskService, storage: MemoryStorage) -> None:
    await service.create(Task(title="keep me"))
    storage.fail_load = True
    storage.to_load = [Task(title="never seen")]

    assert await service.load() is False
    assert [t.title for t in await service.get_all()] == ["keep me"]


@pytest.mark.asyncio
async def test_load_drops_duplicate_ids(service: TaskService, storage: MemoryStorage) -> None:
    t = Task(title="first")
    dup = t.copy()
    dup.title = "second"
    storage.to_load = [t, dup]

    assert await service.load() is True
    assert [x.title for x in await service.get_all()] == ["first"]


@pytest.mark.asyncio
async def test_save_failure_is_reported_and_keeps_memory(service: TaskService, storage: MemoryStorage) -> None:
    storage.fail_save = True
    assert await service.create(Task(title="still added")) is True
    assert service.count == 1
    assert await service.save() is False


@pytest.mark.asyncio
async def test_close_flushes_and_blocks_further_mutations() -> None:
    storage = MemoryStorage()
    service = TaskService(storage, auto_save=False)
    await service.create(Task(title="unsaved"))
    assert storage.saved == []

    assert await service.close() is True
    assert [t.title for t in storage.saved] == ["unsaved"]
    assert service.closed

    with pytest.raises(RuntimeError):
        await service.create(Task(title="late"))
    # second close is a no-op
    assert await service.close() is True
    assert storage.save_calls == 1


@pytest.mark.asyncio
async def test_concurrent_creates_are_serialized(service: TaskService, storage: MemoryStorage) -> None:
    tasks = [Task(title=f"t{i}") for i in range(5)]
    await asyncio.gather(*(service.create(t) for t in tasks))
    assert service.count == 5
    assert len(storage.saved) == 5
    assert storage.save_calls == 5


@pytest.mark.asyncio
async def test_file_backed_round_trip(file_service: TaskService, settings) -> None:
    t = Task(title="persisted", estimated_hours=0.0, due_date=_now() + timedelta(days=2))
    await file_service.create(t)
    assert settings.tasks_file.exists()

    reopened = TaskService(type(file_service.storage)(settings.tasks_file))
    assert await reopened.load() is True
    got = await reopened.get_by_id(t.id)
    assert got is not None
    assert got.field_values() == t.field_values()


@pytest.mark.asyncio
async def test_load_from_missing_file_is_success(file_service: TaskService) -> None:
    assert await file_service.load() is True
    assert await file_service.get_all() == []


def test_max_tasks_must_be_positive(storage: MemoryStorage) -> None:
    with pytest.raises(ValueError):
        TaskService(storage, max_tasks=0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"title": "arrow\x1b[Dkey"},
        {"title": "ok", "description": "bell\x07"},
        {"title": "ok", "assigned_to": "nul\x00"},
        {"title": "ok", "tags": "half\ud800"},
    ],
)
async def test_create_rejects_unstorable_characters(
    service: TaskService, storage: MemoryStorage, fields: dict
) -> None:
    with pytest.raises(ValidationError):
        await service.create(Task(**fields))
    assert service.count == 0
    assert storage.save_calls == 0


@pytest.mark.asyncio
async def test_update_rejects_unstorable_characters(service: TaskService) -> None:
    t = Task(title="clean", description="tab\tand\r\nnewlines are fine")
    await service.create(t)

    t.title = "dirty\x01"
    with pytest.raises(ValidationError):
        await service.update(t)
    assert (await service.get_by_id(t.id)).title == "clean"


@pytest.mark.asyncio
async def test_create_rejects_non_finite_hours(service: TaskService) -> None:
    with pytest.raises(ValidationError):
        await service.create(Task(title="x", estimated_hours=float("inf")))
    with pytest.raises(ValidationError):
        await service.create(Task(title="x", actual_hours=float("nan")))
    assert service.count == 0


@pytest.mark.asyncio
async def test_failed_load_blocks_saves_until_a_load_succeeds(
    service: TaskService, storage: MemoryStorage
) -> None:
    storage.fail_load = True
    assert await service.load() is False
    assert service.save_blocked

    await service.create(Task(title="typed after the failure"))
    assert await service.save() is False
    assert storage.save_calls == 0

    storage.fail_load = False
    storage.to_load = [Task(title="from disk")]
    assert await service.load() is True
    assert not service.save_blocked
    assert await service.save() is True
    assert [t.title for t in storage.saved] == ["from disk"]


@pytest.mark.asyncio
async def test_failed_load_with_backup_still_saves(service: TaskService, storage: MemoryStorage) -> None:
    storage.fail_load = True
    storage.backup = Path("memory://tasks.corrupt")
    assert await service.load() is False
    assert service.last_load is not None and service.last_load.backup == storage.backup
    assert not service.save_blocked

    await service.create(Task(title="new"))
    assert [t.title for t in storage.saved] == ["new"]


@pytest.mark.asyncio
async def test_close_after_failed_load_does_not_clobber_file() -> None:
    storage = MemoryStorage(fail_load=True)
    service = TaskService(storage)
    await service.load()

    assert await service.close() is False
    assert storage.save_calls == 0
    assert service.closed


@pytest.mark.asyncio
async def test_xml_file_survives_a_session_with_control_characters(tmp_path: Path) -> None:
    path = tmp_path / "tasks.xml"
    service = TaskService(XmlTaskStorage(path))
    await service.create(Task(title="a"))
    with pytest.raises(ValidationError):
        await service.create(Task(title="b\x01"))

    assert await service.load() is True
    assert await service.close() is True

    reopened = TaskService(XmlTaskStorage(path))
    assert await reopened.load() is True
    assert [t.title for t in await reopened.get_all()] == ["a"]
