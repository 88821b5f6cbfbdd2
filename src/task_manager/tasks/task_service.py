# src/task_manager/tasks/task_service.py

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..core.ports import TaskStorage
from .errors import CapacityError, DuplicateError, ValidationError
from .task_models import Task, TaskPriority, TaskStatus, unstorable_text_fields
from .task_stats import TaskStatistics, compute_statistics
from .task_storage import LoadResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_TASKS = 1000


def _as_uuid(task_id: Any) -> uuid.UUID | None:
    if isinstance(task_id, uuid.UUID):
        return task_id
    try:
        return uuid.UUID(str(task_id))
    except ValueError:
        return None


def _validate_hours(task: Task) -> None:
    if task.estimated_hours is not None:
        if task.estimated_hours < 0:
            raise ValidationError("Estimated hours cannot be negative")
        if not math.isfinite(task.estimated_hours):
            raise ValidationError("Estimated hours must be a finite number")
    if task.actual_hours < 0:
        raise ValidationError("Actual hours cannot be negative")
    if not math.isfinite(task.actual_hours):
        raise ValidationError("Actual hours must be a finite number")


def _validate_text(task: Task) -> None:
    bad = unstorable_text_fields(task)
    if bad:
        label, ch = bad[0]
        raise ValidationError(f"Task {label} contains an unsupported control character {ch!r}")


class TaskService:
    """
    Owner of the in-memory task collection.

    - validated create / update / delete, each followed by a full save when
      auto_save is on (no batching)
    - queries return snapshots: new lists of copied tasks, in collection order
    - load() replaces the collection wholesale, or leaves it untouched on failure
    - after a failed load, saves are refused while the unreadable file is still
      at storage.path (the adapter normally moves it aside first)

    Update is a whole-object replace: the stored record becomes a copy of the
    supplied task. There are no field-level updates at this layer.

    Lifetime:
    - the owner must call close() before dropping the service; it flushes the
      collection to storage. Nothing is saved implicitly on garbage collection.

    Concurrency:
    - one asyncio.Lock serializes every mutation with its auto-save, and every
      load/save, so at most one of them is in flight.
    """

    def __init__(
        self,
        storage: TaskStorage,
        *,
        max_tasks: int = DEFAULT_MAX_TASKS,
        auto_save: bool = True,
    ) -> None:
        if max_tasks < 1:
            raise ValueError("max_tasks must be >= 1")
        self._storage = storage
        self._max_tasks = int(max_tasks)
        self._auto_save = bool(auto_save)
        self._tasks: list[Task] = []
        self._lock = asyncio.Lock()
        self._closed = False
        self._last_load: LoadResult | None = None
        # set while an unreadable file is still in place at storage.path
        self._save_blocked = False
        logger.info(
            "TaskService ready storage=%r max_tasks=%d auto_save=%s",
            storage,
            self._max_tasks,
            self._auto_save,
        )

    # ---- properties ----

    @property
    def storage(self) -> TaskStorage:
        return self._storage

    @property
    def max_tasks(self) -> int:
        return self._max_tasks

    @property
    def auto_save(self) -> bool:
        return self._auto_save

    @property
    def count(self) -> int:
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_load(self) -> LoadResult | None:
        return self._last_load

    @property
    def save_blocked(self) -> bool:
        return self._save_blocked

    # ---- low-level helpers ----

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("TaskService is closed")

    def _index_of(self, task_id: uuid.UUID | None) -> int:
        if task_id is None:
            return -1
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return -1

    def _snapshot(self, predicate: Callable[[Task], bool] | None = None) -> list[Task]:
        return [t.copy() for t in self._tasks if predicate is None or predicate(t)]

    async def _save_locked(self) -> bool:
        if self._save_blocked:
            logger.warning(
                "Not saving: %s could not be read and is still in place; %d tasks remain in memory only.",
                self._storage.path,
                len(self._tasks),
            )
            return False
        ok = await self._storage.save_all(self._snapshot())
        if not ok:
            logger.warning("Save failed; %d tasks remain in memory only.", len(self._tasks))
        return ok

    async def _after_mutation(self) -> None:
        if self._auto_save:
            await self._save_locked()

    # ---- mutations ----

    async def create(self, task: Task | None) -> bool:
        if task is None:
            raise ValidationError("Task is required")
        if not task.title or not task.title.strip():
            raise ValidationError("Task title cannot be empty")
        _validate_hours(task)
        _validate_text(task)

        async with self._lock:
            self._ensure_open()
            if len(self._tasks) >= self._max_tasks:
                raise CapacityError(f"Maximum number of tasks ({self._max_tasks}) reached")
            if self._index_of(task.id) != -1:
                raise DuplicateError(f"Task with id {task.id} already exists")

            self._tasks.append(task.copy())
            logger.debug("Task created id=%s title=%r", task.id, task.title)
            await self._after_mutation()
        return True

    async def update(self, task: Task | None) -> bool:
        if task is None:
            raise ValidationError("Task is required")
        _validate_hours(task)
        _validate_text(task)

        async with self._lock:
            self._ensure_open()
            idx = self._index_of(task.id)
            if idx == -1:
                logger.debug("Update skipped, task not found id=%s", task.id)
                return False

            task.touch()
            self._tasks[idx] = task.copy()
            logger.debug("Task updated id=%s status=%s", task.id, task.status.name)
            await self._after_mutation()
        return True

    async def delete(self, task_id: Any) -> bool:
        async with self._lock:
            self._ensure_open()
            idx = self._index_of(_as_uuid(task_id))
            if idx == -1:
                logger.debug("Delete skipped, task not found id=%s", task_id)
                return False

            removed = self._tasks.pop(idx)
            logger.debug("Task deleted id=%s title=%r", removed.id, removed.title)
            await self._after_mutation()
        return True

    # ---- queries ----

    async def get_by_id(self, task_id: Any) -> Task | None:
        idx = self._index_of(_as_uuid(task_id))
        return self._tasks[idx].copy() if idx != -1 else None

    async def get_all(self) -> list[Task]:
        return self._snapshot()

    async def get_by_status(self, status: TaskStatus) -> list[Task]:
        status = TaskStatus.parse(status)
        return self._snapshot(lambda t: t.status == status)

    async def get_by_priority(self, priority: TaskPriority) -> list[Task]:
        priority = TaskPriority.parse(priority)
        return self._snapshot(lambda t: t.priority == priority)

    async def get_overdue(self, now: datetime | None = None) -> list[Task]:
        if now is None:
            now = datetime.now().astimezone()
        return self._snapshot(lambda t: t.is_overdue(now))

    async def get_by_assignee(self, name: str) -> list[Task]:
        if not name or not name.strip():
            raise ValidationError("Assignee cannot be empty")
        needle = name.casefold()
        return self._snapshot(lambda t: (t.assigned_to or "").casefold() == needle)

    async def search(self, term: str) -> list[Task]:
        """Case-insensitive substring match over title, description and tags."""
        if not term or not term.strip():
            raise ValidationError("Search term cannot be empty")
        needle = term.casefold()

        def matches(t: Task) -> bool:
            return any(needle in (text or "").casefold() for text in (t.title, t.description, t.tags))

        return self._snapshot(matches)

    async def statistics(self, now: datetime | None = None) -> TaskStatistics:
        return compute_statistics(self._tasks, now)

    # ---- persistence / lifetime ----

    async def save(self) -> bool:
        async with self._lock:
            return await self._save_locked()

    async def load(self) -> bool:
        async with self._lock:
            self._ensure_open()
            result = await self._storage.load_all()
            self._last_load = result
            if not result.ok:
                self._save_blocked = result.backup is None
                logger.warning(
                    "Load failed; keeping %d tasks already in memory (backup=%s, saving %s).",
                    len(self._tasks),
                    result.backup,
                    "blocked" if self._save_blocked else "allowed",
                )
                return False

            self._save_blocked = False

            loaded: list[Task] = []
            seen: set[uuid.UUID] = set()
            for t in result.tasks:
                if t.id in seen:
                    logger.warning("Dropping duplicate task id=%s from storage.", t.id)
                    continue
                seen.add(t.id)
                loaded.append(t)

            self._tasks = loaded
            logger.info("Task collection loaded: %d tasks (%d skipped)", len(loaded), result.skipped)
        return True

    async def close(self) -> bool:
        """
        Flush the collection to storage and mark the service closed.

        Post-condition: the file reflects the final in-memory state (unless the
        save itself failed, which is reported as False). Mutations after close
        raise RuntimeError. A second close is a no-op returning True.
        """
        async with self._lock:
            if self._closed:
                return True
            ok = await self._save_locked()
            self._closed = True
            logger.info("TaskService closed (final save ok=%s, tasks=%d)", ok, len(self._tasks))
            return ok
