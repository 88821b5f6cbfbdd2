# src/task_manager/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The service depends on Protocols instead of concrete implementations.
This keeps the file format swappable (JSON / XML) and makes testing easier.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import Task, TaskPriority, TaskStatus
    from ..tasks.task_stats import TaskStatistics
    from ..tasks.task_storage import LoadResult


class TaskStorage(Protocol):
    """
    Whole-collection persistence.

    save_all receives a snapshot and never keeps a reference to it.
    load_all produces a fresh list; it never touches the caller's collection.
    Neither method raises on I/O or parse problems.
    """

    @property
    def path(self) -> Any: ...

    async def save_all(self, tasks: list[Task]) -> bool: ...
    async def load_all(self) -> LoadResult: ...


class TaskRepo(Protocol):
    """What the console shell needs from the task service."""

    @property
    def storage(self) -> TaskStorage: ...
    @property
    def last_load(self) -> LoadResult | None: ...
    @property
    def save_blocked(self) -> bool: ...

    # Mutations (auto-saved)
    async def create(self, task: Task | None) -> bool: ...
    async def update(self, task: Task | None) -> bool: ...
    async def delete(self, task_id: Any) -> bool: ...

    # Queries (snapshots)
    async def get_by_id(self, task_id: Any) -> Task | None: ...
    async def get_all(self) -> list[Task]: ...
    async def get_by_status(self, status: TaskStatus) -> list[Task]: ...
    async def get_by_priority(self, priority: TaskPriority) -> list[Task]: ...
    async def get_overdue(self, now: datetime | None = None) -> list[Task]: ...
    async def get_by_assignee(self, name: str) -> list[Task]: ...
    async def search(self, term: str) -> list[Task]: ...

    # Persistence / lifetime
    async def save(self) -> bool: ...
    async def load(self) -> bool: ...
    async def statistics(self, now: datetime | None = None) -> TaskStatistics: ...
    async def close(self) -> bool: ...
