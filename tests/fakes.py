# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from task_manager.tasks.task_models import Task
from task_manager.tasks.task_storage import LoadResult


@dataclass
class MemoryStorage:
    """
    In-memory TaskStorage used by service tests.

    - keeps copies of whatever was saved (like a file would)
    - counts calls so tests can assert the auto-save policy
    - can be switched to fail saves or loads
    """

    path: Path = Path("memory://tasks")
    saved: list[Task] = field(default_factory=list)
    to_load: list[Task] = field(default_factory=list)
    skipped: int = 0
    save_calls: int = 0
    load_calls: int = 0
    fail_save: bool = False
    fail_load: bool = False
    # reported as LoadResult.backup when a load fails
    backup: Path | None = None

    async def save_all(self, tasks: list[Task]) -> bool:
        self.save_calls += 1
        if self.fail_save:
            return False
        self.saved = [t.copy() for t in tasks]
        return True

    async def load_all(self) -> LoadResult:
        self.load_calls += 1
        if self.fail_load:
            return LoadResult(ok=False, backup=self.backup)
        return LoadResult(ok=True, tasks=[t.copy() for t in self.to_load], skipped=self.skipped)
