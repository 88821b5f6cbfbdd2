# src/task_manager/tasks/task_stats.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from .task_models import STATUS_LABELS, Task, TaskPriority, TaskStatus

HIGH_PRIORITIES = frozenset({TaskPriority.HIGH, TaskPriority.CRITICAL})


@dataclass(frozen=True, slots=True)
class TaskStatistics:
    """
    Aggregate counts over one collection snapshot.

    completion_rate is a fraction (completed / total) and is None for an
    empty collection rather than 0.
    """

    total: int
    by_status: dict[TaskStatus, int]
    overdue: int
    high_priority: int

    @property
    def not_started(self) -> int:
        return self.by_status.get(TaskStatus.NOT_STARTED, 0)

    @property
    def in_progress(self) -> int:
        return self.by_status.get(TaskStatus.IN_PROGRESS, 0)

    @property
    def completed(self) -> int:
        return self.by_status.get(TaskStatus.COMPLETED, 0)

    @property
    def cancelled(self) -> int:
        return self.by_status.get(TaskStatus.CANCELLED, 0)

    @property
    def on_hold(self) -> int:
        return self.by_status.get(TaskStatus.ON_HOLD, 0)

    @property
    def completion_rate(self) -> float | None:
        if self.total == 0:
            return None
        return self.completed / self.total

    @property
    def completion_percentage(self) -> float | None:
        rate = self.completion_rate
        return None if rate is None else rate * 100.0

    def as_dict(self) -> dict[str, int]:
        out = {"Total": self.total}
        for status in TaskStatus:
            out[STATUS_LABELS[status]] = self.by_status.get(status, 0)
        out["Overdue"] = self.overdue
        out["High Priority"] = self.high_priority
        return out


def compute_statistics(tasks: Iterable[Task], now: datetime | None = None) -> TaskStatistics:
    if now is None:
        now = datetime.now().astimezone()

    by_status = {status: 0 for status in TaskStatus}
    total = overdue = high = 0
    for t in tasks:
        total += 1
        by_status[t.status] += 1
        if t.is_overdue(now):
            overdue += 1
        if t.priority in HIGH_PRIORITIES:
            high += 1

    return TaskStatistics(total=total, by_status=by_status, overdue=overdue, high_priority=high)
