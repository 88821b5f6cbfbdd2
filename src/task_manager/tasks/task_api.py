# src/task_manager/tasks/task_api.py

from __future__ import annotations

import logging
import math
from datetime import datetime, time, timedelta

from ..core.ports import TaskRepo
from .errors import ValidationError
from .task_models import Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)


class AmbiguousTaskRef(ValidationError):
    pass


async def resolve_task_ref(service: TaskRepo, ref: str) -> Task | None:
    """
    Find a task by id prefix (case-insensitive, dashes optional).

    Returns None when nothing matches; raises AmbiguousTaskRef when the prefix
    matches more than one task.
    """
    needle = (ref or "").strip().lower()
    if not needle:
        raise ValidationError("Task id is required")

    compact = needle.replace("-", "")
    matches = [
        t
        for t in await service.get_all()
        if str(t.id).startswith(needle) or (compact and t.id.hex.startswith(compact))
    ]
    if len(matches) > 1:
        raise AmbiguousTaskRef(f"Id prefix {ref!r} matches {len(matches)} tasks; type more characters")
    return matches[0] if matches else None


def parse_due_date(raw: str) -> datetime | None:
    """
    "none" / "-" -> None; otherwise an ISO date or datetime.

    A bare date means local midnight of that day. Naive values become local time.
    """
    text = (raw or "").strip()
    if text.lower() in ("", "none", "-", "clear"):
        return None
    try:
        value = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {raw!r} (use YYYY-MM-DD or YYYY-MM-DDTHH:MM)") from e
    return value if value.tzinfo is not None else value.astimezone()


def parse_hours(raw: str, *, allow_none: bool = False) -> float | None:
    text = (raw or "").strip()
    if allow_none and text.lower() in ("none", "-", "clear"):
        return None
    try:
        value = float(text)
    except ValueError as e:
        raise ValidationError(f"Invalid number of hours: {raw!r}") from e
    if not math.isfinite(value):
        raise ValidationError(f"Invalid number of hours: {raw!r}")
    if value < 0:
        raise ValidationError("Hours cannot be negative")
    return value


def _local_day(offset_days: int) -> datetime:
    day = datetime.now().astimezone().date() + timedelta(days=offset_days)
    return datetime.combine(day, time(17, 0)).astimezone()


def build_sample_tasks() -> list[Task]:
    return [
        Task(
            title="Complete Project Documentation",
            description="Write comprehensive documentation for the new project",
            priority=TaskPriority.HIGH,
            status=TaskStatus.IN_PROGRESS,
            assigned_to="John Doe",
            due_date=_local_day(3),
            estimated_hours=8.0,
            actual_hours=4.5,
            tags="documentation, project, api",
        ),
        Task(
            title="Fix Critical Login Bug",
            description="Users unable to login with special characters",
            priority=TaskPriority.CRITICAL,
            status=TaskStatus.NOT_STARTED,
            assigned_to="Jane Smith",
            due_date=_local_day(1),
            estimated_hours=4.0,
            tags="bug, authentication, security",
        ),
        Task(
            title="Database Performance Optimization",
            description="Optimize slow queries and improve response times",
            priority=TaskPriority.NORMAL,
            status=TaskStatus.COMPLETED,
            assigned_to="Bob Johnson",
            due_date=_local_day(-5),
            estimated_hours=6.0,
            actual_hours=5.5,
            tags="database, performance, optimization",
        ),
    ]


async def seed_sample_tasks(service: TaskRepo) -> int:
    """Create demo tasks when the collection is empty. Returns how many were added."""
    if await service.get_all():
        return 0

    samples = build_sample_tasks()
    for task in samples:
        await service.create(task)
    logger.info("Seeded %d sample tasks.", len(samples))
    return len(samples)


def describe_failed_load(service: TaskRepo) -> str:
    """One sentence on what happened to the file a failed load could not read."""
    last = service.last_load
    if last is not None and last.backup is not None:
        return f"The unreadable file was moved to {last.backup}."
    return "Saving is disabled until /reload succeeds, so that file is left as it is."
