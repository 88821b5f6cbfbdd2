# src/task_manager/cli/formatting.py

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ..tasks.task_models import Task, priority_display, short_id, status_display
from ..tasks.task_stats import TaskStatistics

TITLE_MAX = 22
# (header, width)
COLUMNS: tuple[tuple[str, int], ...] = (
    ("ID", 10),
    ("Title", 25),
    ("Status", 21),
    ("Priority", 10),
    ("Assignee", 15),
    ("Due Date", 12),
)


def _fmt_date(value: datetime | None, empty: str = "No due date") -> str:
    return value.strftime("%m/%d/%Y") if value is not None else empty


def _fit(text: str, width: int) -> str:
    return text[:width].ljust(width)


def format_task_row(task: Task, now: datetime | None = None) -> str:
    title = task.title if len(task.title) <= TITLE_MAX else task.title[:TITLE_MAX] + "..."
    cells = (
        short_id(task),
        title,
        status_display(task, now),
        priority_display(task.priority),
        task.assigned_to.strip() or "Unassigned",
        _fmt_date(task.due_date),
    )
    return " ".join(_fit(text, width) for text, (_, width) in zip(cells, COLUMNS)).rstrip()


def format_task_table(tasks: Iterable[Task], now: datetime | None = None) -> str:
    rows = [format_task_row(t, now) for t in tasks]
    if not rows:
        return "No tasks to display."
    header = " ".join(_fit(name, width) for name, width in COLUMNS).rstrip()
    rule = "-" * (sum(width for _, width in COLUMNS) + len(COLUMNS) - 1)
    return "\n".join([header, rule, *rows])


def format_task_detail(task: Task, now: datetime | None = None) -> str:
    days = task.days_until_due(now)
    if days is None:
        due = "No due date"
    elif days < 0:
        due = f"{_fmt_date(task.due_date)} ({-days} day(s) ago)"
    else:
        due = f"{_fmt_date(task.due_date)} (in {days} day(s))"

    estimate = "-" if task.estimated_hours is None else f"{task.estimated_hours:g}h"
    lines = [
        f"[{short_id(task)}] {task.title}",
        f"  Id:          {task.id}",
        f"  Status:      {status_display(task, now)}",
        f"  Priority:    {priority_display(task.priority)}",
        f"  Assigned to: {task.assigned_to or 'Unassigned'}",
        f"  Due:         {due}",
        f"  Hours:       {task.actual_hours:g}h spent / {estimate} estimated",
        f"  Tags:        {task.tags or '-'}",
        f"  Created:     {task.created_at.isoformat(timespec='seconds')}",
        f"  Updated:     {task.updated_at.isoformat(timespec='seconds')}",
    ]
    if task.description:
        lines.append(f"  Description: {task.description}")
    return "\n".join(lines)


def format_statistics(stats: TaskStatistics) -> str:
    lines = ["Task statistics:"]
    for label, value in stats.as_dict().items():
        lines.append(f"  {label + ':':<15} {value}")
    pct = stats.completion_percentage
    if pct is not None:
        lines.append(f"  {'Completion:':<15} {pct:.1f}%")
    return "\n".join(lines)
