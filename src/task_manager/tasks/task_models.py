# src/task_manager/tasks/task_models.py

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Any


def _now() -> datetime:
    return datetime.now().astimezone()


def _aware(value: datetime) -> datetime:
    # Naive values are taken as local time.
    return value if value.tzinfo is not None else value.astimezone()


def _norm_key(raw: str) -> str:
    return "".join(ch for ch in raw.lower() if ch not in " _-")


class _ParseableEnum(IntEnum):
    @classmethod
    def parse(cls, raw: Any):
        """
        Accept an ordinal, a member name or a display label.

        Raises ValueError for anything that does not map to a member.
        """
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, bool):
            raise ValueError(f"invalid {cls.__name__}: {raw!r}")
        if isinstance(raw, int):
            return cls(raw)
        if isinstance(raw, str):
            text = raw.strip()
            if text.lstrip("-").isdigit():
                return cls(int(text))
            key = _norm_key(text)
            for member in cls:
                if key == _norm_key(member.name):
                    return member
        raise ValueError(f"invalid {cls.__name__}: {raw!r}")


class TaskPriority(_ParseableEnum):
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


class TaskStatus(_ParseableEnum):
    NOT_STARTED = 0
    IN_PROGRESS = 1
    COMPLETED = 2
    CANCELLED = 3
    ON_HOLD = 4


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})

STATUS_LABELS: dict[TaskStatus, str] = {
    TaskStatus.NOT_STARTED: "Not Started",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.CANCELLED: "Cancelled",
    TaskStatus.ON_HOLD: "On Hold",
}

PRIORITY_LABELS: dict[TaskPriority, str] = {
    TaskPriority.LOW: "Low",
    TaskPriority.NORMAL: "Normal",
    TaskPriority.HIGH: "High",
    TaskPriority.CRITICAL: "Critical",
}


@dataclass(slots=True, eq=False)
class Task:
    """
    A unit of trackable work.

    Identity is the `id`: two Task objects are equal when their ids match,
    regardless of the other fields. Use `field_values()` to compare content.

    Timestamps are always offset-aware; naive values given to the constructor
    are interpreted as local time.
    """

    title: str = ""
    description: str = ""
    priority: TaskPriority = TaskPriority.NORMAL
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: datetime | None = None
    assigned_to: str = ""
    tags: str = ""
    estimated_hours: float | None = None
    actual_hours: float = 0.0

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.priority = TaskPriority(self.priority)
        self.status = TaskStatus(self.status)
        self.created_at = _aware(self.created_at)
        self.updated_at = self.created_at if self.updated_at is None else _aware(self.updated_at)
        if self.due_date is not None:
            self.due_date = _aware(self.due_date)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Task):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def touch(self, now: datetime | None = None) -> None:
        """Refresh updated_at (never earlier than created_at)."""
        stamp = _aware(now) if now is not None else _now()
        self.updated_at = max(stamp, self.created_at)

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.due_date is None or self.status in TERMINAL_STATUSES:
            return False
        now = _aware(now) if now is not None else _now()
        return now > self.due_date

    def days_until_due(self, now: datetime | None = None) -> int | None:
        if self.due_date is None:
            return None
        now = _aware(now) if now is not None else _now()
        return math.ceil((self.due_date - now) / timedelta(days=1))

    def copy(self) -> Task:
        return replace(self)

    def field_values(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def short_id(task: Task) -> str:
    return task.id.hex[:8]


def status_display(task: Task, now: datetime | None = None) -> str:
    text = STATUS_LABELS[task.status]
    if task.is_overdue(now):
        text += " (OVERDUE)"
    return text


def priority_display(priority: TaskPriority) -> str:
    return PRIORITY_LABELS[priority]


# Control characters XML 1.0 cannot carry, lone surrogates (not encodable as
# UTF-8) and the two noncharacters U+FFFE/U+FFFF. Tab, LF and CR are allowed.
_UNSTORABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

TEXT_FIELDS: tuple[tuple[str, str], ...] = (
    ("title", "title"),
    ("description", "description"),
    ("assigned_to", "assignee"),
    ("tags", "tags"),
)


def find_unstorable_char(text: str) -> str | None:
    """Return the first character that no task file can hold, or None."""
    m = _UNSTORABLE_RE.search(text or "")
    return m.group() if m else None


def unstorable_text_fields(task: Task) -> list[tuple[str, str]]:
    """(label, offending char) for every text field of `task` that cannot be stored."""
    found: list[tuple[str, str]] = []
    for attr, label in TEXT_FIELDS:
        ch = find_unstorable_char(getattr(task, attr))
        if ch is not None:
            found.append((label, ch))
    return found
