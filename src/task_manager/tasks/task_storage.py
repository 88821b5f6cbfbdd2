# src/task_manager/tasks/task_storage.py

from __future__ import annotations

"""
File-backed task storage.

One file holds the whole collection. Saving rewrites the file (tmp + os.replace),
loading parses it into a fresh list of Task objects.

Two interchangeable encodings:
- JsonTaskStorage: array of camelCase objects (default, tasks.json)
- XmlTaskStorage: <Tasks><Task><Id/>...</Task></Tasks> (tasks.xml)

Error policy:
- missing file on load -> empty collection, success (first run)
- unreadable / unparseable file -> empty collection, failure; the file is moved
  aside to <name>.corrupt so a later save cannot overwrite it
- a single malformed record -> skipped, counted, logged; the load still succeeds
- any failure on save -> logged, reported as False
"""

import asyncio
import json
import logging
import math
import os
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import StorageError
from .task_models import Task, TaskPriority, TaskStatus, unstorable_text_fields

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoadResult:
    ok: bool
    tasks: list[Task] = field(default_factory=list)
    skipped: int = 0
    # where an unreadable file was moved to (None: nothing moved)
    backup: Path | None = None


# ---- field codecs (shared by both encodings) ----


def _encode_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _encode_float(value: float | None) -> str | None:
    return repr(float(value)) if value is not None else None


def _decode_dt(raw: Any, name: str, *, required: bool) -> datetime | None:
    if raw is None or raw == "":
        if required:
            raise StorageError(f"missing {name}")
        return None
    if not isinstance(raw, str):
        raise StorageError(f"invalid {name}: {raw!r}")
    try:
        value = datetime.fromisoformat(raw)
    except ValueError as e:
        raise StorageError(f"invalid {name}: {raw!r}") from e
    if value.tzinfo is None:
        raise StorageError(f"{name} has no offset: {raw!r}")
    return value


def _decode_float(raw: Any, name: str) -> float | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise StorageError(f"invalid {name}: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError) as e:
        raise StorageError(f"invalid {name}: {raw!r}") from e
    if not math.isfinite(value):
        raise StorageError(f"invalid {name}: {raw!r}")
    if value < 0:
        raise StorageError(f"negative {name}: {value}")
    return value


def _decode_text(raw: Any, name: str) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise StorageError(f"invalid {name}: {raw!r}")
    return raw


def _decode_enum(enum_cls: Any, raw: Any, name: str, default: Any) -> Any:
    if raw is None or raw == "":
        return default
    try:
        return enum_cls.parse(raw)
    except ValueError as e:
        raise StorageError(f"invalid {name}: {raw!r}") from e


def _task_from_fields(values: dict[str, Any]) -> Task:
    """
    Build a Task from raw per-field values (strings, numbers or None).

    Keys are the camelCase names used by the JSON encoding.
    Raises StorageError when the record cannot be trusted.
    """
    raw_id = values.get("id")
    try:
        task_id = uuid.UUID(str(raw_id)) if raw_id not in (None, "") else None
    except ValueError as e:
        raise StorageError(f"invalid id: {raw_id!r}") from e
    if task_id is None:
        raise StorageError("missing id")

    title = values.get("title")
    if not isinstance(title, str):
        raise StorageError(f"missing title for id={task_id}")

    created_at = _decode_dt(values.get("createdAt"), "createdAt", required=True)
    updated_at = _decode_dt(values.get("updatedAt"), "updatedAt", required=False)
    actual_hours = _decode_float(values.get("actualHours"), "actualHours")

    return Task(
        id=task_id,
        title=title,
        description=_decode_text(values.get("description"), "description"),
        priority=_decode_enum(TaskPriority, values.get("priority"), "priority", TaskPriority.NORMAL),
        status=_decode_enum(TaskStatus, values.get("status"), "status", TaskStatus.NOT_STARTED),
        created_at=created_at,  # type: ignore[arg-type]
        updated_at=updated_at,
        due_date=_decode_dt(values.get("dueDate"), "dueDate", required=False),
        assigned_to=_decode_text(values.get("assignedTo"), "assignedTo"),
        tags=_decode_text(values.get("tags"), "tags"),
        estimated_hours=_decode_float(values.get("estimatedHours"), "estimatedHours"),
        actual_hours=actual_hours if actual_hours is not None else 0.0,
    )


# ---- adapters ----


class FileTaskStorage:
    """
    Base class: path handling, atomic writes and the load/save error policy.

    Subclasses implement `_encode(tasks) -> str` and `_decode(text)`, where
    `_decode` returns the raw records and `_parse_record` turns one into a Task.
    """

    format_name = "file"
    default_filename = "tasks.dat"

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else Path(self.default_filename)

    @property
    def path(self) -> Path:
        return self._path

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={str(self._path)!r})"

    # ---- hooks ----

    def _encode(self, tasks: list[Task]) -> str:
        raise NotImplementedError

    def _decode(self, text: str) -> list[Any]:
        raise NotImplementedError

    def _parse_record(self, record: Any) -> Task:
        raise NotImplementedError

    # ---- sync workers (run in a thread) ----

    def _write(self, tasks: list[Task]) -> None:
        payload = self._encode(tasks)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(payload, "utf-8")
        os.replace(tmp, self._path)

    def _read(self) -> LoadResult:
        if not self._path.exists():
            logger.info("No task file at %s; starting with an empty collection.", self._path)
            return LoadResult(ok=True)

        try:
            text = self._path.read_text("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"cannot read {self._path}: {e}") from e

        records = self._decode(text)
        tasks: list[Task] = []
        skipped = 0
        for index, record in enumerate(records):
            try:
                tasks.append(self._parse_record(record))
            except StorageError as e:
                skipped += 1
                logger.warning("Skipping malformed task record #%d in %s: %s", index, self._path, e)
            except Exception:
                skipped += 1
                logger.warning(
                    "Skipping unreadable task record #%d in %s", index, self._path, exc_info=True
                )

        if skipped:
            logger.warning(
                "Loaded %d tasks from %s, dropped %d malformed record(s).",
                len(tasks),
                self._path,
                skipped,
            )
        else:
            logger.info("Loaded %d tasks from %s", len(tasks), self._path)
        return LoadResult(ok=True, tasks=tasks, skipped=skipped)

    def _quarantine(self) -> Path | None:
        """Move an unreadable file out of the way; returns the new path."""
        if not self._path.exists():
            return None
        backup = self._path.with_name(self._path.name + ".corrupt")
        n = 1
        while backup.exists():
            backup = self._path.with_name(f"{self._path.name}.corrupt.{n}")
            n += 1
        try:
            os.replace(self._path, backup)
        except OSError:
            logger.exception("Could not move unreadable %s aside", self._path)
            return None
        logger.warning("Moved unreadable task file %s to %s", self._path, backup)
        return backup

    # ---- public API ----

    async def save_all(self, tasks: list[Task]) -> bool:
        snapshot = [t.copy() for t in tasks]
        try:
            await asyncio.to_thread(self._write, snapshot)
        except Exception:
            logger.exception("Failed to save %d tasks to %s", len(snapshot), self._path)
            return False
        logger.debug("Saved %d tasks to %s", len(snapshot), self._path)
        return True

    async def load_all(self) -> LoadResult:
        try:
            return await asyncio.to_thread(self._read)
        except StorageError as e:
            logger.error("Failed to load tasks from %s: %s", self._path, e)
        except Exception:
            logger.exception("Failed to load tasks from %s", self._path)
        backup = await asyncio.to_thread(self._quarantine)
        return LoadResult(ok=False, backup=backup)


class JsonTaskStorage(FileTaskStorage):
    format_name = "json"
    default_filename = "tasks.json"

    @staticmethod
    def task_to_dict(task: Task) -> dict[str, Any]:
        return {
            "id": str(task.id),
            "title": task.title,
            "description": task.description,
            "priority": int(task.priority),
            "status": int(task.status),
            "createdAt": _encode_dt(task.created_at),
            "updatedAt": _encode_dt(task.updated_at),
            "dueDate": _encode_dt(task.due_date),
            "assignedTo": task.assigned_to,
            "tags": task.tags,
            "estimatedHours": float(task.estimated_hours) if task.estimated_hours is not None else None,
            "actualHours": float(task.actual_hours),
        }

    def _encode(self, tasks: list[Task]) -> str:
        return json.dumps([self.task_to_dict(t) for t in tasks], ensure_ascii=False, indent=2)

    def _decode(self, text: str) -> list[Any]:
        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"invalid JSON in {self.path}: {e}") from e
        if not isinstance(data, list):
            raise StorageError(f"expected a JSON array in {self.path}, got {type(data).__name__}")
        return data

    def _parse_record(self, record: Any) -> Task:
        if not isinstance(record, dict):
            raise StorageError(f"expected an object, got {type(record).__name__}")
        return _task_from_fields(record)


# Element name <-> field key (JSON camelCase keys are the canonical ones).
_XML_FIELDS: tuple[tuple[str, str], ...] = (
    ("Id", "id"),
    ("Title", "title"),
    ("Description", "description"),
    ("Priority", "priority"),
    ("Status", "status"),
    ("CreatedAt", "createdAt"),
    ("UpdatedAt", "updatedAt"),
    ("DueDate", "dueDate"),
    ("AssignedTo", "assignedTo"),
    ("Tags", "tags"),
    ("EstimatedHours", "estimatedHours"),
    ("ActualHours", "actualHours"),
)


class XmlTaskStorage(FileTaskStorage):
    format_name = "xml"
    default_filename = "tasks.xml"

    @staticmethod
    def task_to_element(task: Task) -> ET.Element:
        bad = unstorable_text_fields(task)
        if bad:
            label, ch = bad[0]
            raise StorageError(f"task id={task.id} {label} holds {ch!r}, which XML cannot store")
        values: dict[str, str | None] = {
            "id": str(task.id),
            "title": task.title,
            "description": task.description,
            "priority": str(int(task.priority)),
            "status": str(int(task.status)),
            "createdAt": _encode_dt(task.created_at),
            "updatedAt": _encode_dt(task.updated_at),
            "dueDate": _encode_dt(task.due_date),
            "assignedTo": task.assigned_to,
            "tags": task.tags,
            "estimatedHours": _encode_float(task.estimated_hours),
            "actualHours": _encode_float(task.actual_hours),
        }
        el = ET.Element("Task")
        for tag, key in _XML_FIELDS:
            child = ET.SubElement(el, tag)
            child.text = values[key] or ""
        return el

    def _encode(self, tasks: list[Task]) -> str:
        root = ET.Element("Tasks")
        for t in tasks:
            root.append(self.task_to_element(t))
        ET.indent(root)
        # Parsers normalize a raw CR (and CRLF) in text to LF; a character
        # reference survives. ET.indent only inserts LF, so every CR is data.
        body = ET.tostring(root, encoding="unicode").replace("\r", "&#13;")
        return '<?xml version="1.0" encoding="utf-8" standalone="yes"?>\n' + body + "\n"

    def _decode(self, text: str) -> list[Any]:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise StorageError(f"invalid XML in {self.path}: {e}") from e
        if root.tag != "Tasks":
            raise StorageError(f"expected <Tasks> root in {self.path}, got <{root.tag}>")
        return list(root.findall("Task"))

    def _parse_record(self, record: Any) -> Task:
        values: dict[str, Any] = {}
        for tag, key in _XML_FIELDS:
            child = record.find(tag)
            if child is None:
                values[key] = None
                continue
            values[key] = child.text or ""
        # An absent <Title> is malformed; an empty one is an empty string.
        if values["title"] is None:
            raise StorageError(f"missing Title for id={values.get('id')!r}")
        return _task_from_fields(values)


_STORAGE_TYPES: dict[str, type[FileTaskStorage]] = {
    JsonTaskStorage.format_name: JsonTaskStorage,
    XmlTaskStorage.format_name: XmlTaskStorage,
}


def create_storage(fmt: str, path: str | Path | None = None) -> FileTaskStorage:
    """Build a storage adapter for `fmt` ("json" or "xml")."""
    key = (fmt or "").strip().lower()
    cls = _STORAGE_TYPES.get(key)
    if cls is None:
        raise ValueError(f"unknown storage format: {fmt!r} (expected one of {sorted(_STORAGE_TYPES)})")
    return cls(path)
