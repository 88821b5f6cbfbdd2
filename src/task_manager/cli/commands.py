# src/task_manager/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, cast

from ..core.state import AppState
from ..tasks.errors import ValidationError
from ..tasks.task_api import describe_failed_load, parse_due_date, parse_hours, resolve_task_ref
from ..tasks.task_models import (
    PRIORITY_LABELS,
    STATUS_LABELS,
    Task,
    TaskPriority,
    TaskStatus,
    short_id,
)
from .formatting import format_statistics, format_task_detail, format_task_table

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Domain errors (TaskError) propagate to the caller.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Save and quit.")
        return "\n".join(lines)


registry = CommandRegistry()


async def _require_task(state: AppState, ref: str) -> Task:
    task = await resolve_task_ref(state.service, ref)
    if task is None:
        raise ValidationError(f"Task not found: {ref}")
    return task


def _choices(labels: dict[Any, str]) -> str:
    return ", ".join(f"{int(member)}={label}" for member, label in labels.items())


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_info(state: AppState, args: list[str]) -> str:
    s = state.settings
    return (
        "Settings:\n"
        f"  Tasks file: {getattr(s, 'tasks_file', '?')} ({getattr(s, 'storage_format', '?')})\n"
        f"  Max tasks: {getattr(s, 'max_tasks', '?')}\n"
        f"  Auto-save: {'ON' if getattr(s, 'auto_save', True) else 'OFF'}"
    )


async def cmd_list(state: AppState, args: list[str]) -> str:
    tasks = await state.service.get_all()
    if not tasks:
        return "No tasks found."
    return f"All tasks ({len(tasks)}):\n" + format_task_table(tasks)


async def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <id-prefix>"
    return format_task_detail(await _require_task(state, args[0]))


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title...>  -> create a task with default fields
    Use /set afterwards to fill in priority, due date, assignee, ...
    """
    title = " ".join(args).strip()
    if not title:
        return "Usage: /add <title>"

    task = Task(title=title)
    await state.service.create(task)
    logger.debug("Task added from console id=%s", task.id)
    return f"Task created: [{short_id(task)}] {task.title}"


def _set_title(task: Task, value: str) -> None:
    if not value.strip():
        raise ValidationError("Task title cannot be empty")
    task.title = value.strip()


def _set_description(task: Task, value: str) -> None:
    task.description = value


def _set_status(task: Task, value: str) -> None:
    try:
        task.status = TaskStatus.parse(value)
    except ValueError as e:
        raise ValidationError(f"Unknown status {value!r}. Choose: {_choices(STATUS_LABELS)}") from e


def _set_priority(task: Task, value: str) -> None:
    try:
        task.priority = TaskPriority.parse(value)
    except ValueError as e:
        raise ValidationError(f"Unknown priority {value!r}. Choose: {_choices(PRIORITY_LABELS)}") from e


def _set_assignee(task: Task, value: str) -> None:
    task.assigned_to = value.strip()


def _set_tags(task: Task, value: str) -> None:
    task.tags = value.strip()


def _set_due(task: Task, value: str) -> None:
    task.due_date = parse_due_date(value)


def _set_estimate(task: Task, value: str) -> None:
    task.estimated_hours = parse_hours(value, allow_none=True)


def _set_hours(task: Task, value: str) -> None:
    hours = parse_hours(value)
    task.actual_hours = hours if hours is not None else 0.0


FIELD_SETTERS: dict[str, Callable[[Task, str], None]] = {
    "title": _set_title,
    "description": _set_description,
    "desc": _set_description,
    "status": _set_status,
    "priority": _set_priority,
    "assignee": _set_assignee,
    "assigned": _set_assignee,
    "tags": _set_tags,
    "due": _set_due,
    "estimate": _set_estimate,
    "hours": _set_hours,
}


async def cmd_set(state: AppState, args: list[str]) -> str:
    """
    /set <id-prefix> <field> <value...>

    The task is fetched, the field changed on the copy, and the whole record
    is sent back through update().
    """
    if len(args) < 2:
        fields = ", ".join(sorted(FIELD_SETTERS))
        return f"Usage: /set <id-prefix> <field> <value>. Fields: {fields}"

    ref, field_name, value = args[0], args[1].lower(), " ".join(args[2:])
    setter = FIELD_SETTERS.get(field_name)
    if setter is None:
        return f"Unknown field: {field_name}. Fields: {', '.join(sorted(FIELD_SETTERS))}"

    task = await _require_task(state, ref)
    setter(task, value)
    if not await state.service.update(task):
        return f"Task not found: {ref}"
    return f"Task updated: [{short_id(task)}] {field_name} set."


async def cmd_delete(state: AppState, args: list[str]) -> str:
    """
    /delete <id-prefix>      -> ask for confirmation
    /delete <id-prefix> yes  -> delete
    """
    if not args:
        return "Usage: /delete <id-prefix> [yes]"

    task = await _require_task(state, args[0])
    confirmed = len(args) > 1 and args[1].lower() in ("y", "yes")
    if not confirmed:
        return f"Delete [{short_id(task)}] {task.title}? Repeat with: /delete {args[0]} yes"

    if not await state.service.delete(task.id):
        return f"Task not found: {args[0]}"
    return f"Task deleted: [{short_id(task)}] {task.title}"


async def cmd_filter(state: AppState, args: list[str]) -> str:
    """
    /filter status <value>
    /filter priority <value>
    /filter assignee <name...>
    """
    if len(args) < 2:
        return "Usage: /filter status|priority|assignee <value>"

    kind, value = args[0].lower(), " ".join(args[1:])
    if kind == "status":
        try:
            status = TaskStatus.parse(value)
        except ValueError:
            return f"Unknown status {value!r}. Choose: {_choices(STATUS_LABELS)}"
        tasks = await state.service.get_by_status(status)
        title = f"Tasks with status {STATUS_LABELS[status]}"
    elif kind == "priority":
        try:
            priority = TaskPriority.parse(value)
        except ValueError:
            return f"Unknown priority {value!r}. Choose: {_choices(PRIORITY_LABELS)}"
        tasks = await state.service.get_by_priority(priority)
        title = f"Tasks with priority {PRIORITY_LABELS[priority]}"
    elif kind in ("assignee", "assigned"):
        tasks = await state.service.get_by_assignee(value)
        title = f"Tasks assigned to {value}"
    else:
        return "Usage: /filter status|priority|assignee <value>"

    if not tasks:
        return f"{title}: none."
    return f"{title} ({len(tasks)}):\n" + format_task_table(tasks)


async def cmd_overdue(state: AppState, args: list[str]) -> str:
    tasks = await state.service.get_overdue()
    if not tasks:
        return "No overdue tasks."
    return f"Overdue tasks ({len(tasks)}):\n" + format_task_table(tasks)


async def cmd_search(state: AppState, args: list[str]) -> str:
    term = " ".join(args)
    if not term.strip():
        return "Usage: /search <term>"
    tasks = await state.service.search(term)
    if not tasks:
        return f'No tasks matching "{term}".'
    return f'Found {len(tasks)} task(s) matching "{term}":\n' + format_task_table(tasks)


async def cmd_stats(state: AppState, args: list[str]) -> str:
    return format_statistics(await state.service.statistics())


async def cmd_save(state: AppState, args: list[str]) -> str:
    ok = await state.service.save()
    return "Tasks saved." if ok else "Save failed (see log)."


async def cmd_reload(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("Reloading tasks from disk (unsaved changes are discarded)...")
    ok = await state.service.load()
    if not ok:
        note = describe_failed_load(state.service)
        return f"Reload failed; keeping the tasks already in memory. {note}"
    return f"Reloaded {len(await state.service.get_all())} tasks."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("info", cmd_info, help_text="Show storage settings.")
registry.register("list", cmd_list, help_text="List all tasks.", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task: /show <id-prefix>.")
registry.register("add", cmd_add, help_text="Create a task: /add <title>.", aliases=["new"])
registry.register(
    "set",
    cmd_set,
    help_text="Update a field: /set <id-prefix> <field> <value> (status, priority, due, ...).",
)
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id-prefix> yes.", aliases=["rm"])
registry.register(
    "filter", cmd_filter, help_text="Filter: /filter status|priority|assignee <value>."
)
registry.register("overdue", cmd_overdue, help_text="List overdue tasks.")
registry.register("search", cmd_search, help_text="Search title/description/tags: /search <term>.")
registry.register("stats", cmd_stats, help_text="Show task statistics.")
registry.register("save", cmd_save, help_text="Save tasks to disk now.")
registry.register("reload", cmd_reload, help_text="Reload tasks from disk.")
