# src/task_manager/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- takes settings once,
- ensures the local (gitignored) data directory exists,
- wires the storage adapter into the TaskService and both into AppState,
- loads the collection at startup and seeds demo data on first run,
- flushes and closes the service at shutdown.
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..core.state import AppState
from ..tasks.task_api import describe_failed_load, seed_sample_tasks
from ..tasks.task_service import TaskService
from ..tasks.task_storage import create_storage

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_file.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    storage = create_storage(settings.storage_format, settings.tasks_file)
    service = TaskService(
        storage,
        max_tasks=settings.max_tasks,
        auto_save=settings.auto_save,
    )
    return AppState(settings=settings, service=service)


async def start_session(state: AppState) -> str:
    """Load tasks (and seed samples on an empty first run). Returns a status line."""
    loaded = await state.service.load()
    count = len(await state.service.get_all())
    if loaded:
        msg = f"Loaded {count} existing tasks."
    else:
        msg = (
            f"Could not read {state.service.storage.path}; starting with an empty list. "
            + describe_failed_load(state.service)
        )

    if loaded and count == 0 and getattr(state.settings, "seed_samples", False):
        added = await seed_sample_tasks(state.service)
        if added:
            msg += f" Created {added} sample tasks."
    return msg


async def end_session(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        ok = await state.service.close()
        if not ok:
            logger.error("Final save failed; recent changes may be lost.")
    except Exception:
        logger.exception("Failed to close task service.")
