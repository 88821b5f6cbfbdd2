# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from task_manager.core.state import AppState
from task_manager.tasks.task_service import TaskService
from task_manager.tasks.task_storage import JsonTaskStorage

from .fakes import MemoryStorage


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="task-manager-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        storage_format="json",
        tasks_file=tmp_path / "tasks.json",
        max_tasks=10,
        auto_save=True,
        seed_samples=False,
    )


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def service(storage: MemoryStorage) -> TaskService:
    return TaskService(storage, max_tasks=10)


@pytest.fixture()
def file_service(settings: SimpleNamespace) -> TaskService:
    """
    Service backed by a real JSON file in tmp_path.

    NOTE: the file round-trip is part of what we want to test here.
    """
    return TaskService(JsonTaskStorage(settings.tasks_file), max_tasks=settings.max_tasks)


@pytest.fixture()
def state(settings: SimpleNamespace, service: TaskService) -> AppState:
    return AppState(settings=settings, service=service)
