# src/task_manager/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Components receive settings explicitly; get_settings() is only used by the entrypoint.
- Bad values fall back to defaults instead of crashing at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

ENV_PREFIX = "TASKMGR"

STORAGE_FORMATS = ("json", "xml")
DEFAULT_MAX_TASKS = 1000


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Storage ----
    data_dir: Path
    storage_format: str
    tasks_file: Path

    # ---- Service ----
    max_tasks: int
    auto_save: bool

    # ---- Console ----
    seed_samples: bool

    @staticmethod
    def from_env(*, use_dotenv: bool = True) -> "Settings":
        if use_dotenv:
            load_dotenv(find_dotenv(usecwd=True), override=False)

        app_name = _env(_k("APP_NAME"), "task-manager").strip() or "task-manager"
        log_level = _env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO"

        storage_format = _env(_k("STORAGE_FORMAT"), "json").strip().lower()
        if storage_format not in STORAGE_FORMATS:
            storage_format = "json"

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/task_manager"))
        tasks_file = _env_path(_k("TASKS_FILE"), data_dir / f"tasks.{storage_format}")

        max_tasks = _env_int(_k("MAX_TASKS"), DEFAULT_MAX_TASKS)
        if max_tasks < 1:
            max_tasks = DEFAULT_MAX_TASKS

        auto_save = _env_bool(_k("AUTO_SAVE"), True)
        seed_samples = _env_bool(_k("SEED_SAMPLES"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            storage_format=storage_format,
            tasks_file=tasks_file,
            max_tasks=max_tasks,
            auto_save=auto_save,
            seed_samples=seed_samples,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
