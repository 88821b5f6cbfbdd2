# src/task_manager/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .ports import TaskRepo


@dataclass
class AppState:
    """
    Everything the console shell needs, passed explicitly.

    Built once by cli.bootstrap.create_initial_state(); there is no module-level
    service instance anywhere in the package.
    """

    # Store Settings on the state for easy access in command handlers.
    settings: Any
    service: TaskRepo

    running: bool = True
