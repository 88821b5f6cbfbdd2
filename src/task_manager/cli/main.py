# src/task_manager/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads tasks, then runs the console REPL
until /exit (or EOF). The task service is always closed on the way out, which
flushes the collection to disk.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, end_session, start_session
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def run_app(state: AppState) -> None:
    try:
        print(await start_session(state))
        await run_console_loop(state)
    finally:
        await end_session(state)
        print("Bye.")


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    try:
        asyncio.run(run_app(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
