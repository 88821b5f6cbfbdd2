# src/task_manager/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import CommandRegistry
from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.errors import TaskError

logger = logging.getLogger(__name__)

EXIT_WORDS = ("/exit", "/quit", "/q")


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def _read_line(prompt: str, reader: Callable[[str], str]) -> str:
    # input() blocks; keep the event loop free while waiting for the user.
    return await asyncio.to_thread(reader, prompt)


async def handle_line(
    state: AppState,
    line: str,
    *,
    registry: CommandRegistry = command_registry,
) -> str | None:
    """
    Run one console line through the command registry.

    Errors from a single command never end the loop: domain errors are shown
    as-is, anything else is logged and reported as an internal error.
    """
    try:
        reply = await registry.handle(state, line, emit=_print_ts)
    except TaskError as e:
        logger.info("Command rejected: %s", e)
        return f"Error: {e}"
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."

    if reply is None:
        return "Commands start with '/'. Use /help to list available commands."
    return reply


async def run_console_loop(
    state: AppState,
    *,
    reader: Callable[[str], str] = input,
) -> None:
    app_name = str(getattr(state.settings, "app_name", "task-manager"))
    logger.info("Console started.")
    _print_ts(f"[{app_name}] Type /help for commands, /exit to quit.\n")

    while state.running:
        try:
            line = (await _read_line("> ", reader)).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in EXIT_WORDS:
            logger.info("Console exit command received.")
            break

        reply = await handle_line(state, line)
        if reply:
            print(reply)
            print()

    state.running = False
    logger.info("Console finished.")
