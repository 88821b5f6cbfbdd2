# src/task_manager/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "task_manager.log"
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

APP_LOGGER = "task_manager"
# Libraries that log at DEBUG/INFO on every event loop tick or file write.
QUIET_LOGGERS = ("asyncio",)

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    The console shares stderr with the prompt, so only our own records get
    through at the handler level; everything else (py.warnings included)
    must be ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == APP_LOGGER or record.name.startswith(APP_LOGGER + "."):
            return True
        return record.levelno >= logging.ERROR


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    h = logging.StreamHandler(sys.stderr)
    h.setLevel(level)
    h.setFormatter(formatter)
    h.addFilter(_ConsoleNoiseFilter())
    return h


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    # The task log lives next to tasks.json and is kept small.
    h = RotatingFileHandler(
        str(path),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    h.setLevel(level)
    h.setFormatter(formatter)
    return h


def setup_logging(
    *,
    log_dir: str | Path = ".local/task_manager",
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> Path:
    """
    Configure the root logger: a filtered stderr handler for the interactive
    console plus a rotating file in `log_dir`. Returns the log file path.

    Safe to call again (e.g. from tests): previous root handlers are closed.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    root.addHandler(_console_handler(console_level, formatter))
    root.addHandler(_file_handler(log_file, file_level, formatter))

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    # warnings.warn(...) -> 'py.warnings' logger
    logging.captureWarnings(True)
    return log_file
