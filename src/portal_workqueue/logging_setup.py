# src/portal_workqueue/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "portal.log"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable:
    - workflow / drainer / connector logs pass through
    - per-task engine chatter (cache hits, task start/done, SQL helpers) only at WARNING+
    - third-party loggers and captured warnings only at ERROR+
    """

    _ENGINE_PREFIXES = (
        "portal_workqueue.tasks.task_base",
        "portal_workqueue.tasks.inflight",
        "portal_workqueue.storage.",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("portal_workqueue."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._ENGINE_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    level = logging.getLevelName(str(name or "").upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/portal",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered, for the REPL) + rotating file handler (everything).

    Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # warnings.warn(...) -> 'py.warnings' logger
    logging.captureWarnings(True)
    return log_file
