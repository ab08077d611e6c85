"""JSONL log output: one JSON object per line, UTC ISO 8601 timestamps.

Both interlock log files use this format:
    system/system.jsonl      operational warnings and errors
    audit/decisions.jsonl    one entry per intercepted call

Entries look like:
    {"time": "2026-10-18T10:48:37.123Z", "level": "WARNING", "event": "rate_limit_exceeded", ...}

"level" is only present above INFO, so decision entries stay compact.
"""

from __future__ import annotations

__all__ = [
    "ISO8601Formatter",
    "open_jsonl_handler",
    "setup_jsonl_logger",
]

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from interlock.utils.file_helpers import set_secure_permissions


class ISO8601Formatter(logging.Formatter):
    """Render a record as a single JSON line.

    Dict messages are merged into the entry. Anything else becomes
    {"message": ...}. Values json cannot encode are written with str().
    """

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {"time": self.formatTime(record)}
        if record.levelno > logging.INFO:
            entry["level"] = record.levelname

        if isinstance(record.msg, dict):
            entry.update(record.msg)
        else:
            entry["message"] = record.getMessage()

        if record.exc_info:
            entry["traceback"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def open_jsonl_handler(log_path: Path, level: int) -> logging.FileHandler:
    """Open an append-mode JSONL file handler, creating an owner-only directory.

    Raises:
        OSError: If the directory or file cannot be created.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)
    set_secure_permissions(log_path.parent, is_directory=True)

    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(ISO8601Formatter())
    set_secure_permissions(log_path)
    return handler


def setup_jsonl_logger(logger_name: str, log_path: Path, log_level: int = logging.INFO) -> logging.Logger:
    """Return a non-propagating logger whose only handler writes ``log_path``.

    A second call for the same name closes and replaces the earlier handler.

    Raises:
        OSError: If the log file cannot be opened.
    """
    handler = open_jsonl_handler(log_path, log_level)

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)
    logger.propagate = False
    while logger.handlers:
        old = logger.handlers.pop()
        old.close()
    logger.addHandler(handler)
    return logger
