"""System logger for operational events.

Installs, setup failures, denials, sink errors and similar events that are
not part of the per-call decision log go here.

Outputs:
- stderr: INFO and above, one readable line per event
- system.jsonl: WARNING and above, added by configure_system_logger_file()
  once the log directory is known

Callers log dicts with at least "event" and "message":
    get_system_logger().warning({"event": "rate_limit_exceeded", "message": "..."})
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
    "reset_system_logger",
]

import logging
import sys
from pathlib import Path

from interlock.constants import APP_NAME
from interlock.utils.logging.jsonl import open_jsonl_handler

SYSTEM_LOGGER_NAME = f"{APP_NAME}.system"


class ConsoleFormatter(logging.Formatter):
    """``[interlock] LEVEL: message`` for stderr.

    Dict messages show their "message" field, or the event name without one.
    """

    def format(self, record: logging.LogRecord) -> str:
        msg = record.msg
        if isinstance(msg, dict):
            text = msg.get("message") or msg.get("event", "")
        else:
            text = record.getMessage()
        return f"[{APP_NAME}] {record.levelname}: {text}"


class _SystemLogState:
    logger: logging.Logger | None = None
    file_handler: logging.FileHandler | None = None


_state = _SystemLogState()


def get_system_logger() -> logging.Logger:
    """Return the process-wide system logger, creating it with a stderr handler."""
    if _state.logger is not None:
        return _state.logger

    logger = logging.getLogger(SYSTEM_LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    while logger.handlers:
        logger.handlers.pop().close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.INFO)
    console.setFormatter(ConsoleFormatter())
    logger.addHandler(console)

    _state.logger = logger
    return logger


def configure_system_logger_file(log_path: Path) -> None:
    """Attach (or move) the system.jsonl handler.

    A log file that cannot be opened is reported on stderr; console logging
    keeps working.
    """
    logger = get_system_logger()
    current = _state.file_handler

    if current is not None:
        if Path(current.baseFilename) == log_path.resolve():
            return
        logger.removeHandler(current)
        current.close()
        _state.file_handler = None

    try:
        handler = open_jsonl_handler(log_path, logging.WARNING)
    except OSError as e:
        logger.error(
            {
                "event": "system_log_file_unavailable",
                "message": f"Cannot open system log {log_path}: {e}",
                "error_type": type(e).__name__,
            }
        )
        return

    logger.addHandler(handler)
    _state.file_handler = handler


def reset_system_logger() -> None:
    """Close every handler and forget the logger (tests)."""
    if _state.logger is not None:
        while _state.logger.handlers:
            _state.logger.handlers.pop().close()
    _state.logger = None
    _state.file_handler = None
