"""Logging helper utilities.

Provides generic utilities for telemetry logging:
- Event serialization (audit event model_dump with consistent options)
- Sanitization (log injection prevention)
- Argument summaries (bounded reprs of host call arguments)
"""

from __future__ import annotations

__all__ = [
    "sanitize_for_logging",
    "serialize_audit_event",
    "summarize_arguments",
    "summarize_value",
]

from typing import Any

from pydantic import BaseModel

from interlock.constants import MAX_LOGGED_VALUE_LENGTH


# ============================================================================
# Event Serialization
# ============================================================================


def serialize_audit_event(event: BaseModel) -> dict[str, Any]:
    """Serialize a Pydantic event model for audit logging.

    - Excludes the 'time' field (added by ISO8601Formatter at log time)
    - Excludes None values for cleaner logs

    Args:
        event: Pydantic model instance (e.g., DecisionEvent).

    Returns:
        dict: Serialized event data ready for logging.

    Example:
        >>> event = DecisionEvent(decision="deny", operation="insert_leaderboard", ...)
        >>> serialize_audit_event(event)
        {"decision": "deny", "operation": "insert_leaderboard", ...}
    """
    return event.model_dump(mode="json", exclude={"time"}, exclude_none=True)


# ============================================================================
# Sanitization
# ============================================================================


def sanitize_for_logging(value: str) -> str:
    """Sanitize string values for safe JSONL logging.

    Prevents log injection by escaping newlines and control characters, so a
    crafted extension URL or variable name cannot forge extra log entries.

    Args:
        value: String value to sanitize.

    Returns:
        str: Sanitized string safe for JSONL logging.

    Example:
        >>> sanitize_for_logging("key\\nforged")
        'key\\\\nforged'
    """
    if not isinstance(value, str):
        return str(value)

    sanitized = value.replace("\n", "\\n").replace("\r", "\\r")
    sanitized = sanitized.replace("\t", "\\t")

    return sanitized


# ============================================================================
# Argument Summaries
# ============================================================================


def summarize_value(value: Any, max_length: int = MAX_LOGGED_VALUE_LENGTH) -> Any:
    """Reduce a host argument to something safe and small to log.

    JSON scalars pass through (strings sanitized and truncated); anything
    else is logged as a truncated repr.

    Args:
        value: Argument value from the host call.
        max_length: Maximum length of string output.

    Returns:
        A JSON-serializable summary of the value.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        text = value
    else:
        try:
            text = repr(value)
        except Exception:
            # Host objects may have a broken __repr__; logging must not fail the call
            text = f"<unrepresentable {type(value).__name__}>"
    text = sanitize_for_logging(text)
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text


def summarize_arguments(
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    names: list[str] | None = None,
) -> dict[str, Any]:
    """Summarize positional and keyword arguments of a wrapped call.

    Positional arguments are keyed by parameter name when ``names`` is
    known, otherwise by position ("arg0", "arg1", ...).

    Args:
        args: Positional arguments.
        kwargs: Keyword arguments.
        names: Parameter names of the original operation, in order.

    Returns:
        Mapping of argument name to summarized value.
    """
    summary: dict[str, Any] = {}
    for index, value in enumerate(args):
        key = names[index] if names and index < len(names) else f"arg{index}"
        summary[key] = summarize_value(value)
    for key, value in kwargs.items():
        summary[key] = summarize_value(value)
    return summary
