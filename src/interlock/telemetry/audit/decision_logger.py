"""Decision logging for intercepted invocations.

One DecisionEvent per wrapped call, written to
<log_dir>/audit/decisions.jsonl. A failing write falls back to the system
logger and never reaches the host: the host was not written to expect
interception, so audit trouble must not change its control flow.
"""

from __future__ import annotations

__all__ = [
    "DecisionEventLogger",
    "create_decision_logger",
]

import logging
from pathlib import Path
from typing import Any

from interlock.constants import APP_NAME
from interlock.telemetry.models.decision import DecisionEvent
from interlock.utils.logging.jsonl import setup_jsonl_logger
from interlock.utils.logging.logging_helpers import serialize_audit_event


def create_decision_logger(log_path: Path) -> logging.Logger:
    """Create the JSONL logger for decision events.

    Args:
        log_path: Path to decisions.jsonl.

    Returns:
        Configured logger instance.
    """
    return setup_jsonl_logger(f"{APP_NAME}.audit.decisions", log_path, log_level=logging.INFO)


class DecisionEventLogger:
    """Writes decision events, falling back to the system logger.

    Without a primary logger (no log directory configured) events are only
    emitted at DEBUG on the system logger.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger | None,
        system_logger: logging.Logger,
        policy_version: str | None = None,
    ) -> None:
        """Initialize decision event logger.

        Args:
            logger: Primary logger for decisions.jsonl, or None.
            system_logger: System logger for fallback logging.
            policy_version: Policy version for the audit trail.
        """
        self._logger = logger
        self._system_logger = system_logger
        self._policy_version = policy_version

    @property
    def policy_version(self) -> str | None:
        """Policy version recorded with each event."""
        return self._policy_version

    @policy_version.setter
    def policy_version(self, value: str | None) -> None:
        self._policy_version = value

    def log(
        self,
        *,
        decision: str,
        operation: str,
        call_id: str,
        policy_eval_ms: float,
        owner: str | None = None,
        policy: str | None = None,
        reason: str | None = None,
        user_cancelled: bool | None = None,
        hitl_outcome: str | None = None,
        hitl_cache_hit: bool | None = None,
        policy_hitl_ms: float | None = None,
        arguments: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log one decision. Never raises."""
        try:
            event = DecisionEvent(
                decision=decision,
                operation=operation,
                owner=owner or None,
                call_id=call_id,
                policy=policy,
                reason=reason,
                user_cancelled=user_cancelled,
                hitl_outcome=hitl_outcome,
                hitl_cache_hit=hitl_cache_hit,
                arguments=arguments,
                details=details,
                policy_eval_ms=round(policy_eval_ms, 2),
                policy_hitl_ms=round(policy_hitl_ms, 2) if policy_hitl_ms is not None else None,
                policy_total_ms=round(policy_eval_ms + (policy_hitl_ms or 0.0), 2),
                policy_version=self._policy_version,
            )
            event_data = serialize_audit_event(event)
        except Exception as e:
            self._system_logger.error(
                {
                    "event": "decision_event_invalid",
                    "message": f"Could not build decision event: {e}",
                    "operation": operation,
                    "call_id": call_id,
                    "error_type": type(e).__name__,
                }
            )
            return

        if self._logger is None:
            self._system_logger.debug(event_data)
            return

        try:
            self._logger.info(event_data)
        except Exception as e:
            self._system_logger.error(
                {
                    "event": "decision_log_failed",
                    "message": f"Failed to write decision log: {e}",
                    "error_type": type(e).__name__,
                    "decision_event": event_data,
                }
            )
