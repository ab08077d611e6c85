"""Decision audit logging (audit/decisions.jsonl)."""

from interlock.telemetry.audit.decision_logger import DecisionEventLogger, create_decision_logger

__all__ = [
    "DecisionEventLogger",
    "create_decision_logger",
]
