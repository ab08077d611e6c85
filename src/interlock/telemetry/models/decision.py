"""Pydantic model for decision log entries (logs/audit/decisions.jsonl).

The 'time' field is None on creation; ISO8601Formatter adds the
timestamp when the event is written.
"""

from __future__ import annotations

__all__ = [
    "DecisionEvent",
]

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class DecisionEvent(BaseModel):
    """One wrapped invocation and how it ended.

    Attributes:
        time: Added by the formatter.
        event: Always "decision".
        decision: "forwarded" or "denied".
        operation: Binding id of the wrapped operation.
        owner: Dotted owner path, if the binding came from a policy file.
        call_id: Correlation ID shared with system log entries.
        policy: Kind of step that denied the call.
        reason: Diagnostic denial reason.
        user_cancelled: True when an explicit user "no" denied the call.
        hitl_outcome: Confirmation outcome when a step suspended.
        hitl_cache_hit: True when a remembered approval was used.
        arguments: Bounded summary of the call arguments.
        details: Extra structured fields from the deciding step.
        policy_eval_ms: Time spent in policy steps, excluding confirmation.
        policy_hitl_ms: Time spent waiting for confirmation.
        policy_total_ms: Sum of the two.
        policy_version: Version of the loaded policy.
    """

    time: str | None = None
    event: Literal["decision"] = "decision"
    decision: Literal["forwarded", "denied"]
    operation: str
    owner: str | None = None
    call_id: str

    policy: str | None = None
    reason: str | None = None
    user_cancelled: bool | None = None

    hitl_outcome: str | None = None
    hitl_cache_hit: bool | None = None

    arguments: dict[str, Any] | None = None
    details: dict[str, Any] | None = None

    policy_eval_ms: float
    policy_hitl_ms: float | None = None
    policy_total_ms: float
    policy_version: str | None = None

    model_config = ConfigDict(extra="forbid")
