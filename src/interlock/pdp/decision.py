"""Decision types for policy evaluation outcomes.

These values define what a single policy step reports to the engine, and
how a whole invocation ends.
"""

from __future__ import annotations

__all__ = [
    "Decision",
    "InvocationOutcome",
    "InvocationState",
    "PendingConfirmation",
    "StepResult",
]

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Decision(str, Enum):
    """Outcome of one policy step.

    Inherits from str for easy serialization and comparison.

    Attributes:
        ALLOW: Step passed, continue with the next step.
        DENY: Step failed, suppress the call.
        SUSPEND: Await an external confirmation before continuing.
    """

    ALLOW = "allow"
    DENY = "deny"
    SUSPEND = "suspend"


class InvocationState(str, Enum):
    """Terminal state of one wrapped invocation."""

    FORWARDED = "forwarded"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class PendingConfirmation:
    """A confirmation request raised by a suspending step.

    Attributes:
        prompt: Message shown to the user.
        resource: The resource reference that needs approval.
        remember: Whether a positive answer may be cached for the session.
        timeout_seconds: Optional wait limit; expiry counts as a denial.
    """

    prompt: str
    resource: str
    remember: bool = False
    timeout_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class StepResult:
    """Result of evaluating one policy step.

    Attributes:
        decision: ALLOW, DENY or SUSPEND.
        policy: Kind of the step that produced the result ("rate_limit", ...).
        reason: Diagnostic reason for DENY (log entry).
        message: User-facing notification text for DENY.
        pending: Confirmation request for SUSPEND.
        details: Extra structured fields for the log entry.
    """

    decision: Decision
    policy: str
    reason: str | None = None
    message: str | None = None
    pending: PendingConfirmation | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def allow(cls, policy: str) -> "StepResult":
        return cls(Decision.ALLOW, policy)

    @classmethod
    def deny(
        cls,
        policy: str,
        reason: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> "StepResult":
        return cls(Decision.DENY, policy, reason=reason, message=message or reason, details=details)

    @classmethod
    def suspend(cls, policy: str, pending: PendingConfirmation) -> "StepResult":
        return cls(Decision.SUSPEND, policy, pending=pending)


@dataclass(frozen=True, slots=True)
class InvocationOutcome:
    """How one wrapped invocation ended.

    A DENIED outcome is the "policy denial" of the error taxonomy: normal
    control flow, never an exception.

    Attributes:
        state: FORWARDED or DENIED.
        operation: Wrapped operation name.
        call_id: Correlation ID.
        policy: Step that denied the call (None when forwarded).
        reason: Diagnostic denial reason.
        user_cancelled: True when the denial came from an explicit user "no".
        confirmation: Confirmation outcome value if a step suspended.
    """

    state: InvocationState
    operation: str
    call_id: str
    policy: str | None = None
    reason: str | None = None
    user_cancelled: bool = False
    confirmation: str | None = None

    @property
    def forwarded(self) -> bool:
        return self.state is InvocationState.FORWARDED
