"""Policy models for operation interception.

This module defines the policy schema read at initialization. It maps each
intercepted operation to an ordered chain of policy steps.

Policy structure:
    PolicyConfig
    ├── version: Schema version for migrations
    └── operations: List[OperationPolicy]
        └── OperationPolicy
            ├── id: Binding identifier (log name, default rate channel)
            ├── owner: Dotted path from the host root ("runtime.ccw_api")
            ├── operation: Attribute name on the owner
            ├── policies: List[PolicyStep] (evaluated in order)
            │   ├── RateLimitPolicy   kind="rate_limit"
            │   ├── ValidatePolicy    kind="validate"
            │   └── TrustGatePolicy   kind="trust_gate"
            ├── denial_result: Returned to the host when a call is denied
            ├── may_suspend: Declares that the wrapper is a coroutine function
            └── on_user_cancel: "raise" | "return"

Design principles:
1. Steps run in declared order; the first denial wins
2. Models are frozen: no reconfiguration after setup
3. A chain that can suspend for user confirmation must say so (may_suspend)
"""

from __future__ import annotations

__all__ = [
    "OperationPolicy",
    "PolicyConfig",
    "PolicyStep",
    "RateLimitPolicy",
    "TrustGatePolicy",
    "ValidatePolicy",
    "create_default_policy",
]

from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from interlock.constants import (
    DEFAULT_APPROVAL_TTL_SECONDS,
    DEFAULT_RATE_THRESHOLD,
    DEFAULT_RATE_WINDOW_SECONDS,
    DEFAULT_TRUSTED_ORIGINS,
    MAX_LEADERBOARD_SCORE,
    MIN_LEADERBOARD_SCORE,
)
from interlock.pdp.validator import ConstraintSpec

# Argument selector: parameter name, or positional index
ArgumentRef = str | Annotated[int, Field(ge=0)]


class RateLimitPolicy(BaseModel):
    """Deny calls beyond ``threshold`` per ``window_seconds`` on a channel.

    Attributes:
        channel: Rate bucket. Defaults to the operation's id.
        threshold: Max calls allowed per window.
        window_seconds: Window duration.
        message: Notification shown when a call is denied.
    """

    kind: Literal["rate_limit"] = "rate_limit"
    channel: str | None = None
    threshold: int = Field(default=DEFAULT_RATE_THRESHOLD, ge=1)
    window_seconds: float = Field(default=DEFAULT_RATE_WINDOW_SECONDS, gt=0)
    message: str = "High-frequency data modification detected and blocked!"

    model_config = ConfigDict(frozen=True)


class ValidatePolicy(BaseModel):
    """Deny calls whose selected argument fails the constraints.

    Attributes:
        argument: Parameter name or positional index of the checked value.
        constraints: Constraints that must all hold.
        message: Notification template. Placeholders: {value}, {argument},
            {operation}.
    """

    kind: Literal["validate"] = "validate"
    argument: ArgumentRef
    constraints: list[ConstraintSpec] = Field(min_length=1)
    message: str = "Detected an invalid {argument} value: {value}. Call to {operation} blocked."

    model_config = ConfigDict(frozen=True)


class TrustGatePolicy(BaseModel):
    """Ask the user before forwarding calls with an untrusted resource.

    Attributes:
        argument: Parameter name or positional index of the resource reference.
        trusted_origins: Allow-list entries.
        match: "substring" (entry anywhere in the reference) or "prefix".
        prompt: Confirmation text. Placeholders: {resource}, {operation}.
        remember_approvals: Cache positive answers per (operation, resource).
        approval_ttl_seconds: Lifetime of a cached approval.
        confirm_timeout_seconds: Deny when the user has not answered in time.
            None waits indefinitely.
    """

    kind: Literal["trust_gate"] = "trust_gate"
    argument: ArgumentRef = 0
    trusted_origins: list[str] = Field(min_length=1)
    match: Literal["substring", "prefix"] = "substring"
    prompt: str = (
        "Warning: you are trying to load an extension from an unofficial source:\n"
        "{resource}\n"
        "It may contain malicious code. Do you want to continue?"
    )
    remember_approvals: bool = False
    approval_ttl_seconds: int = Field(default=DEFAULT_APPROVAL_TTL_SECONDS, ge=1)
    confirm_timeout_seconds: float | None = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("trusted_origins", mode="after")
    @classmethod
    def reject_empty_origins(cls, v: list[str]) -> list[str]:
        """Reject empty origins. In substring mode they would trust everything."""
        for origin in v:
            if not origin.strip():
                raise ValueError("Trusted origins cannot be empty or whitespace-only")
        return v


PolicyStep = Annotated[
    RateLimitPolicy | ValidatePolicy | TrustGatePolicy,
    Field(discriminator="kind"),
]


class OperationPolicy(BaseModel):
    """Policy chain for one intercepted operation.

    Attributes:
        id: Binding identifier. Defaults to ``operation``.
        owner: Dotted attribute path from the host root to the object that
            carries the operation. Empty string means the host root itself.
        operation: Attribute name of the callable on the owner.
        description: Optional human-readable note.
        policies: Ordered policy steps.
        denial_result: Value returned to the host when a call is denied.
        may_suspend: Must be true when the chain contains a trust gate. The
            wrapper of such an operation is a coroutine function even if the
            original is synchronous.
        on_user_cancel: "raise" raises UserCancelledError when the user
            declines; "return" returns denial_result instead.
    """

    id: str | None = None
    owner: str = ""
    operation: str = Field(min_length=1)
    description: str | None = None
    policies: list[PolicyStep] = Field(default_factory=list)
    denial_result: Any = None
    may_suspend: bool = False
    on_user_cancel: Literal["raise", "return"] = "raise"

    model_config = ConfigDict(frozen=True)

    @field_validator("operation", mode="after")
    @classmethod
    def operation_is_identifier(cls, v: str) -> str:
        """Operation must be a plain attribute name."""
        if not v.isidentifier():
            raise ValueError(f"operation must be an attribute name, got {v!r}")
        return v

    @field_validator("owner", mode="after")
    @classmethod
    def owner_is_dotted_path(cls, v: str) -> str:
        """Owner must be empty or a dotted path of attribute names."""
        if v and not all(part.isidentifier() for part in v.split(".")):
            raise ValueError(f"owner must be a dotted attribute path, got {v!r}")
        return v

    @model_validator(mode="after")
    def fill_id_and_check_suspension(self) -> Self:
        """Default the id and require may_suspend for trust-gated chains."""
        if self.id is None:
            # Model is frozen, use object.__setattr__
            object.__setattr__(self, "id", self.operation)

        if self.has_trust_gate and not self.may_suspend:
            raise ValueError(
                f"Operation '{self.id}' has a trust_gate step and may suspend for "
                "user confirmation. Set may_suspend: true to acknowledge that "
                "its wrapper becomes asynchronous."
            )
        return self

    @property
    def binding_id(self) -> str:
        """Identifier used for channels, logs and stats."""
        return self.id or self.operation

    def rate_channels(self) -> list[tuple[str, RateLimitPolicy]]:
        """(channel, step) for each rate_limit step, in declared order."""
        return [
            (step.channel or self.binding_id, step)
            for step in self.policies
            if isinstance(step, RateLimitPolicy)
        ]

    @property
    def has_trust_gate(self) -> bool:
        """True if any step may suspend for confirmation."""
        return any(isinstance(step, TrustGatePolicy) for step in self.policies)


class PolicyConfig(BaseModel):
    """Complete policy configuration.

    Attributes:
        version: Schema version for migrations.
        operations: Intercepted operations. Ids must be unique.
    """

    version: str = "1"
    operations: list[OperationPolicy] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def ensure_unique_ids(self) -> Self:
        """Reject duplicate binding ids and duplicate (owner, operation) pairs."""
        ids = [op.binding_id for op in self.operations]
        if len(ids) != len(set(ids)):
            duplicates = {i for i in ids if ids.count(i) > 1}
            raise ValueError(f"Duplicate operation IDs: {duplicates}")

        targets = [(op.owner, op.operation) for op in self.operations]
        if len(targets) != len(set(targets)):
            duplicates = {f"{o}.{n}" if o else n for o, n in targets if targets.count((o, n)) > 1}
            raise ValueError(f"Operations bound more than once: {duplicates}")
        return self

    @model_validator(mode="after")
    def ensure_consistent_rate_channels(self) -> Self:
        """A shared rate channel must have one threshold and window."""
        limits: dict[str, tuple[int, float, str]] = {}
        for op in self.operations:
            for channel, step in op.rate_channels():
                seen = limits.setdefault(channel, (step.threshold, step.window_seconds, op.binding_id))
                if seen[:2] != (step.threshold, step.window_seconds):
                    raise ValueError(
                        f"Rate channel '{channel}' has conflicting limits: "
                        f"{seen[0]}/{seen[1]}s in '{seen[2]}', "
                        f"{step.threshold}/{step.window_seconds}s in '{op.binding_id}'"
                    )
        return self

    def get(self, operation_id: str) -> OperationPolicy | None:
        """Look up an operation policy by id."""
        for op in self.operations:
            if op.binding_id == operation_id:
                return op
        return None


def create_default_policy() -> PolicyConfig:
    """Create the anti-cheat default policy.

    Returns:
        PolicyConfig with three bindings:
        - set_value_to_project: at most 10 calls per second
        - insert_leaderboard: score must be a number in 0..1,000,000
        - load_extension_url: official origins trusted, others confirmed
    """
    return PolicyConfig(
        version="1",
        operations=[
            OperationPolicy(
                id="set_value_to_project",
                owner="runtime.ccw_api",
                operation="set_value_to_project",
                description="Block high-frequency project data writes",
                policies=[
                    RateLimitPolicy(
                        threshold=DEFAULT_RATE_THRESHOLD,
                        window_seconds=DEFAULT_RATE_WINDOW_SECONDS,
                    ),
                ],
            ),
            OperationPolicy(
                id="insert_leaderboard",
                owner="runtime.ccw_api",
                operation="insert_leaderboard",
                description="Reject out-of-range leaderboard scores",
                policies=[
                    ValidatePolicy(
                        argument="score",
                        constraints=[
                            {
                                "kind": "range",
                                "min": MIN_LEADERBOARD_SCORE,
                                "max": MAX_LEADERBOARD_SCORE,
                            }
                        ],
                        message="Detected an invalid score value: {value}. Leaderboard submission blocked.",
                    ),
                ],
            ),
            OperationPolicy(
                id="load_extension_url",
                owner="extension_manager",
                operation="load_extension_url",
                description="Confirm extensions from unofficial sources",
                policies=[
                    TrustGatePolicy(
                        argument="url",
                        trusted_origins=list(DEFAULT_TRUSTED_ORIGINS),
                    ),
                ],
                may_suspend=True,
            ),
        ],
    )
