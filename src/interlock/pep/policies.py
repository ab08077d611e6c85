"""Executable policy steps.

Each step turns one policy model into something the engine can run
against the arguments of a call. Steps return a StepResult: ALLOW, DENY
(with a user-facing message) or SUSPEND (with a pending confirmation).

Arguments are looked up by parameter name or position. The engine binds
call arguments to the original's signature, so ``score`` is found whether
the host passed it positionally or by keyword. A missing argument is a
denial: a step never lets a call through because it could not see the
value it guards.
"""

from __future__ import annotations

__all__ = [
    "CallArguments",
    "PolicyStepRunner",
    "RateLimitStep",
    "TrustGateStep",
    "ValidateStep",
    "build_steps",
]

import inspect
from dataclasses import dataclass, field
from typing import Any, Protocol

from interlock.pdp.decision import PendingConfirmation, StepResult
from interlock.pdp.policy import OperationPolicy, RateLimitPolicy, TrustGatePolicy, ValidatePolicy
from interlock.pdp.trust import TrustDecision, TrustGate
from interlock.pdp.validator import validate
from interlock.pep.approval_store import ApprovalStore
from interlock.security.rate_limiter import SlidingRateLimiter
from interlock.utils.logging.logging_helpers import summarize_value

_MISSING = object()


@dataclass(frozen=True)
class CallArguments:
    """Arguments of one wrapped call, addressable by name or position.

    Attributes:
        args: Positional arguments as passed by the host.
        kwargs: Keyword arguments as passed by the host.
        signature: Signature of the original (receiver excluded), if known.
    """

    args: tuple[Any, ...]
    kwargs: dict[str, Any]
    signature: inspect.Signature | None = None
    _bound: dict[str, Any] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.signature is None:
            return
        try:
            bound = self.signature.bind(*self.args, **self.kwargs)
        except TypeError:
            # The original will raise on these arguments; lookups fall back to raw args
            return
        bound.apply_defaults()
        object.__setattr__(self, "_bound", dict(bound.arguments))

    @property
    def parameter_names(self) -> list[str]:
        if self.signature is None:
            return []
        return [
            p.name
            for p in self.signature.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]

    def lookup(self, ref: str | int) -> Any:
        """Return the argument for a name or index, or the _MISSING sentinel."""
        if isinstance(ref, int):
            if ref < len(self.args):
                return self.args[ref]
            names = self.parameter_names
            if ref < len(names):
                return self.lookup(names[ref])
            return _MISSING

        if self._bound is not None and ref in self._bound:
            return self._bound[ref]
        if ref in self.kwargs:
            return self.kwargs[ref]
        names = self.parameter_names
        if ref in names:
            index = names.index(ref)
            if index < len(self.args):
                return self.args[index]
        return _MISSING


def _render(template: str, **fields: Any) -> str:
    """Fill a message template, leaving it as-is if it does not format."""
    try:
        return template.format(**fields)
    except (KeyError, IndexError, ValueError, AttributeError):
        return template


def _display(value: Any) -> str:
    return str(summarize_value(value))


class PolicyStepRunner(Protocol):
    """One executable step of a policy chain."""

    kind: str

    def evaluate(self, call: CallArguments, operation: str) -> StepResult: ...


class RateLimitStep:
    """Count the call on its channel and deny beyond the threshold."""

    kind = "rate_limit"

    def __init__(self, policy: RateLimitPolicy, limiter: SlidingRateLimiter, channel: str) -> None:
        self.policy = policy
        self.limiter = limiter
        self.channel = channel
        limiter.configure(channel, threshold=policy.threshold, window_seconds=policy.window_seconds)

    def evaluate(self, call: CallArguments, operation: str) -> StepResult:
        if self.limiter.allow(self.channel):
            return StepResult.allow(self.kind)

        count = self.limiter.get_count(self.channel)
        threshold = self.limiter.threshold_for(self.channel)
        return StepResult.deny(
            self.kind,
            reason=(
                f"Rate limit exceeded on '{self.channel}': {count} calls within "
                f"{self.policy.window_seconds}s (threshold {threshold})"
            ),
            message=_render(self.policy.message, operation=operation),
            details={
                "channel": self.channel,
                "count": count,
                "threshold": threshold,
                "window_seconds": self.policy.window_seconds,
            },
        )


class ValidateStep:
    """Deny when the selected argument fails its constraints."""

    kind = "validate"

    def __init__(self, policy: ValidatePolicy) -> None:
        self.policy = policy

    def evaluate(self, call: CallArguments, operation: str) -> StepResult:
        argument = self.policy.argument
        value = call.lookup(argument)
        if value is _MISSING:
            return StepResult.deny(
                self.kind,
                reason=f"Argument {argument!r} not supplied",
                message=_render(self.policy.message, value="(missing)", argument=argument, operation=operation),
                details={"argument": argument},
            )

        if validate(value, list(self.policy.constraints)):
            return StepResult.allow(self.kind)

        return StepResult.deny(
            self.kind,
            reason=f"Argument {argument!r} failed validation",
            message=_render(self.policy.message, value=_display(value), argument=argument, operation=operation),
            details={
                "argument": argument,
                "value": summarize_value(value),
                "constraints": [c.model_dump(exclude_none=True) for c in self.policy.constraints],
            },
        )


class TrustGateStep:
    """Allow trusted resources, suspend for confirmation on the rest.

    Attributes:
        gate: Allow-list classifier.
        approval_store: Remembered approvals, only when the policy opts in.
    """

    kind = "trust_gate"

    def __init__(self, policy: TrustGatePolicy) -> None:
        self.policy = policy
        self.gate = TrustGate(policy.trusted_origins, match=policy.match)
        self.approval_store: ApprovalStore | None = (
            ApprovalStore(policy.approval_ttl_seconds) if policy.remember_approvals else None
        )

    def evaluate(self, call: CallArguments, operation: str) -> StepResult:
        argument = self.policy.argument
        resource = call.lookup(argument)
        if resource is _MISSING:
            return StepResult.deny(
                self.kind,
                reason=f"Resource argument {argument!r} not supplied",
                details={"argument": argument},
            )

        if self.gate.evaluate(resource) is TrustDecision.TRUSTED:
            return StepResult.allow(self.kind)

        resource_text = resource if isinstance(resource, str) else _display(resource)
        return StepResult.suspend(
            self.kind,
            PendingConfirmation(
                prompt=_render(self.policy.prompt, resource=resource_text, operation=operation),
                resource=resource_text,
                remember=self.policy.remember_approvals,
                timeout_seconds=self.policy.confirm_timeout_seconds,
            ),
        )


def build_steps(policy: OperationPolicy, limiter: SlidingRateLimiter) -> list[PolicyStepRunner]:
    """Build the executable chain for an operation policy, in declared order."""
    steps: list[PolicyStepRunner] = []
    for step in policy.policies:
        if isinstance(step, RateLimitPolicy):
            steps.append(RateLimitStep(step, limiter, step.channel or policy.binding_id))
        elif isinstance(step, ValidatePolicy):
            steps.append(ValidateStep(step))
        elif isinstance(step, TrustGatePolicy):
            steps.append(TrustGateStep(step))
        else:
            raise TypeError(f"Unsupported policy step: {type(step).__name__}")
    return steps
