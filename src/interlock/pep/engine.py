"""Interception engine: wraps host operations and enforces their policy.

The engine owns an explicit registry of bindings keyed by (owner, operation
name). ``install`` replaces the attribute on the owner with a wrapper;
``uninstall`` puts the original back. Every call to a wrapper goes through
the operation's policy chain:

    Pending -> Evaluating(step i) -> Denied
                                  -> next step ... -> Forwarded

- ALLOW from every step: the original is called exactly once with the
  unmodified arguments and receiver, and its result is returned unchanged.
  Exceptions raised by the original propagate unchanged.
- DENY: the original is not called. The sink is notified, the decision is
  logged and the binding's ``denial_result`` is returned. Nothing is raised
  to the host.
- SUSPEND: the wrapper awaits a user confirmation, then continues.

Synchrony:
    Coroutine-function originals get a coroutine-function wrapper. A
    synchronous original keeps a synchronous wrapper unless its chain holds a
    trust gate: then the wrapper is a coroutine function, and the policy has
    to declare ``may_suspend: true``. Callers of such an operation must await
    it. If the synchronous original itself returns an awaitable, the wrapper
    awaits it so callers get the final value with a single await.

User cancellation:
    A "no" on a trust confirmation is not an automated denial. With
    ``on_user_cancel="raise"`` the awaited wrapper raises UserCancelledError;
    with "return" it returns ``denial_result``. Both are logged with
    ``hitl_outcome=user_denied`` and ``user_cancelled=true``.
"""

from __future__ import annotations

__all__ = [
    "DecisionStats",
    "InterceptionEngine",
    "OperationBinding",
    "WRAPPER_MARKER",
    "get_wrapper_binding",
]

import functools
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from interlock.exceptions import AlreadyInstalledError, SetupError, TargetNotFoundError, UserCancelledError
from interlock.pdp.decision import Decision, InvocationOutcome, InvocationState, StepResult
from interlock.pdp.policy import OperationPolicy
from interlock.pep.confirmation import ConfirmationHandler, ConfirmationOutcome, ConfirmationResult
from interlock.pep.notifier import LoggingNotificationSink, NotificationSink
from interlock.pep.policies import CallArguments, PolicyStepRunner, TrustGateStep, build_steps
from interlock.security.rate_limiter import SlidingRateLimiter
from interlock.telemetry.audit.decision_logger import DecisionEventLogger
from interlock.telemetry.system.system_logger import get_system_logger
from interlock.utils.logging.logging_context import invocation_context
from interlock.utils.logging.logging_helpers import sanitize_for_logging, summarize_arguments

WRAPPER_MARKER = "__interlock_binding__"
"""Attribute set on every wrapper, pointing back at its binding."""

# System log event name per denying step kind
_DENIAL_EVENTS: dict[str, str] = {
    "rate_limit": "rate_limit_exceeded",
    "validate": "validation_failed",
    "trust_gate": "extension_untrusted",
}

_system_logger = get_system_logger()


def get_wrapper_binding(obj: Any) -> "OperationBinding | None":
    """Return the binding of an interlock wrapper, or None for anything else."""
    try:
        binding = getattr(obj, WRAPPER_MARKER, None)
    except Exception:
        return None
    return binding if isinstance(binding, OperationBinding) else None


@dataclass
class DecisionStats:
    """Per-binding counters.

    Attributes:
        forwarded: Calls passed to the original.
        denied: Calls suppressed (all causes, user cancellations included).
        user_cancelled: Calls suppressed by an explicit user "no".
        confirmations: Prompts shown to the user.
        cached_approvals: Confirmations answered from remembered approvals.
        step_errors: Policy steps that raised and failed closed.
    """

    forwarded: int = 0
    denied: int = 0
    user_cancelled: int = 0
    confirmations: int = 0
    cached_approvals: int = 0
    step_errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(eq=False)
class OperationBinding:
    """One installed interception.

    Identity fields are fixed at install time. ``stats`` and
    ``last_outcome`` are updated by the engine on every call.

    Attributes:
        owner: The object carrying the operation.
        operation: Attribute name on the owner.
        policy: Policy descriptor for the operation.
        original: The callable found on the owner at install time.
        wrapper: The installed replacement.
        steps: Executable policy chain, in declared order.
        is_async: True if the wrapper is a coroutine function.
        owner_path: Dotted path or type name, for logs.
    """

    owner: Any
    operation: str
    policy: OperationPolicy
    original: Callable[..., Any]
    wrapper: Callable[..., Any]
    steps: list[PolicyStepRunner]
    is_async: bool
    owner_path: str
    signature: inspect.Signature | None = None
    stats: DecisionStats = field(default_factory=DecisionStats)
    last_outcome: InvocationOutcome | None = None
    # How to restore the owner on uninstall
    _had_own_attribute: bool = False
    _raw_attribute: Any = None

    @property
    def id(self) -> str:
        """Binding id from the policy (channel, log name)."""
        return self.policy.binding_id

    @property
    def may_suspend(self) -> bool:
        return any(isinstance(step, TrustGateStep) for step in self.steps)


class InterceptionEngine:
    """Registry of wrapped operations and the policy enforcement around them.

    Attributes:
        sink: Notification sink for denials and confirmations.
        rate_limiter: Shared limiter; window state per channel.
        on_duplicate: "raise" (AlreadyInstalledError) or "ignore" (return
            the existing binding) when a pair is installed twice.
    """

    def __init__(
        self,
        sink: NotificationSink | None = None,
        *,
        rate_limiter: SlidingRateLimiter | None = None,
        decision_logger: DecisionEventLogger | None = None,
        on_duplicate: Literal["raise", "ignore"] = "raise",
        system_logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            sink: Notification sink. Defaults to LoggingNotificationSink.
            rate_limiter: Rate limiter. A fresh one is created if omitted.
            decision_logger: Decision audit logger. Without one, decisions
                go to the system logger at DEBUG.
            on_duplicate: Duplicate install behaviour.
            system_logger: Override for the system logger (tests).
        """
        if on_duplicate not in ("raise", "ignore"):
            raise ValueError(f"on_duplicate must be 'raise' or 'ignore', got {on_duplicate!r}")
        self._system_logger = system_logger or _system_logger
        self.sink: NotificationSink = sink or LoggingNotificationSink()
        self.rate_limiter = rate_limiter or SlidingRateLimiter()
        self.on_duplicate = on_duplicate
        self._decision_logger = decision_logger or DecisionEventLogger(
            logger=None, system_logger=self._system_logger
        )
        self._confirmations = ConfirmationHandler(self.sink)
        self._bindings: dict[tuple[int, str], OperationBinding] = {}

    # =========================================================================
    # Registry
    # =========================================================================

    def install(
        self,
        owner: Any,
        operation_name: str,
        policy: OperationPolicy,
        *,
        owner_path: str | None = None,
        on_duplicate: Literal["raise", "ignore"] | None = None,
    ) -> OperationBinding:
        """Wrap ``owner.<operation_name>`` with the policy chain.

        Args:
            owner: Object carrying the operation (instance, module or class).
            operation_name: Attribute name of the callable.
            policy: Policy descriptor.
            owner_path: Description of the owner for logs.
            on_duplicate: Overrides the engine's duplicate behaviour.

        Returns:
            The new binding, or the existing one when a duplicate is ignored.

        Raises:
            TargetNotFoundError: Attribute missing or not callable.
            AlreadyInstalledError: Pair already bound, or the attribute is
                already an interlock wrapper (and duplicates are not ignored).
            SetupError: The attribute cannot be replaced on the owner.
        """
        duplicate_mode = on_duplicate or self.on_duplicate
        owner_desc = owner_path if owner_path is not None else type(owner).__name__
        key = (id(owner), operation_name)

        existing = self._bindings.get(key)
        if existing is not None:
            return self._duplicate(existing, duplicate_mode, owner_desc)

        try:
            original = getattr(owner, operation_name)
        except AttributeError as e:
            raise TargetNotFoundError(
                f"Operation '{operation_name}' not found on {owner_desc}",
                operation=operation_name,
                owner=owner_desc,
            ) from e

        if not callable(original):
            raise TargetNotFoundError(
                f"Attribute '{operation_name}' on {owner_desc} is not callable",
                operation=operation_name,
                owner=owner_desc,
            )

        wrapped_binding = get_wrapper_binding(original)
        if wrapped_binding is not None:
            # Wrapped by another engine, or by this one under another owner alias
            return self._duplicate(wrapped_binding, duplicate_mode, owner_desc)

        self._check_rate_channels(policy, operation_name, owner_desc)
        steps = build_steps(policy, self.rate_limiter)
        has_trust_gate = any(isinstance(step, TrustGateStep) for step in steps)
        original_is_async = inspect.iscoroutinefunction(original)
        if has_trust_gate and not original_is_async and not policy.may_suspend:
            raise SetupError(
                f"Operation '{operation_name}' may suspend for confirmation but its "
                "policy does not declare may_suspend",
                operation=operation_name,
                owner=owner_desc,
            )

        try:
            signature: inspect.Signature | None = inspect.signature(original)
        except (TypeError, ValueError):
            signature = None

        binding: OperationBinding

        if original_is_async or has_trust_gate:

            @functools.wraps(original)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                return await self._invoke_async(binding, args, kwargs)

        else:

            @functools.wraps(original)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                return self._invoke_sync(binding, args, kwargs)

        own_attrs = getattr(owner, "__dict__", None)
        if own_attrs is None:
            # __slots__ owner: the value lives on the instance, restore by assignment
            had_own_attribute, raw_attribute = True, original
        else:
            had_own_attribute = operation_name in own_attrs
            raw_attribute = own_attrs[operation_name] if had_own_attribute else None

        binding = OperationBinding(
            owner=owner,
            operation=operation_name,
            policy=policy,
            original=original,
            wrapper=wrapper,
            steps=steps,
            is_async=original_is_async or has_trust_gate,
            owner_path=owner_desc,
            signature=signature,
            _had_own_attribute=had_own_attribute,
            _raw_attribute=raw_attribute,
        )
        setattr(wrapper, WRAPPER_MARKER, binding)

        installed: Any = wrapper
        if inspect.isclass(owner) and isinstance(raw_attribute, (staticmethod, classmethod)):
            # getattr already resolved the descriptor; keep the wrapper unbound
            installed = staticmethod(wrapper)

        try:
            setattr(owner, operation_name, installed)
        except (AttributeError, TypeError) as e:
            raise SetupError(
                f"Cannot replace '{operation_name}' on {owner_desc}: {e}",
                operation=operation_name,
                owner=owner_desc,
            ) from e

        self._bindings[key] = binding
        self._system_logger.info(
            {
                "event": "operation_installed",
                "message": f"Intercepting {owner_desc}.{operation_name}",
                "operation": binding.id,
                "owner": owner_desc,
                "policies": [step.kind for step in steps],
                "async_wrapper": binding.is_async,
                "synchrony_changed": has_trust_gate and not original_is_async,
            }
        )
        return binding

    def _check_rate_channels(self, policy: OperationPolicy, operation_name: str, owner_desc: str) -> None:
        """Reject rate limits that disagree with an installed binding on the same channel."""
        claimed: dict[str, tuple[int, float, str]] = {}
        for other in self._bindings.values():
            for channel, step in other.policy.rate_channels():
                claimed.setdefault(channel, (step.threshold, step.window_seconds, other.id))

        for channel, step in policy.rate_channels():
            held = claimed.setdefault(channel, (step.threshold, step.window_seconds, policy.binding_id))
            if held[:2] != (step.threshold, step.window_seconds):
                raise SetupError(
                    f"Rate channel '{channel}' is limited to {held[0]} calls per {held[1]}s "
                    f"by '{held[2]}'; '{policy.binding_id}' asks for "
                    f"{step.threshold} per {step.window_seconds}s",
                    operation=operation_name,
                    owner=owner_desc,
                )

    def _duplicate(self, existing: OperationBinding, mode: str, owner_desc: str) -> OperationBinding:
        if mode == "ignore":
            self._system_logger.debug(
                {
                    "event": "operation_already_installed",
                    "message": f"{owner_desc}.{existing.operation} already intercepted, ignoring",
                    "operation": existing.id,
                }
            )
            return existing
        raise AlreadyInstalledError(
            f"Operation '{existing.operation}' on {owner_desc} is already intercepted",
            operation=existing.operation,
            owner=owner_desc,
        )

    def uninstall(self, owner: Any, operation_name: str) -> bool:
        """Restore the original operation.

        Returns:
            True if a binding was removed, False if none existed.
        """
        binding = self._bindings.pop((id(owner), operation_name), None)
        if binding is None:
            return False
        self._restore(binding)
        return True

    def _restore(self, binding: OperationBinding) -> None:
        owner = binding.owner
        try:
            if binding._had_own_attribute:
                setattr(owner, binding.operation, binding._raw_attribute)
            else:
                # Removing the instance attribute uncovers the class attribute again
                delattr(owner, binding.operation)
        except (AttributeError, TypeError) as e:
            self._system_logger.error(
                {
                    "event": "operation_restore_failed",
                    "message": f"Could not restore {binding.owner_path}.{binding.operation}: {e}",
                    "operation": binding.id,
                    "error_type": type(e).__name__,
                }
            )
            return
        self._system_logger.info(
            {
                "event": "operation_uninstalled",
                "message": f"Restored {binding.owner_path}.{binding.operation}",
                "operation": binding.id,
            }
        )

    def uninstall_all(self) -> int:
        """Restore every original, newest first. Returns how many were removed."""
        bindings = list(self._bindings.values())
        self._bindings.clear()
        for binding in reversed(bindings):
            self._restore(binding)
        return len(bindings)

    def is_installed(self, owner: Any, operation_name: str) -> bool:
        return (id(owner), operation_name) in self._bindings

    def get_binding(self, owner: Any, operation_name: str) -> OperationBinding | None:
        return self._bindings.get((id(owner), operation_name))

    @property
    def bindings(self) -> list[OperationBinding]:
        """Active bindings in install order."""
        return list(self._bindings.values())

    # =========================================================================
    # Invocation
    # =========================================================================

    def _run_step(
        self,
        binding: OperationBinding,
        step: PolicyStepRunner,
        call: CallArguments,
        call_id: str,
    ) -> StepResult:
        """Evaluate one step; a step that raises denies the call."""
        try:
            return step.evaluate(call, binding.id)
        except Exception as e:
            binding.stats.step_errors += 1
            self._system_logger.error(
                {
                    "event": "policy_step_failed",
                    "message": f"Policy step '{step.kind}' failed on {binding.id}: {e}",
                    "operation": binding.id,
                    "policy": step.kind,
                    "error_type": type(e).__name__,
                    "call_id": call_id,
                },
                exc_info=True,
            )
            return StepResult.deny(
                step.kind,
                reason=f"Policy step raised {type(e).__name__}",
                message=f"Call to {binding.id} blocked: policy check failed.",
            )

    def _invoke_sync(self, binding: OperationBinding, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        with invocation_context(binding.id) as call_id:
            start = time.perf_counter()
            call = CallArguments(args, kwargs, binding.signature)

            for step in binding.steps:
                result = self._run_step(binding, step, call, call_id)
                if result.decision is Decision.ALLOW:
                    continue
                if result.decision is Decision.SUSPEND:
                    # Only trust gates suspend, and they always get an async wrapper
                    result = StepResult.deny(step.kind, reason="Step suspended in a synchronous wrapper")
                self._deny(binding, call, call_id, result, _elapsed_ms(start))
                return binding.policy.denial_result

            self._forward(binding, call, call_id, _elapsed_ms(start))
            return binding.original(*args, **kwargs)

    async def _invoke_async(
        self, binding: OperationBinding, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        with invocation_context(binding.id) as call_id:
            start = time.perf_counter()
            call = CallArguments(args, kwargs, binding.signature)
            hitl_ms = 0.0
            confirmation: ConfirmationResult | None = None

            for step in binding.steps:
                result = self._run_step(binding, step, call, call_id)
                if result.decision is Decision.ALLOW:
                    continue

                if result.decision is Decision.SUSPEND and result.pending is not None:
                    store = step.approval_store if isinstance(step, TrustGateStep) else None
                    confirmation = await self._confirmations.request(
                        result.pending,
                        operation=binding.id,
                        call_id=call_id,
                        approval_store=store,
                    )
                    hitl_ms += confirmation.response_time_ms
                    if confirmation.outcome is ConfirmationOutcome.CACHED:
                        binding.stats.cached_approvals += 1
                    else:
                        binding.stats.confirmations += 1
                    if confirmation.outcome.approved:
                        continue
                    result = self._confirmation_denial(binding, result, confirmation)
                elif result.decision is Decision.SUSPEND:
                    result = StepResult.deny(step.kind, reason="Step suspended without a confirmation request")

                user_cancelled = confirmation is not None and confirmation.outcome is ConfirmationOutcome.USER_DENIED
                outcome = self._deny(
                    binding,
                    call,
                    call_id,
                    result,
                    _elapsed_ms(start) - hitl_ms,
                    confirmation=confirmation,
                    hitl_ms=hitl_ms if confirmation is not None else None,
                    user_cancelled=user_cancelled,
                )
                if user_cancelled and binding.policy.on_user_cancel == "raise":
                    raise UserCancelledError(
                        result.message or "User cancelled the operation.",
                        operation=binding.id,
                        resource=result.pending.resource if result.pending else None,
                        call_id=outcome.call_id,
                    )
                return binding.policy.denial_result

            self._forward(
                binding,
                call,
                call_id,
                _elapsed_ms(start) - hitl_ms,
                confirmation=confirmation,
                hitl_ms=hitl_ms if confirmation is not None else None,
            )
            returned = binding.original(*args, **kwargs)
            if inspect.isawaitable(returned):
                returned = await returned
            return returned

    @staticmethod
    def _confirmation_denial(
        binding: OperationBinding, suspended: StepResult, confirmation: ConfirmationResult
    ) -> StepResult:
        """Turn a negative confirmation into the denial that gets reported."""
        pending = suspended.pending
        resource = pending.resource if pending is not None else None
        outcome = confirmation.outcome
        if outcome is ConfirmationOutcome.USER_DENIED:
            reason = "User declined the confirmation"
            message = f"User cancelled {binding.id}."
        elif outcome is ConfirmationOutcome.TIMEOUT:
            reason = "Confirmation timed out"
            message = f"No answer to the confirmation for {resource}. Call to {binding.id} blocked."
        else:
            reason = "Confirmation could not be obtained"
            message = f"Could not ask for confirmation for {resource}. Call to {binding.id} blocked."
        return StepResult(
            decision=Decision.DENY,
            policy=suspended.policy,
            reason=reason,
            message=message,
            pending=pending,
            details={"resource": sanitize_for_logging(resource)} if resource is not None else None,
        )

    # =========================================================================
    # Outcome reporting
    # =========================================================================

    def _forward(
        self,
        binding: OperationBinding,
        call: CallArguments,
        call_id: str,
        eval_ms: float,
        *,
        confirmation: ConfirmationResult | None = None,
        hitl_ms: float | None = None,
    ) -> InvocationOutcome:
        outcome = InvocationOutcome(
            state=InvocationState.FORWARDED,
            operation=binding.id,
            call_id=call_id,
            confirmation=confirmation.outcome.value if confirmation is not None else None,
        )
        binding.stats.forwarded += 1
        binding.last_outcome = outcome

        self._system_logger.debug(
            {
                "event": "operation_forwarded",
                "message": f"{binding.id} allowed",
                "operation": binding.id,
                "call_id": call_id,
            }
        )
        self._decision_logger.log(
            decision="forwarded",
            operation=binding.id,
            owner=binding.owner_path,
            call_id=call_id,
            policy_eval_ms=max(eval_ms, 0.0),
            policy_hitl_ms=hitl_ms,
            hitl_outcome=outcome.confirmation,
            hitl_cache_hit=_cache_hit(confirmation),
            arguments=summarize_arguments(call.args, call.kwargs, call.parameter_names),
        )
        return outcome

    def _deny(
        self,
        binding: OperationBinding,
        call: CallArguments,
        call_id: str,
        result: StepResult,
        eval_ms: float,
        *,
        confirmation: ConfirmationResult | None = None,
        hitl_ms: float | None = None,
        user_cancelled: bool = False,
    ) -> InvocationOutcome:
        outcome = InvocationOutcome(
            state=InvocationState.DENIED,
            operation=binding.id,
            call_id=call_id,
            policy=result.policy,
            reason=result.reason,
            user_cancelled=user_cancelled,
            confirmation=confirmation.outcome.value if confirmation is not None else None,
        )
        binding.stats.denied += 1
        if user_cancelled:
            binding.stats.user_cancelled += 1
        binding.last_outcome = outcome

        event = "user_cancelled" if user_cancelled else _DENIAL_EVENTS.get(result.policy, "operation_denied")
        arguments = summarize_arguments(call.args, call.kwargs, call.parameter_names)
        self._system_logger.warning(
            {
                "event": event,
                "message": f"Blocked {binding.id}: {result.reason}",
                "operation": binding.id,
                "policy": result.policy,
                "call_id": call_id,
                "arguments": arguments,
            }
        )

        # The user already answered the prompt; no second dialog for a cancel
        if not user_cancelled and result.message:
            self._notify(result.message, binding, call_id)

        self._decision_logger.log(
            decision="denied",
            operation=binding.id,
            owner=binding.owner_path,
            call_id=call_id,
            policy=result.policy,
            reason=result.reason,
            user_cancelled=user_cancelled or None,
            hitl_outcome=outcome.confirmation,
            hitl_cache_hit=_cache_hit(confirmation),
            policy_eval_ms=max(eval_ms, 0.0),
            policy_hitl_ms=hitl_ms,
            arguments=arguments,
            details=result.details,
        )
        return outcome

    def _notify(self, message: str, binding: OperationBinding, call_id: str) -> None:
        try:
            self.sink.notify(message)
        except Exception as e:
            self._system_logger.error(
                {
                    "event": "notification_failed",
                    "message": f"Notification sink failed: {e}",
                    "operation": binding.id,
                    "error_type": type(e).__name__,
                    "call_id": call_id,
                }
            )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _cache_hit(confirmation: ConfirmationResult | None) -> bool | None:
    if confirmation is None:
        return None
    return confirmation.outcome is ConfirmationOutcome.CACHED
