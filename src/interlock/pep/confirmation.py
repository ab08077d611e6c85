"""Confirmation handling for suspended invocations.

Resolves a PendingConfirmation raised by a trust gate exactly once:
remembered approval, user answer, timeout, or sink failure.

Each call gets its own confirmation. Concurrent calls for the same
resource each prompt; they are not coalesced.
"""

from __future__ import annotations

__all__ = [
    "ConfirmationHandler",
    "ConfirmationOutcome",
    "ConfirmationResult",
]

import asyncio
import time
from dataclasses import dataclass
from enum import Enum

from interlock.pdp.decision import PendingConfirmation
from interlock.pep.approval_store import ApprovalStore
from interlock.pep.notifier import NotificationSink
from interlock.telemetry.system.system_logger import get_system_logger
from interlock.utils.logging.logging_helpers import sanitize_for_logging


class ConfirmationOutcome(Enum):
    """Outcome of a confirmation request."""

    USER_ALLOWED = "user_allowed"
    USER_DENIED = "user_denied"
    TIMEOUT = "timeout"
    CACHED = "cached"
    ERROR = "error"

    @property
    def approved(self) -> bool:
        return self in (ConfirmationOutcome.USER_ALLOWED, ConfirmationOutcome.CACHED)


@dataclass
class ConfirmationResult:
    """Result of a confirmation request.

    Attributes:
        outcome: How the request was resolved.
        response_time_ms: Time spent waiting for the answer.
    """

    outcome: ConfirmationOutcome
    response_time_ms: float


class ConfirmationHandler:
    """Asks the sink and applies approval caching and timeouts.

    Attributes:
        sink: Notification sink used for prompts.
    """

    def __init__(self, sink: NotificationSink) -> None:
        self.sink = sink
        self._system_logger = get_system_logger()

    async def request(
        self,
        pending: PendingConfirmation,
        *,
        operation: str,
        call_id: str,
        approval_store: ApprovalStore | None = None,
    ) -> ConfirmationResult:
        """Resolve one pending confirmation.

        Args:
            pending: The confirmation raised by the step.
            operation: Binding id of the suspended operation.
            call_id: Correlation ID of the invocation.
            approval_store: Store for remembered approvals, if enabled.

        Returns:
            ConfirmationResult. Anything other than USER_ALLOWED or CACHED
            is a denial.
        """
        if pending.remember and approval_store is not None:
            cached = approval_store.lookup(operation, pending.resource)
            if cached is not None:
                self._system_logger.info(
                    {
                        "event": "confirmation_cached",
                        "message": f"Using remembered approval for {operation}",
                        "operation": operation,
                        "resource": sanitize_for_logging(pending.resource),
                        "approval_age_s": round(approval_store.get_age_seconds(cached), 1),
                        "call_id": call_id,
                    }
                )
                return ConfirmationResult(ConfirmationOutcome.CACHED, 0.0)

        start_time = time.perf_counter()
        try:
            if pending.timeout_seconds is not None:
                answer = await asyncio.wait_for(self.sink.confirm(pending.prompt), pending.timeout_seconds)
            else:
                answer = await self.sink.confirm(pending.prompt)
        except TimeoutError:
            self._system_logger.warning(
                {
                    "event": "confirmation_timeout",
                    "message": f"No answer within {pending.timeout_seconds}s, denying {operation}",
                    "operation": operation,
                    "timeout_seconds": pending.timeout_seconds,
                    "call_id": call_id,
                }
            )
            return ConfirmationResult(ConfirmationOutcome.TIMEOUT, self._elapsed_ms(start_time))
        except Exception as e:
            self._system_logger.error(
                {
                    "event": "confirmation_failed",
                    "message": f"Notification sink failed to confirm: {e}",
                    "operation": operation,
                    "error_type": type(e).__name__,
                    "call_id": call_id,
                }
            )
            return ConfirmationResult(ConfirmationOutcome.ERROR, self._elapsed_ms(start_time))

        response_time_ms = self._elapsed_ms(start_time)
        if answer is not True:
            return ConfirmationResult(ConfirmationOutcome.USER_DENIED, response_time_ms)

        if pending.remember and approval_store is not None:
            approval_store.store(operation, pending.resource, call_id=call_id)
        return ConfirmationResult(ConfirmationOutcome.USER_ALLOWED, response_time_ms)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000
