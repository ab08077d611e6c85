"""Context variables for invocation tracing and correlation.

Every wrapped call gets a short call ID so that the system log, the
decision log and any notification raised for that call can be correlated.
Context variables are scoped per async task, so interleaved invocations
on one event loop each see their own ID.
"""

from __future__ import annotations

__all__ = [
    "call_id_var",
    "get_call_id",
    "get_operation",
    "invocation_context",
    "new_call_id",
    "operation_var",
]

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

call_id_var: ContextVar[str | None] = ContextVar("call_id", default=None)
"""Correlation ID of the wrapped call currently being evaluated."""

operation_var: ContextVar[str | None] = ContextVar("operation", default=None)
"""Name of the wrapped operation currently being evaluated."""


def new_call_id() -> str:
    """Generate a fresh call ID (12 hex chars)."""
    return uuid.uuid4().hex[:12]


def get_call_id() -> str | None:
    """Get the current call ID from context.

    Returns:
        str | None: Current call ID if inside a wrapped call, None otherwise.
    """
    return call_id_var.get()


def get_operation() -> str | None:
    """Get the current operation name from context.

    Returns:
        str | None: Operation name if inside a wrapped call, None otherwise.
    """
    return operation_var.get()


@contextmanager
def invocation_context(operation: str, call_id: str | None = None) -> Iterator[str]:
    """Bind call ID and operation name for the duration of one invocation.

    Nested wrapped calls (a forwarded original calling another wrapped
    operation) get their own ID and restore the outer one on exit.

    Args:
        operation: Name of the wrapped operation.
        call_id: Explicit call ID, generated when omitted.

    Yields:
        The call ID in effect.
    """
    cid = call_id or new_call_id()
    call_token = call_id_var.set(cid)
    op_token = operation_var.set(operation)
    try:
        yield cid
    finally:
        operation_var.reset(op_token)
        call_id_var.reset(call_token)
