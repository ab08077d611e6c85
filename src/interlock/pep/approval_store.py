"""Approval store for remembered trust confirmations.

When a trust gate opts in to ``remember_approvals``, a positive answer for
an untrusted resource is cached so the next call for the same resource on
the same operation skips the prompt until the TTL runs out.

- Approvals are keyed by (operation, resource), so approving one extension
  URL never approves another
- In-memory only: approvals never survive a restart
- Only positive answers are cached; a "no" always re-prompts next time
"""

from __future__ import annotations

__all__ = [
    "ApprovalKey",
    "ApprovalStore",
    "CachedApproval",
]

import threading
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class CachedApproval:
    """A remembered positive confirmation.

    Attributes:
        operation: Binding id of the gated operation.
        resource: The resource reference the user approved.
        stored_at: Monotonic timestamp when the approval was stored.
        call_id: Invocation that produced the approval, for the audit trail.
    """

    operation: str
    resource: str
    stored_at: float
    call_id: str | None = None


ApprovalKey = tuple[str, str]  # (operation, resource)


class ApprovalStore:
    """In-memory TTL cache for trust confirmations.

    Attributes:
        ttl_seconds: How long approvals remain valid.
    """

    def __init__(self, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._ttl_seconds = ttl_seconds
        self._store: dict[ApprovalKey, CachedApproval] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        """Get the TTL for cached approvals."""
        return self._ttl_seconds

    def store(self, operation: str, resource: str, call_id: str | None = None) -> CachedApproval:
        """Remember that the user approved ``resource`` for ``operation``."""
        approval = CachedApproval(
            operation=operation,
            resource=resource,
            stored_at=time.monotonic(),
            call_id=call_id,
        )
        with self._lock:
            self._store[(operation, resource)] = approval
        return approval

    def lookup(self, operation: str, resource: str) -> CachedApproval | None:
        """Return a live approval, removing it if it has expired."""
        key: ApprovalKey = (operation, resource)
        with self._lock:
            approval = self._store.get(key)
            if approval is None:
                return None
            if time.monotonic() - approval.stored_at > self._ttl_seconds:
                del self._store[key]
                return None
            return approval

    def get_age_seconds(self, approval: CachedApproval) -> float:
        """Seconds since the approval was stored."""
        return time.monotonic() - approval.stored_at

    def delete(self, operation: str, resource: str) -> bool:
        """Forget one approval. Returns True if it existed."""
        with self._lock:
            return self._store.pop((operation, resource), None) is not None

    def clear(self) -> int:
        """Forget all approvals. Returns how many were dropped."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    @property
    def count(self) -> int:
        """Number of stored approvals (may include expired entries)."""
        return len(self._store)
