"""Trust gate: classify resource references against an allow-list.

A resource reference (typically an extension URL) is TRUSTED when it matches
one allow-list entry. Anything else NEEDS_CONFIRMATION: the engine suspends
the call and asks the user through the notification sink.

Matching is case-sensitive. The default "substring" mode treats an entry as
trusted wherever it appears in the reference, which is how the anti-cheat
extension has always matched its official origins. "prefix" mode is the
stricter alternative for allow-lists of full URL prefixes.
"""

from __future__ import annotations

__all__ = [
    "TrustDecision",
    "TrustGate",
]

from collections.abc import Iterable
from enum import Enum
from typing import Any, Literal


class TrustDecision(str, Enum):
    """Result of classifying a resource reference."""

    TRUSTED = "trusted"
    NEEDS_CONFIRMATION = "needs_confirmation"


class TrustGate:
    """Allow-list classifier for resource references.

    Attributes:
        trusted_origins: Allow-list entries, in declared order.
        match: "substring" or "prefix".
    """

    def __init__(
        self,
        trusted_origins: Iterable[str],
        match: Literal["substring", "prefix"] = "substring",
    ) -> None:
        origins = tuple(trusted_origins)
        for origin in origins:
            if not isinstance(origin, str) or not origin:
                raise ValueError(f"Trusted origin must be a non-empty string, got {origin!r}")
        if match not in ("substring", "prefix"):
            raise ValueError(f"Unknown match mode: {match!r}")
        self.trusted_origins = origins
        self.match = match

    def matching_origin(self, resource_ref: Any) -> str | None:
        """Return the first allow-list entry matching the reference, if any."""
        if not isinstance(resource_ref, str):
            return None
        for origin in self.trusted_origins:
            if self.match == "prefix":
                if resource_ref.startswith(origin):
                    return origin
            elif origin in resource_ref:
                return origin
        return None

    def evaluate(self, resource_ref: Any) -> TrustDecision:
        """Classify a resource reference.

        Non-string references are never trusted.
        """
        if self.matching_origin(resource_ref) is not None:
            return TrustDecision.TRUSTED
        return TrustDecision.NEEDS_CONFIRMATION

    def __repr__(self) -> str:
        return f"TrustGate(trusted_origins={list(self.trusted_origins)!r}, match={self.match!r})"
