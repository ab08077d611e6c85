"""Custom exceptions for interlock.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into two categories:

Setup Errors (raised to the installer, one binding fails, others continue):
    - SetupError: Base for failures while installing a binding
    - HostUnavailableError: Owner object could not be resolved on the host
    - TargetNotFoundError: Named operation is missing on the owner
    - AlreadyInstalledError: Operation is already wrapped

Invocation Errors (raised from a wrapped call):
    - UserCancelledError: User answered "no" to a trust confirmation

Configuration Errors (raised while loading files):
    - ConfigurationError: Config or policy file is unreadable or invalid

Policy denials are not exceptions. They are reported through the denial
result of the wrapped call, a notification, and a decision log entry.

Usage:
    from interlock.exceptions import TargetNotFoundError, UserCancelledError
"""

from __future__ import annotations

__all__ = [
    "AlreadyInstalledError",
    "ConfigurationError",
    "HostUnavailableError",
    "SetupError",
    "TargetNotFoundError",
    "UserCancelledError",
]

from typing import Any


# =============================================================================
# Setup Errors (installer sees these, host calls never do)
# =============================================================================


class SetupError(Exception):
    """Base exception for failures while installing an operation binding.

    Fatal to installing that one binding. The extension bootstrap logs it
    and carries on with the remaining bindings.

    Attributes:
        message: Human-readable description.
        operation: Name of the operation being installed.
        owner: Description of the owner (dotted path or type name).
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        owner: str | None = None,
    ) -> None:
        """Initialize SetupError.

        Args:
            message: Human-readable description.
            operation: Name of the operation being installed.
            owner: Description of the owner object.
        """
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.owner = owner

    def to_log_dict(self) -> dict[str, Any]:
        """Structured fields for the system log."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.operation is not None:
            data["operation"] = self.operation
        if self.owner is not None:
            data["owner"] = self.owner
        return data

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        parts = [f"{type(self).__name__}({self.message!r}"]
        if self.operation is not None:
            parts.append(f", operation={self.operation!r}")
        if self.owner is not None:
            parts.append(f", owner={self.owner!r}")
        parts.append(")")
        return "".join(parts)

    def __str__(self) -> str:
        """Return human-readable string representation."""
        return self.message


class HostUnavailableError(SetupError):
    """The owner object for a binding could not be resolved on the host.

    Raised when a dotted owner path (e.g. "runtime.ccw_api") hits a
    missing attribute while walking the host object graph.
    """


class TargetNotFoundError(SetupError):
    """The named operation does not exist on the owner at install time.

    Also raised when the attribute exists but is not callable.
    """


class AlreadyInstalledError(SetupError):
    """The (owner, operation) pair already has an active wrapper.

    Raised on a second install of the same pair, and when the attribute
    currently on the owner is already an interlock wrapper (so wrappers
    never nest).
    """


# =============================================================================
# Invocation Errors
# =============================================================================


class UserCancelledError(Exception):
    """The user declined a trust confirmation for an untrusted resource.

    Kept distinct from automated policy denials so callers can tell a human
    decision from a rejected rate or value check. Raised from the awaited
    wrapper when the binding's ``on_user_cancel`` is "raise".

    Attributes:
        message: Human-readable reason.
        operation: Name of the wrapped operation.
        resource: The untrusted resource reference that was declined.
        call_id: Correlation ID of the invocation.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        resource: str | None = None,
        call_id: str | None = None,
    ) -> None:
        """Initialize UserCancelledError.

        Args:
            message: Human-readable reason.
            operation: Name of the wrapped operation.
            resource: The untrusted resource reference.
            call_id: Correlation ID of the invocation.
        """
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.resource = resource
        self.call_id = call_id

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        parts = [f"UserCancelledError({self.message!r}"]
        if self.operation is not None:
            parts.append(f", operation={self.operation!r}")
        if self.resource is not None:
            parts.append(f", resource={self.resource!r}")
        parts.append(")")
        return "".join(parts)

    def __str__(self) -> str:
        """Return human-readable string representation."""
        return self.message


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(ValueError):
    """Configuration or policy file is unreadable or invalid.

    Raised by load_validated_json for invalid JSON, an unreadable file, or a
    file that fails Pydantic validation. Subclasses ValueError so callers
    that catch ValueError keep working.
    """
