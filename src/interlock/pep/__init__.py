"""Policy Enforcement Point (PEP) - call interception and enforcement.

- PDP (Policy Decision Point): ../pdp/ - policy models and pure checks
- PEP (this module): wraps host operations, runs the chain, enforces

Call flow:
1. Host calls a wrapped operation
2. Engine binds the arguments and runs each policy step in order
3. A trust gate may suspend the call for user confirmation
4. Engine forwards to the original, or suppresses the call and reports it

Structure:
    engine.py          - InterceptionEngine, OperationBinding
    policies.py        - Executable steps (rate limit, validate, trust gate)
    confirmation.py    - ConfirmationHandler for suspended calls
    notifier.py        - Notification sinks (log, console, macOS dialogs)
    approval_store.py  - Remembered trust approvals (opt-in)
    applescript.py     - osascript dialog helpers
"""

from interlock.pep.approval_store import ApprovalStore, CachedApproval
from interlock.pep.confirmation import ConfirmationHandler, ConfirmationOutcome, ConfirmationResult
from interlock.pep.engine import DecisionStats, InterceptionEngine, OperationBinding
from interlock.pep.notifier import (
    ConsoleNotificationSink,
    LoggingNotificationSink,
    MacOSDialogNotificationSink,
    NotificationSink,
    create_notification_sink,
)

__all__ = [
    # Approval caching
    "ApprovalStore",
    "CachedApproval",
    # Confirmation
    "ConfirmationHandler",
    "ConfirmationOutcome",
    "ConfirmationResult",
    # Engine
    "DecisionStats",
    "InterceptionEngine",
    "OperationBinding",
    # Sinks
    "ConsoleNotificationSink",
    "LoggingNotificationSink",
    "MacOSDialogNotificationSink",
    "NotificationSink",
    "create_notification_sink",
]
