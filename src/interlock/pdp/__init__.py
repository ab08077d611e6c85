"""Policy Decision Point (PDP) - policy models and pure checks.

The PDP is stateless and side-effect free. Window state lives in
security/, enforcement and user interaction in pep/.

Structure:
    decision.py   - Decision enum, StepResult, InvocationOutcome
    policy.py     - Policy models (PolicyConfig, OperationPolicy, steps)
    validator.py  - Value constraints and validate()
    trust.py      - TrustGate allow-list classifier

Policy file I/O is in utils/policy/policy_helpers.py.
"""

from interlock.pdp.decision import Decision, InvocationOutcome, InvocationState, StepResult
from interlock.pdp.policy import (
    OperationPolicy,
    PolicyConfig,
    RateLimitPolicy,
    TrustGatePolicy,
    ValidatePolicy,
    create_default_policy,
)
from interlock.pdp.trust import TrustDecision, TrustGate
from interlock.pdp.validator import validate

__all__ = [
    # Decisions
    "Decision",
    "InvocationOutcome",
    "InvocationState",
    "StepResult",
    # Policy models
    "OperationPolicy",
    "PolicyConfig",
    "RateLimitPolicy",
    "TrustGatePolicy",
    "ValidatePolicy",
    "create_default_policy",
    # Checks
    "TrustDecision",
    "TrustGate",
    "validate",
]
