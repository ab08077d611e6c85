"""interlock - policy enforcement for intercepted host operations.

Wraps named operations on host objects and runs each call through an
ordered policy chain (rate limit, value validation, trust gate) before
forwarding it to the wrapped callable.

Usage:
    from interlock import InterceptionEngine
    from interlock.pdp.policy import create_default_policy

    engine = InterceptionEngine()
    policy = create_default_policy()
    engine.install(host.runtime.ccw_api, "set_value_to_project", policy.get("set_value_to_project"))
"""

__version__ = "0.1.0"

from interlock.pep.engine import InterceptionEngine, OperationBinding

__all__ = [
    "InterceptionEngine",
    "OperationBinding",
    "__version__",
]
