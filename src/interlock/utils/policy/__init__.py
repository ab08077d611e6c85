"""Policy file management."""

from interlock.utils.policy.policy_helpers import (
    compute_policy_checksum,
    create_default_policy_file,
    get_policy_path,
    load_policy,
    policy_exists,
    save_policy,
)

__all__ = [
    "compute_policy_checksum",
    "create_default_policy_file",
    "get_policy_path",
    "load_policy",
    "policy_exists",
    "save_policy",
]
