"""Policy loader - load and save the policy file.

The policy file (policy.json) sits in the app directory next to
config.json unless an explicit path is given. Saving is atomic and uses
owner-only permissions.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from interlock.constants import APP_NAME
from interlock.pdp.policy import PolicyConfig, create_default_policy
from interlock.utils.file_helpers import (
    get_app_dir,
    load_validated_json,
    require_file_exists,
    write_json_securely,
)

__all__ = [
    "compute_policy_checksum",
    "create_default_policy_file",
    "get_policy_path",
    "load_policy",
    "policy_exists",
    "save_policy",
]


def get_policy_path() -> Path:
    """Get the full path to the policy file.

    Returns:
        Path to policy.json in the app directory.
    """
    return get_app_dir() / "policy.json"


def compute_policy_checksum(policy_path: Path) -> str:
    """SHA256 of the policy file, recorded as the policy version in decision logs.

    Returns:
        str: Checksum in format "sha256:<hex_digest>".

    Raises:
        OSError: If the policy file cannot be read.
    """
    with open(policy_path, "rb") as f:
        digest = hashlib.sha256(f.read()).hexdigest()
    return f"sha256:{digest}"


def load_policy(path: Path | None = None) -> PolicyConfig:
    """Load policy configuration from file.

    Args:
        path: Path to policy.json. If None, uses the default location.

    Returns:
        PolicyConfig loaded from file.

    Raises:
        FileNotFoundError: If the policy file does not exist.
        ConfigurationError: If the policy file contains invalid JSON or schema.
    """
    policy_path = path or get_policy_path()
    require_file_exists(policy_path, file_type="policy")
    return load_validated_json(
        policy_path,
        PolicyConfig,
        file_type="policy",
        recovery_hint=f"Edit the policy file to fix the errors, or run '{APP_NAME} init --force'.",
    )


def save_policy(policy: PolicyConfig, path: Path | None = None) -> None:
    """Save policy configuration to file atomically.

    Args:
        policy: PolicyConfig to save.
        path: Path to save to. If None, uses the default location.
    """
    write_json_securely(path or get_policy_path(), policy.model_dump(mode="json", exclude_none=True))


def policy_exists(path: Path | None = None) -> bool:
    """Check if the policy file exists."""
    return (path or get_policy_path()).exists()


def create_default_policy_file(path: Path | None = None, *, overwrite: bool = False) -> PolicyConfig:
    """Write the default anti-cheat policy.

    Args:
        path: Path to create. If None, uses the default location.
        overwrite: Replace an existing file.

    Returns:
        The PolicyConfig that was written.

    Raises:
        FileExistsError: If the policy file exists and overwrite is False.
    """
    policy_path = path or get_policy_path()

    if policy_path.exists() and not overwrite:
        raise FileExistsError(f"Policy file already exists: {policy_path}")

    policy = create_default_policy()
    save_policy(policy, policy_path)
    return policy
