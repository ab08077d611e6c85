"""Policy command group for the interlock CLI."""

from __future__ import annotations

__all__ = ["policy"]

import json
import sys
from pathlib import Path

import click

from interlock.constants import APP_NAME
from interlock.exceptions import ConfigurationError
from interlock.pdp.policy import OperationPolicy, RateLimitPolicy, TrustGatePolicy, ValidatePolicy
from interlock.utils.policy import get_policy_path, load_policy

from ..styling import style_dim, style_error, style_label, style_success


def describe_step(step: RateLimitPolicy | ValidatePolicy | TrustGatePolicy) -> str:
    """One-line summary of a policy step."""
    if isinstance(step, RateLimitPolicy):
        return f"rate_limit {step.threshold}/{step.window_seconds}s"
    if isinstance(step, ValidatePolicy):
        parts = []
        for c in step.constraints:
            fields = c.model_dump(exclude={"kind"}, exclude_none=True)
            parts.append(f"{c.kind}({', '.join(f'{k}={v}' for k, v in fields.items())})")
        return f"validate {step.argument}: {' and '.join(parts)}"
    origins = ", ".join(step.trusted_origins)
    remember = ", remember approvals" if step.remember_approvals else ""
    return f"trust_gate {step.argument} [{step.match}: {origins}]{remember}"


def _print_operation(op: OperationPolicy) -> None:
    target = f"{op.owner}.{op.operation}" if op.owner else op.operation
    suffix = click.style(" (async, may suspend)", fg="yellow") if op.may_suspend else ""
    click.echo(f"  [{op.binding_id}] {target}{suffix}")
    if op.description:
        click.echo(f"    {op.description}")
    for step in op.policies:
        click.echo(f"    - {describe_step(step)}")
    if not op.policies:
        click.echo(style_dim("    (no policy steps, calls always forwarded)"))


@click.group()
def policy() -> None:
    """Policy management commands."""
    pass


@policy.command("path")
def policy_path_cmd() -> None:
    """Show policy file path."""
    path = get_policy_path()
    click.echo(str(path))

    if not path.exists():
        click.echo(f"(file does not exist - run '{APP_NAME} init' to create)", err=True)


@policy.command("validate")
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Validate file at this path instead of the default location",
)
def policy_validate(path: Path | None) -> None:
    """Validate policy file.

    Exit codes:
        0: Policy is valid
        1: Policy is invalid or not found
    """
    policy_path = path or get_policy_path()

    try:
        policy_config = load_policy(policy_path)
    except (FileNotFoundError, ConfigurationError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    count = len(policy_config.operations)
    click.echo(style_success(f"Policy valid: {policy_path}"))
    click.echo(f"  {count} operation{'s' if count != 1 else ''} intercepted")
    suspending = [op.binding_id for op in policy_config.operations if op.may_suspend]
    if suspending:
        click.echo(f"  Asynchronous wrappers: {', '.join(suspending)}")


@policy.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Show file at this path instead of the default location",
)
def policy_show(as_json: bool, path: Path | None) -> None:
    """Display current policy."""
    policy_path = path or get_policy_path()

    try:
        policy_config = load_policy(policy_path)
    except (FileNotFoundError, ConfigurationError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(policy_config.model_dump(mode="json", exclude_none=True), indent=2))
        return

    click.echo(style_label("Policy") + f" {policy_path}")
    click.echo(f"Version: {policy_config.version}")
    click.echo(f"Operations: {len(policy_config.operations)}")
    click.echo()
    if not policy_config.operations:
        click.echo(style_dim("  (no operations defined)"))
    for op in policy_config.operations:
        _print_operation(op)
