"""Check command group: dry-run the policy's pure checks.

    interlock check trust URL          which trust gates accept a resource
    interlock check value OP VALUE     run an operation's validate steps

Nothing is intercepted and nobody is prompted. Exit code 1 means the
value or resource would be blocked (or would need confirmation).
"""

from __future__ import annotations

__all__ = ["check"]

import json
import sys
from pathlib import Path
from typing import Any

import click

from interlock.exceptions import ConfigurationError
from interlock.pdp.policy import PolicyConfig, TrustGatePolicy, ValidatePolicy, create_default_policy
from interlock.pdp.trust import TrustDecision, TrustGate
from interlock.pdp.validator import validate
from interlock.utils.policy import get_policy_path, load_policy

from ..styling import style_dim, style_error, style_success, style_warning

_path_option = click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Policy file to check against (default: app directory, else built-in policy)",
)


def _load(path: Path | None) -> PolicyConfig:
    policy_path = path or get_policy_path()
    if path is None and not policy_path.exists():
        click.echo(style_dim("(no policy file, using built-in policy)"), err=True)
        return create_default_policy()
    try:
        return load_policy(policy_path)
    except (FileNotFoundError, ConfigurationError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)


def _parse_value(raw: str) -> Any:
    """JSON when it parses ("5" is a number, '"5"' a string), else the raw text."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@click.group()
def check() -> None:
    """Check values and resources against the policy."""
    pass


@check.command("trust")
@click.argument("resource")
@_path_option
def check_trust(resource: str, path: Path | None) -> None:
    """Classify RESOURCE with every trust gate in the policy."""
    policy_config = _load(path)

    gates = [
        (op.binding_id, step)
        for op in policy_config.operations
        for step in op.policies
        if isinstance(step, TrustGatePolicy)
    ]
    if not gates:
        click.echo(style_dim("No trust gates in policy."))
        return

    needs_confirmation = False
    for operation_id, step in gates:
        gate = TrustGate(step.trusted_origins, match=step.match)
        if gate.evaluate(resource) is TrustDecision.TRUSTED:
            click.echo(style_success(f"{operation_id}: trusted (matches {gate.matching_origin(resource)!r})"))
        else:
            needs_confirmation = True
            click.echo(style_warning(f"{operation_id}: needs confirmation"))

    if needs_confirmation:
        sys.exit(1)


@check.command("value")
@click.argument("operation")
@click.argument("value")
@_path_option
def check_value(operation: str, value: str, path: Path | None) -> None:
    """Run OPERATION's validate steps against VALUE (parsed as JSON)."""
    policy_config = _load(path)

    op = policy_config.get(operation)
    if op is None:
        known = ", ".join(o.binding_id for o in policy_config.operations) or "(none)"
        click.echo(style_error(f"Unknown operation '{operation}'. Known: {known}"), err=True)
        sys.exit(1)

    steps = [step for step in op.policies if isinstance(step, ValidatePolicy)]
    if not steps:
        click.echo(style_dim(f"{operation} has no validate steps; any value passes."))
        return

    parsed = _parse_value(value)
    failed = False
    for step in steps:
        if validate(parsed, list(step.constraints)):
            click.echo(style_success(f"{step.argument}={parsed!r}: valid"))
        else:
            failed = True
            click.echo(style_error(f"{step.argument}={parsed!r}: blocked"))

    if failed:
        sys.exit(1)
