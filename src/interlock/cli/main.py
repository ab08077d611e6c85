"""Main CLI entry point for interlock.

Commands:
    init    - Write config.json and the default policy
    policy  - Policy management (path, show, validate)
    check   - Dry-run trust and value checks against the policy

Subcommand help:
    interlock COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from interlock import __version__
from interlock.constants import APP_NAME

from .commands.check import check
from .commands.init import init
from .commands.policy import policy


class ReorderedGroup(click.Group):
    """Group that shows a quick start after the command list."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        formatter.write(
            f"""
Quick Start:
  {APP_NAME} init                                  Write config and default policy
  {APP_NAME} policy show                           Review intercepted operations
  {APP_NAME} check value insert_leaderboard 500    Would this score pass?
  {APP_NAME} check trust https://example.com/x.js  Would this extension prompt?
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """interlock: policy enforcement for intercepted host operations."""
    if version:
        click.echo(f"{APP_NAME} {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(check)
cli.add_command(init)
cli.add_command(policy)


def main() -> None:
    """CLI entry point."""
    cli()
