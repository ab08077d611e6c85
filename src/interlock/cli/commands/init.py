"""Init command for the interlock CLI.

Writes config.json and the default anti-cheat policy.json into the app
directory.
"""

from __future__ import annotations

__all__ = ["init"]

import sys
from pathlib import Path

import click

from interlock.config import AppConfig, LoggingConfig, NotificationConfig, get_config_path
from interlock.utils.policy import create_default_policy_file, get_policy_path

from ..styling import style_error, style_label, style_success, style_warning


@click.command()
@click.option("--force", "-f", is_flag=True, help="Overwrite existing files")
@click.option("--log-dir", type=str, default=None, help="Base directory for logs")
@click.option(
    "--sink",
    type=click.Choice(["auto", "log", "console", "macos"]),
    default="auto",
    show_default=True,
    help="How warnings and confirmations reach the user",
)
@click.option(
    "--policy-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the policy here instead of the default location",
)
def init(force: bool, log_dir: str | None, sink: str, policy_path: Path | None) -> None:
    """Create configuration and the default policy.

    Existing files are kept unless --force is given.
    """
    config_path = get_config_path()
    policy_path = policy_path or get_policy_path()

    if config_path.exists() and not force:
        click.echo(style_warning(f"Config already exists at {config_path} (use --force to overwrite)"))
    else:
        logging_cfg = LoggingConfig(log_dir=log_dir) if log_dir else LoggingConfig()
        config = AppConfig(logging=logging_cfg, notifications=NotificationConfig(sink=sink))
        try:
            config.save_to_file(config_path)
        except OSError as e:
            click.echo(style_error(f"Could not write config: {e}"), err=True)
            sys.exit(1)
        click.echo(style_success(f"Config written: {config_path}"))

    try:
        policy_config = create_default_policy_file(policy_path, overwrite=force)
    except FileExistsError:
        click.echo(style_warning(f"Policy already exists at {policy_path} (use --force to overwrite)"))
        return
    except OSError as e:
        click.echo(style_error(f"Could not write policy: {e}"), err=True)
        sys.exit(1)

    click.echo(style_success(f"Policy written: {policy_path}"))
    click.echo(style_label("Protected operations"))
    for op in policy_config.operations:
        click.echo(f"  {op.binding_id}")
