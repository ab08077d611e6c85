"""Notification sinks: how denials and confirmations reach the user.

The engine never builds presentation itself. It talks to a sink with two
operations:

- ``notify(message)``: fire-and-forget warning ("High-frequency data
  modification detected and blocked!"). Must not block the caller.
- ``await confirm(message)``: yes/no question for untrusted resources. Must
  not block the event loop, so other wrapped calls keep flowing while the
  user thinks.

Implementations:
    LoggingNotificationSink      headless hosts: log only, confirmations denied
    ConsoleNotificationSink      click prompt on the terminal (worker thread)
    MacOSDialogNotificationSink  native osascript dialogs (async subprocess)
"""

from __future__ import annotations

__all__ = [
    "ConsoleNotificationSink",
    "LoggingNotificationSink",
    "MacOSDialogNotificationSink",
    "NotificationSink",
    "create_notification_sink",
]

import asyncio
import subprocess
import sys
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import click

from interlock.constants import DIALOG_TITLE
from interlock.pep.applescript import build_dialog_script, parse_applescript_record
from interlock.telemetry.system.system_logger import get_system_logger
from interlock.utils.logging.logging_context import get_call_id
from interlock.utils.logging.logging_helpers import sanitize_for_logging

if TYPE_CHECKING:
    from interlock.config import NotificationConfig


@runtime_checkable
class NotificationSink(Protocol):
    """Presentation collaborator consumed by the engine."""

    def notify(self, message: str) -> None:
        """Show a non-blocking warning."""
        ...

    async def confirm(self, message: str) -> bool:
        """Ask a yes/no question. True means yes."""
        ...


class LoggingNotificationSink:
    """Sink for hosts without a user in front of them.

    Notifications go to the system logger. Confirmations are denied, since
    nobody can answer them.
    """

    def __init__(self) -> None:
        self._system_logger = get_system_logger()

    def notify(self, message: str) -> None:
        self._system_logger.warning(
            {
                "event": "user_notification",
                "message": sanitize_for_logging(message),
                "call_id": get_call_id(),
            }
        )

    async def confirm(self, message: str) -> bool:
        self._system_logger.warning(
            {
                "event": "confirmation_auto_denied",
                "message": "No interactive sink configured, confirmation denied",
                "prompt": sanitize_for_logging(message),
                "call_id": get_call_id(),
            }
        )
        return False


class ConsoleNotificationSink:
    """Terminal sink built on click.

    The blocking ``click.confirm`` runs in a worker thread so the event loop
    stays free while the prompt is open.
    """

    def __init__(self, *, err: bool = True) -> None:
        self._err = err

    def notify(self, message: str) -> None:
        click.echo(click.style(f"Warning: {message}", fg="yellow"), err=self._err)

    async def confirm(self, message: str) -> bool:
        try:
            return await asyncio.to_thread(click.confirm, message, default=False, err=self._err)
        except (click.Abort, EOFError):
            return False


class MacOSDialogNotificationSink:
    """Native macOS dialogs through osascript.

    Confirmation dialogs run in an async subprocess; cancelling the awaiting
    task (e.g. on a confirmation timeout) kills the dialog.

    Attributes:
        title: Dialog title.
    """

    YES_BUTTON = "Yes"
    NO_BUTTON = "No"

    def __init__(self, title: str = DIALOG_TITLE) -> None:
        self.title = title
        self._system_logger = get_system_logger()
        self._open_dialogs: list[subprocess.Popen[bytes]] = []

    def _reap_dialogs(self) -> None:
        """Collect exit status of dismissed notification dialogs."""
        self._open_dialogs = [proc for proc in self._open_dialogs if proc.poll() is None]

    def notify(self, message: str) -> None:
        self._reap_dialogs()
        script = build_dialog_script(message, title=self.title, buttons=("OK",), default_button="OK")
        try:
            # Not waited on: the dialog stays up while the host keeps running
            proc = subprocess.Popen(
                ["osascript", "-e", script],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self._system_logger.error(
                {
                    "event": "dialog_notify_failed",
                    "message": f"osascript failed: {e}",
                    "error_type": type(e).__name__,
                    "call_id": get_call_id(),
                }
            )
        else:
            self._open_dialogs.append(proc)

    async def confirm(self, message: str) -> bool:
        script = build_dialog_script(
            message,
            title=self.title,
            buttons=(self.NO_BUTTON, self.YES_BUTTON),
            default_button=self.NO_BUTTON,
            cancel_button=self.NO_BUTTON,
        )
        try:
            proc = await asyncio.create_subprocess_exec(
                "osascript",
                "-e",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._system_logger.error(
                {
                    "event": "dialog_confirm_failed",
                    "message": f"osascript failed: {e}",
                    "error_type": type(e).__name__,
                    "call_id": get_call_id(),
                }
            )
            return False

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            raise

        if proc.returncode != 0:
            err_text = stderr.decode(errors="replace")
            # Exit 1 with "User canceled" is the No/Escape button
            if not (proc.returncode == 1 and "User canceled" in err_text):
                self._system_logger.warning(
                    {
                        "event": "dialog_osascript_error",
                        "message": "osascript returned non-zero exit code",
                        "returncode": proc.returncode,
                        "stderr": err_text.strip() or None,
                        "call_id": get_call_id(),
                    }
                )
            return False

        parsed = parse_applescript_record(stdout.decode(errors="replace").strip())
        return parsed.get("button returned") == self.YES_BUTTON


def create_notification_sink(config: "NotificationConfig | None" = None) -> NotificationSink:
    """Create the sink selected in configuration.

    "auto" picks macOS dialogs on macOS, the console when stdin is a
    terminal, and the logging sink otherwise.

    Args:
        config: Notification configuration. None means "auto".

    Returns:
        A notification sink.
    """
    kind = config.sink if config is not None else "auto"
    title = config.title if config is not None else DIALOG_TITLE

    if kind == "auto":
        if sys.platform == "darwin":
            kind = "macos"
        elif sys.stdin is not None and sys.stdin.isatty():
            kind = "console"
        else:
            kind = "log"

    if kind == "macos":
        return MacOSDialogNotificationSink(title=title)
    if kind == "console":
        return ConsoleNotificationSink()
    return LoggingNotificationSink()
