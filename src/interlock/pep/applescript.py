"""AppleScript helpers for the macOS dialog sink.

Builds ``display dialog`` scripts from untrusted text (the resource
reference in a confirmation prompt comes straight from the host) and parses
the record osascript prints back.
"""

from __future__ import annotations

import re

from interlock.constants import MAX_DIALOG_RESOURCE_LENGTH

__all__ = [
    "build_dialog_script",
    "escape_applescript_string",
    "parse_applescript_record",
    "truncate_for_dialog",
]


def escape_applescript_string(s: str) -> str:
    """Escape a string for interpolation into an AppleScript string literal.

    Control characters become spaces, then backslashes and double quotes are
    escaped, so host-supplied text cannot close the literal.

    Example:
        >>> escape_applescript_string('evil"ext.js')
        'evil\\\\"ext.js'
    """
    for ch in ("\n", "\r", "\t"):
        s = s.replace(ch, " ")
    # Backslashes first, or the quote escapes get doubled
    s = s.replace("\\", "\\\\")
    return s.replace('"', '\\"')


def truncate_for_dialog(text: str, max_length: int = MAX_DIALOG_RESOURCE_LENGTH) -> str:
    """Shorten a line to ``max_length`` characters, keeping the tail."""
    if len(text) <= max_length:
        return text
    return "..." + text[-(max_length - 3) :]


def build_dialog_script(
    message: str,
    *,
    title: str,
    buttons: tuple[str, ...],
    default_button: str | None = None,
    cancel_button: str | None = None,
    giving_up_after: float | None = None,
) -> str:
    """Build a ``display dialog`` script.

    The message is split on newlines; each line is escaped separately and the
    lines are joined with AppleScript's ``return`` so line breaks survive.

    Args:
        message: Dialog body, may contain newlines.
        title: Dialog title.
        buttons: Button labels, left to right.
        default_button: Label activated by Return.
        cancel_button: Label activated by Escape (osascript exits 1).
        giving_up_after: Seconds before the dialog closes by itself.

    Returns:
        Script text for ``osascript -e``.
    """
    lines = [escape_applescript_string(truncate_for_dialog(line)) for line in message.split("\n")]
    body = '" & return & "'.join(lines)
    buttons_str = ", ".join(f'"{escape_applescript_string(b)}"' for b in buttons)

    parts = [
        f'display dialog ("{body}")',
        f'with title "{escape_applescript_string(title)}"',
        f"buttons {{{buttons_str}}}",
    ]
    if default_button is not None:
        parts.append(f'default button "{escape_applescript_string(default_button)}"')
    if cancel_button is not None:
        parts.append(f'cancel button "{escape_applescript_string(cancel_button)}"')
    parts.append("with icon caution")
    if giving_up_after is not None:
        parts.append(f"giving up after {max(1, int(giving_up_after))}")
    return " ".join(parts)


def parse_applescript_record(output: str) -> dict[str, str]:
    """Parse an AppleScript record into a dictionary.

    osascript prints records like ``{button returned:"Yes", gave up:false}``.
    Values come back as strings.

    Example:
        >>> parse_applescript_record('{button returned:"Yes", gave up:false}')
        {'button returned': 'Yes', 'gave up': 'false'}
    """
    result: dict[str, str] = {}

    # key:"quoted value" or key:unquoted value, terminated by comma or }
    pattern = r'(\w+(?:\s+\w+)*)\s*:\s*(?:"([^"]*)"|([^,}]+))'

    for match in re.finditer(pattern, output):
        key = match.group(1)
        value = match.group(2) if match.group(2) is not None else match.group(3)
        result[key] = value.strip() if value else value

    return result
