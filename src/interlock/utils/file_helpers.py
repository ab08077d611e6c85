"""Shared file utilities for interlock.

Used by config and policy loading:
- get_app_dir / get_default_log_dir: OS-appropriate directories
- set_secure_permissions: owner-only permissions
- require_file_exists: missing-file errors with an init hint
- load_validated_json: JSON read + Pydantic validation with located errors
- write_json_securely: atomic JSON write with secure permissions
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, TypeVar

import click
from platformdirs import user_log_dir
from pydantic import BaseModel, ValidationError

from interlock.constants import APP_NAME
from interlock.exceptions import ConfigurationError

# Type variable for Pydantic models
T = TypeVar("T", bound=BaseModel)

__all__ = [
    "get_app_dir",
    "get_default_log_dir",
    "load_validated_json",
    "require_file_exists",
    "set_secure_permissions",
    "write_json_securely",
]


def get_app_dir() -> Path:
    """Get the OS-appropriate application directory.

    Uses click.get_app_dir():
    - macOS: ~/Library/Application Support/interlock
    - Linux: ~/.config/interlock (XDG compliant)
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\interlock
    """
    return Path(click.get_app_dir(APP_NAME))


def get_default_log_dir() -> str:
    """Platform log directory (~/Library/Logs/interlock, ~/.local/state/interlock/log, ...)."""
    return user_log_dir(APP_NAME, appauthor=False)


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Restrict a file (0o600) or directory (0o700) to its owner.

    Does nothing on Windows. Permission errors are ignored.
    """
    if sys.platform == "win32":
        return

    try:
        path.chmod(0o700 if is_directory else 0o600)
    except OSError:
        pass  # Permission changes might fail on some systems


def require_file_exists(
    file_path: Path,
    file_type: str = "file",
    init_hint: bool = True,
) -> None:
    """Raise FileNotFoundError with a helpful message if the file doesn't exist.

    Args:
        file_path: Path to check.
        file_type: Description for the error message ("configuration", "policy").
        init_hint: If True, suggest running 'interlock init'.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    if file_path.exists():
        return

    hint = f"\nRun '{APP_NAME} init' to create a {file_type} file." if init_hint else ""
    raise FileNotFoundError(f"{file_type.capitalize()} file not found at {file_path}.{hint}")


def _operation_context(data: Any, loc_parts: tuple[Any, ...]) -> str:
    if (
        len(loc_parts) >= 2
        and loc_parts[0] == "operations"
        and isinstance(loc_parts[1], int)
        and isinstance(data, dict)
    ):
        operations = data.get("operations")
        if isinstance(operations, list) and loc_parts[1] < len(operations):
            entry = operations[loc_parts[1]]
            if isinstance(entry, dict):
                name = entry.get("id") or entry.get("operation")
                if name:
                    return f" (operation '{name}')"
    return ""


def load_validated_json(
    file_path: Path,
    model_class: type[T],
    file_type: str = "file",
    recovery_hint: str | None = None,
    encoding: str | None = "utf-8",
) -> T:
    """Load a JSON file and validate it against a Pydantic model.

    Args:
        file_path: Path to JSON file.
        model_class: Pydantic model class to validate against.
        file_type: Description for error messages ("config", "policy").
        recovery_hint: Optional hint appended to validation errors.
        encoding: File encoding.

    Returns:
        Validated model instance.

    Raises:
        ConfigurationError: If the file cannot be read, the JSON is invalid,
            or validation fails.
    """
    try:
        with open(file_path, "r", encoding=encoding) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {file_type} file {file_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read {file_type} file {file_path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc_parts = tuple(error["loc"])
            loc = ".".join(str(x) for x in loc_parts)
            context = _operation_context(data, loc_parts)
            errors.append(f"  - {loc}{context}: {error['msg']}")

        message = f"Invalid {file_type} in {file_path}:\n" + "\n".join(errors)
        if recovery_hint:
            message += f"\n\n{recovery_hint}"
        raise ConfigurationError(message) from e


def write_json_securely(path: Path, data: Any) -> None:
    """Write JSON atomically (temp file + rename) with owner-only permissions.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    set_secure_permissions(path.parent, is_directory=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        set_secure_permissions(Path(tmp_name))
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
