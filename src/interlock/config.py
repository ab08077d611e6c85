"""Application configuration for interlock.

Defines configuration for logging, notifications and engine behaviour.
Created by `interlock init` next to the policy file in the OS-appropriate
app directory (via click.get_app_dir). The policy itself lives in
policy.json and is loaded by interlock.utils.policy.

Example usage:
    config = AppConfig.load_from_files(get_config_path())
    config.save_to_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "EngineConfig",
    "LoggingConfig",
    "NotificationConfig",
    "get_config_path",
]

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from interlock.constants import APP_NAME, DECISIONS_LOG_FILENAME, DIALOG_TITLE, SYSTEM_LOG_FILENAME
from interlock.utils.file_helpers import (
    get_app_dir,
    get_default_log_dir,
    load_validated_json,
    require_file_exists,
    write_json_securely,
)


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Logs are stored under log_dir:
        <log_dir>/
        ├── system/
        │   └── system.jsonl        # WARNING+ operational events
        └── audit/
            └── decisions.jsonl     # one entry per intercepted call

    Attributes:
        log_dir: Base directory for logs. Platform default via platformdirs.
        log_level: DEBUG also writes forwarded-call events to the console.
        audit_enabled: Write decisions.jsonl.
    """

    log_dir: str = Field(default_factory=get_default_log_dir, min_length=1)
    log_level: Literal["DEBUG", "INFO"] = "INFO"
    audit_enabled: bool = True

    @property
    def base_path(self) -> Path:
        return Path(self.log_dir).expanduser()

    @property
    def system_log_path(self) -> Path:
        return self.base_path / "system" / SYSTEM_LOG_FILENAME

    @property
    def decisions_log_path(self) -> Path:
        return self.base_path / "audit" / DECISIONS_LOG_FILENAME


class NotificationConfig(BaseModel):
    """How warnings and confirmations reach the user.

    Attributes:
        sink: "log" (headless, confirmations denied), "console", "macos",
            or "auto" (macOS dialogs on macOS, console on a TTY, else log).
        title: Dialog title for the macOS sink.
    """

    sink: Literal["log", "console", "macos", "auto"] = "auto"
    title: str = Field(default=DIALOG_TITLE, min_length=1)


class EngineConfig(BaseModel):
    """Interception engine behaviour.

    Attributes:
        on_duplicate: "raise" AlreadyInstalledError on a second install of
            the same operation, or "ignore" it and keep the first wrapper.
    """

    on_duplicate: Literal["raise", "ignore"] = "raise"


class AppConfig(BaseModel):
    """Main application configuration for interlock.

    Every section has defaults, so an empty JSON object is a valid config.

    Attributes:
        logging: Log locations and level.
        notifications: Notification sink selection.
        engine: Engine behaviour.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON with owner-only permissions.

        Args:
            config_path: Path where the config JSON file should be saved.
        """
        write_json_securely(config_path, self.model_dump(mode="json"))

    @classmethod
    def load_from_files(cls, config_path: Path) -> "AppConfig":
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the config file doesn't exist.
            ConfigurationError: If the config file is invalid.
        """
        require_file_exists(config_path, file_type="configuration")
        return load_validated_json(
            config_path,
            cls,
            file_type="config",
            recovery_hint=f"Run '{APP_NAME} init --force' to recreate it.",
        )


def get_config_path() -> Path:
    """Path to config.json in the app directory."""
    return get_app_dir() / "config.json"
