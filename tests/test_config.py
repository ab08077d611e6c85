"""Unit tests for application configuration."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from interlock.config import AppConfig, EngineConfig, LoggingConfig, NotificationConfig
from interlock.exceptions import ConfigurationError


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "config.json"


class TestDefaults:
    def test_empty_object_is_valid(self, config_file: Path) -> None:
        # Arrange
        config_file.write_text("{}", encoding="utf-8")

        # Act
        config = AppConfig.load_from_files(config_file)

        # Assert
        assert config.logging.log_level == "INFO"
        assert config.logging.audit_enabled is True
        assert config.notifications.sink == "auto"
        assert config.engine.on_duplicate == "raise"

    def test_log_paths(self) -> None:
        # Act
        cfg = LoggingConfig(log_dir="/var/tmp/il")

        # Assert
        assert cfg.system_log_path == Path("/var/tmp/il/system/system.jsonl")
        assert cfg.decisions_log_path == Path("/var/tmp/il/audit/decisions.jsonl")

    def test_log_dir_expands_user(self) -> None:
        assert "~" not in str(LoggingConfig(log_dir="~/logs").base_path)


class TestValidation:
    def test_rejects_unknown_sink(self) -> None:
        with pytest.raises(ValidationError):
            NotificationConfig(sink="email")

    def test_rejects_unknown_duplicate_mode(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(on_duplicate="replace")

    def test_rejects_empty_log_dir(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(log_dir="")

    def test_invalid_file_mentions_field(self, config_file: Path) -> None:
        # Arrange
        config_file.write_text(json.dumps({"logging": {"log_level": "TRACE"}}), encoding="utf-8")

        # Act / Assert
        with pytest.raises(ConfigurationError, match="logging.log_level"):
            AppConfig.load_from_files(config_file)

    def test_invalid_json(self, config_file: Path) -> None:
        # Arrange
        config_file.write_text("{", encoding="utf-8")

        # Act / Assert
        with pytest.raises(ValueError, match="Invalid JSON"):
            AppConfig.load_from_files(config_file)

    def test_missing_file(self, config_file: Path) -> None:
        with pytest.raises(FileNotFoundError, match="interlock init"):
            AppConfig.load_from_files(config_file)


class TestSave:
    def test_round_trip(self, config_file: Path) -> None:
        # Arrange
        config = AppConfig(
            logging=LoggingConfig(log_dir="/tmp/il-logs", log_level="DEBUG"),
            notifications=NotificationConfig(sink="console"),
            engine=EngineConfig(on_duplicate="ignore"),
        )

        # Act
        config.save_to_file(config_file)

        # Assert
        assert AppConfig.load_from_files(config_file) == config

    def test_owner_only_permissions(self, config_file: Path) -> None:
        # Act
        AppConfig().save_to_file(config_file)

        # Assert
        assert config_file.stat().st_mode & 0o777 == 0o600
        assert not list(config_file.parent.glob(".config.json.*.tmp"))


class TestConfigurationError:
    def test_is_a_value_error(self, config_file: Path) -> None:
        """Callers that catch ValueError still see load failures."""
        # Arrange
        config_file.write_text("[]", encoding="utf-8")

        # Act / Assert
        with pytest.raises(ValueError) as exc_info:
            AppConfig.load_from_files(config_file)
        assert isinstance(exc_info.value, ConfigurationError)
