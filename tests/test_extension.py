"""Tests for the anti-cheat extension bootstrap."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from interlock.config import AppConfig, LoggingConfig, NotificationConfig
from interlock.exceptions import HostUnavailableError, TargetNotFoundError
from interlock.extension import InterlockExtension, build_engine, resolve_owner
from interlock.pdp.policy import OperationPolicy, PolicyConfig, RateLimitPolicy
from interlock.pep.engine import InterceptionEngine, get_wrapper_binding
from interlock.pep.notifier import LoggingNotificationSink


@pytest.fixture
def extension(vm, sink):
    """Extension with the built-in policy on the fake host."""
    ext = InterlockExtension(vm, engine=InterceptionEngine(sink))
    yield ext
    ext.shutdown()


class TestResolveOwner:
    def test_dotted_path(self, vm) -> None:
        assert resolve_owner(vm, "runtime.ccw_api") is vm.runtime.ccw_api

    def test_empty_path_is_host(self, vm) -> None:
        assert resolve_owner(vm, "") is vm

    def test_missing_segment(self, vm) -> None:
        with pytest.raises(HostUnavailableError, match="runtime.missing"):
            resolve_owner(vm, "runtime.missing.deeper")


class TestDescriptor:
    def test_get_info(self, extension) -> None:
        # Act
        info = extension.get_info()

        # Assert
        assert info == {
            "id": "antiCheat",
            "name": "Anti-Cheat Protection",
            "color1": "#8A2BE2",
            "color2": "#9370DB",
            "blocks": [
                {
                    "opcode": "checkStatus",
                    "blockType": "reporter",
                    "text": "Anti-Cheat Status",
                    "disableMonitor": True,
                }
            ],
        }

    def test_register_hands_itself_to_registry(self, extension) -> None:
        # Arrange
        registry = MagicMock()

        # Act
        extension.register(registry)

        # Assert
        registry.register.assert_called_once_with(extension)


class TestBootstrap:
    def test_installs_all_default_bindings(self, extension, vm) -> None:
        # Assert
        assert sorted(extension.installed) == [
            "insert_leaderboard",
            "load_extension_url",
            "set_value_to_project",
        ]
        assert extension.failed == {}
        assert get_wrapper_binding(vm.runtime.ccw_api.insert_leaderboard) is not None
        assert extension.check_status() == "Active"
        assert extension.checkStatus() == "Active"

    def test_missing_owner_skips_binding(self, sink) -> None:
        """A host without an extension manager still gets the other bindings."""

        # Arrange
        class Api:
            def set_value_to_project(self, target, key, value):
                return True

            def insert_leaderboard(self, leaderboard_id, score, ext=None):
                return True

        host = MagicMock(spec=["runtime"])
        host.runtime = MagicMock(spec=["ccw_api"])
        host.runtime.ccw_api = Api()

        # Act
        ext = InterlockExtension(host)

        # Assert
        assert sorted(ext.installed) == ["insert_leaderboard", "set_value_to_project"]
        assert isinstance(ext.failed["load_extension_url"], HostUnavailableError)
        assert ext.check_status() == "Active"
        ext.shutdown()

    def test_missing_operation_recorded(self, vm) -> None:
        # Arrange
        policy = PolicyConfig(operations=[OperationPolicy(owner="runtime.ccw_api", operation="nonexistent")])

        # Act
        ext = InterlockExtension(vm, policy)

        # Assert
        assert isinstance(ext.failed["nonexistent"], TargetNotFoundError)
        assert ext.check_status() == "Inactive"

    def test_shutdown_restores_host(self, extension, vm) -> None:
        # Act
        restored = extension.shutdown()

        # Assert
        assert restored == 3
        assert extension.check_status() == "Inactive"
        assert "insert_leaderboard" not in vars(vm.runtime.ccw_api)

    def test_custom_policy(self, vm, sink) -> None:
        # Arrange
        policy = PolicyConfig(
            operations=[
                OperationPolicy(
                    owner="runtime.ccw_api",
                    operation="set_value_to_project",
                    policies=[RateLimitPolicy(threshold=1)],
                )
            ]
        )
        ext = InterlockExtension(vm, policy)

        # Act
        first = vm.runtime.ccw_api.set_value_to_project("Stage", "k", 1)
        second = vm.runtime.ccw_api.set_value_to_project("Stage", "k", 2)

        # Assert
        assert (first, second) == (True, None)
        ext.shutdown()


class TestFromFiles:
    def test_builtin_policy_without_policy_file(self, vm, tmp_path) -> None:
        # Arrange
        config_path = tmp_path / "config.json"
        AppConfig(logging=LoggingConfig(log_dir=str(tmp_path / "logs"))).save_to_file(config_path)

        # Act
        ext = InterlockExtension.from_files(
            vm,
            config_path=config_path,
            policy_path=tmp_path / "policy.json",
            sink=LoggingNotificationSink(),
        )

        # Assert
        assert len(ext.installed) == 3
        assert (tmp_path / "logs" / "audit" / "decisions.jsonl").exists()
        ext.shutdown()

    def test_policy_file_loaded(self, vm, tmp_path) -> None:
        # Arrange
        config_path = tmp_path / "config.json"
        AppConfig(
            logging=LoggingConfig(log_dir=str(tmp_path / "logs")),
            notifications=NotificationConfig(sink="log"),
        ).save_to_file(config_path)
        policy_path = tmp_path / "policy.json"
        policy_path.write_text(
            json.dumps(
                {
                    "operations": [
                        {
                            "owner": "runtime.ccw_api",
                            "operation": "insert_leaderboard",
                            "policies": [
                                {"kind": "validate", "argument": "score", "constraints": [{"kind": "range", "min": 0}]}
                            ],
                        }
                    ]
                }
            ),
            encoding="utf-8",
        )

        # Act
        ext = InterlockExtension.from_files(vm, config_path=config_path, policy_path=policy_path)

        # Assert
        assert list(ext.installed) == ["insert_leaderboard"]
        assert isinstance(ext.engine.sink, LoggingNotificationSink)
        ext.shutdown()

    def test_invalid_policy_file_raises(self, vm, tmp_path) -> None:
        # Arrange
        policy_path = tmp_path / "policy.json"
        policy_path.write_text('{"operations": [{"operation": "x", "policies": [{"kind": "nope"}]}]}')

        # Act / Assert
        with pytest.raises(ValueError, match="Invalid policy"):
            InterlockExtension.from_files(vm, config_path=tmp_path / "config.json", policy_path=policy_path)


class TestBuildEngine:
    def test_duplicate_mode_from_config(self, tmp_path) -> None:
        # Arrange
        config = AppConfig.model_validate(
            {"logging": {"log_dir": str(tmp_path)}, "engine": {"on_duplicate": "ignore"}}
        )

        # Act
        engine = build_engine(config, sink=LoggingNotificationSink())

        # Assert
        assert engine.on_duplicate == "ignore"

    def test_audit_disabled_writes_no_decision_log(self, tmp_path) -> None:
        # Arrange
        config = AppConfig(logging=LoggingConfig(log_dir=str(tmp_path), audit_enabled=False))

        # Act
        build_engine(config, sink=LoggingNotificationSink())

        # Assert
        assert not (tmp_path / "audit").exists()
