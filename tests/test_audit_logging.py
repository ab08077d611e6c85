"""Tests for decision audit logging and the system logger.

Decision entries are read back from decisions.jsonl and checked field by
field. Logging failures must never reach the host.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from interlock.exceptions import UserCancelledError
from interlock.extension import resolve_owner
from interlock.pdp.policy import create_default_policy
from interlock.pep.engine import InterceptionEngine
from interlock.telemetry.audit.decision_logger import DecisionEventLogger, create_decision_logger
from interlock.telemetry.system.system_logger import (
    ConsoleFormatter,
    configure_system_logger_file,
    get_system_logger,
)
from interlock.utils.logging.jsonl import ISO8601Formatter
from interlock.utils.logging.logging_context import get_call_id, invocation_context
from interlock.utils.logging.logging_helpers import sanitize_for_logging, summarize_arguments, summarize_value


def _read_jsonl(path: Path) -> list[dict[str, Any]]:
    for handler in logging.getLogger("interlock.audit.decisions").handlers:
        handler.flush()
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


@pytest.fixture
def decisions_path(tmp_path: Path) -> Path:
    return tmp_path / "audit" / "decisions.jsonl"


@pytest.fixture
def audited_engine(decisions_path: Path, sink):
    """Engine writing decisions.jsonl, with the default policy installed on a fake host."""
    decision_logger = DecisionEventLogger(
        logger=create_decision_logger(decisions_path),
        system_logger=get_system_logger(),
        policy_version="sha256:test",
    )
    engine = InterceptionEngine(sink, decision_logger=decision_logger)
    yield engine
    engine.uninstall_all()
    for handler in logging.getLogger("interlock.audit.decisions").handlers:
        handler.close()


def _install(engine: InterceptionEngine, vm: Any) -> None:
    for op in create_default_policy().operations:
        engine.install(resolve_owner(vm, op.owner), op.operation, op, owner_path=op.owner)


class TestDecisionLog:
    def test_denied_entry(self, audited_engine, vm, decisions_path: Path) -> None:
        # Arrange
        _install(audited_engine, vm)

        # Act
        vm.runtime.ccw_api.insert_leaderboard("weekly", -5)

        # Assert
        [entry] = _read_jsonl(decisions_path)
        assert entry["event"] == "decision"
        assert entry["decision"] == "denied"
        assert entry["operation"] == "insert_leaderboard"
        assert entry["owner"] == "runtime.ccw_api"
        assert entry["policy"] == "validate"
        assert entry["arguments"] == {"leaderboard_id": "weekly", "score": -5}
        assert entry["details"]["value"] == -5
        assert entry["policy_version"] == "sha256:test"
        assert entry["time"].endswith("Z")
        assert len(entry["call_id"]) == 12

    def test_forwarded_entry(self, audited_engine, vm, decisions_path: Path) -> None:
        # Arrange
        _install(audited_engine, vm)

        # Act
        vm.runtime.ccw_api.set_value_to_project("Stage", "score", 1)

        # Assert
        [entry] = _read_jsonl(decisions_path)
        assert entry["decision"] == "forwarded"
        assert "policy" not in entry
        assert entry["policy_total_ms"] >= 0

    @pytest.mark.asyncio
    async def test_user_cancel_entry(self, audited_engine, vm, decisions_path: Path) -> None:
        # Arrange
        _install(audited_engine, vm)

        # Act
        with pytest.raises(UserCancelledError):
            await vm.extension_manager.load_extension_url("https://evil.example.com/x.js")

        # Assert
        [entry] = _read_jsonl(decisions_path)
        assert entry["decision"] == "denied"
        assert entry["user_cancelled"] is True
        assert entry["hitl_outcome"] == "user_denied"
        assert entry["hitl_cache_hit"] is False
        assert "policy_hitl_ms" in entry

    def test_crafted_value_cannot_forge_entries(self, audited_engine, vm, decisions_path: Path) -> None:
        # Arrange
        _install(audited_engine, vm)

        # Act
        vm.runtime.ccw_api.set_value_to_project("Stage", 'k\n{"decision": "forwarded"}', 1)

        # Assert
        entries = _read_jsonl(decisions_path)
        assert len(entries) == 1
        assert "\\n" in entries[0]["arguments"]["key"]

    def test_write_failure_falls_back_to_system_logger(self) -> None:
        # Arrange
        primary = MagicMock()
        primary.info.side_effect = OSError("disk full")
        system = MagicMock()
        decision_logger = DecisionEventLogger(logger=primary, system_logger=system)

        # Act
        decision_logger.log(decision="forwarded", operation="op", call_id="c1", policy_eval_ms=0.1)

        # Assert
        logged = system.error.call_args[0][0]
        assert logged["event"] == "decision_log_failed"
        assert logged["decision_event"]["operation"] == "op"

    def test_invalid_event_never_raises(self) -> None:
        # Arrange
        system = MagicMock()
        decision_logger = DecisionEventLogger(logger=MagicMock(), system_logger=system)

        # Act
        decision_logger.log(decision="maybe", operation="op", call_id="c1", policy_eval_ms=0.0)

        # Assert
        assert system.error.call_args[0][0]["event"] == "decision_event_invalid"

    def test_without_primary_logger_uses_debug(self) -> None:
        # Arrange
        system = MagicMock()
        decision_logger = DecisionEventLogger(logger=None, system_logger=system)

        # Act
        decision_logger.log(decision="denied", operation="op", call_id="c1", policy_eval_ms=1.0)

        # Assert
        assert system.debug.call_args[0][0]["decision"] == "denied"


class TestSystemLogger:
    def test_singleton(self) -> None:
        assert get_system_logger() is get_system_logger()

    def test_file_gets_warnings_only(self, tmp_path: Path) -> None:
        # Arrange
        log_path = tmp_path / "system" / "system.jsonl"
        configure_system_logger_file(log_path)
        logger = get_system_logger()

        # Act
        logger.info({"event": "operation_installed", "message": "installed"})
        logger.warning({"event": "rate_limit_exceeded", "message": "blocked"})
        for handler in logger.handlers:
            handler.flush()

        # Assert
        lines = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert [line["event"] for line in lines] == ["rate_limit_exceeded"]
        assert lines[0]["level"] == "WARNING"

    def test_console_formatter(self) -> None:
        # Arrange
        record = logging.LogRecord("x", logging.WARNING, "", 0, {"event": "e", "message": "hello"}, None, None)

        # Act / Assert
        assert ConsoleFormatter().format(record) == "[interlock] WARNING: hello"

    def test_iso_formatter_plain_message(self) -> None:
        # Arrange
        record = logging.LogRecord("x", logging.INFO, "", 0, "plain", None, None)

        # Act
        entry = json.loads(ISO8601Formatter().format(record))

        # Assert
        assert entry["message"] == "plain"
        assert "level" not in entry


class TestLoggingHelpers:
    def test_invocation_context_nests(self) -> None:
        # Act
        with invocation_context("outer") as outer:
            with invocation_context("inner") as inner:
                inner_seen = get_call_id()
            outer_seen = get_call_id()

        # Assert
        assert inner_seen == inner
        assert outer_seen == outer
        assert get_call_id() is None

    def test_sanitize(self) -> None:
        assert sanitize_for_logging("a\nb\tc") == "a\\nb\\tc"

    def test_summarize_truncates(self) -> None:
        # Act
        summary = summarize_value("x" * 500, max_length=20)

        # Assert
        assert len(summary) == 20
        assert summary.endswith("...")

    def test_summarize_arguments_uses_names(self) -> None:
        assert summarize_arguments((1, 2), {"c": 3}, ["a"]) == {"a": 1, "arg1": 2, "c": 3}

    def test_summarize_value_survives_broken_repr(self) -> None:
        # Arrange
        class Opaque:
            def __repr__(self) -> str:
                raise RuntimeError("repr not available")

        # Act / Assert
        assert summarize_value(Opaque()) == "<unrepresentable Opaque>"
