"""Shared fixtures: a fake host runtime and a scriptable notification sink.

The fake host mirrors the shape the default policy expects:

    vm.runtime.ccw_api.set_value_to_project(target, key, value)
    vm.runtime.ccw_api.insert_leaderboard(leaderboard_id, score, ext=None)
    vm.extension_manager.load_extension_url(url)          (coroutine)
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest

from interlock.pep.engine import InterceptionEngine
from interlock.telemetry.system.system_logger import reset_system_logger


# ============================================================================
# Fake host
# ============================================================================


class FakeCcwApi:
    """Project data and leaderboard API."""

    def __init__(self) -> None:
        self.values: dict[tuple[str, str], Any] = {}
        self.leaderboard: list[tuple[str, Any, Any]] = []
        self.set_calls = 0

    def set_value_to_project(self, target: str, key: str, value: Any) -> bool:
        self.set_calls += 1
        self.values[(target, key)] = value
        return True

    def insert_leaderboard(self, leaderboard_id: str, score: Any, ext: Any = None) -> dict[str, Any]:
        self.leaderboard.append((leaderboard_id, score, ext))
        return {"leaderboard": leaderboard_id, "score": score, "ext": ext}


class FakeExtensionManager:
    """Extension loader with an asynchronous load."""

    def __init__(self) -> None:
        self.loaded: list[str] = []

    async def load_extension_url(self, url: str) -> str:
        self.loaded.append(url)
        return f"loaded:{url}"


class FakeRuntime:
    def __init__(self) -> None:
        self.ccw_api = FakeCcwApi()


class FakeVM:
    """Host root object."""

    def __init__(self) -> None:
        self.runtime = FakeRuntime()
        self.extension_manager = FakeExtensionManager()


# ============================================================================
# Scriptable sink
# ============================================================================


class RecordingSink:
    """Notification sink that records notifications and answers from a script.

    Attributes:
        notifications: Messages passed to notify().
        prompts: Messages passed to confirm().
        answers: Answers returned by confirm(), in order. When exhausted,
            ``default_answer`` is used.
    """

    def __init__(self, *answers: bool, default_answer: bool = False) -> None:
        self.notifications: list[str] = []
        self.prompts: list[str] = []
        self.answers = list(answers)
        self.default_answer = default_answer

    def notify(self, message: str) -> None:
        self.notifications.append(message)

    async def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        if self.answers:
            return self.answers.pop(0)
        return self.default_answer


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _fresh_system_logger() -> Iterator[None]:
    """Drop any file handler a test configured on the system logger."""
    yield
    reset_system_logger()


@pytest.fixture
def vm() -> FakeVM:
    """A fresh fake host."""
    return FakeVM()


@pytest.fixture
def sink() -> RecordingSink:
    """A sink that says "no" to every confirmation."""
    return RecordingSink()


@pytest.fixture
def engine(sink: RecordingSink) -> Iterator[InterceptionEngine]:
    """Engine wired to the recording sink; uninstalls everything afterwards."""
    eng = InterceptionEngine(sink)
    yield eng
    eng.uninstall_all()


@pytest.fixture
def make_sink() -> type[RecordingSink]:
    """Factory for sinks with scripted answers: make_sink(True, False)."""
    return RecordingSink
