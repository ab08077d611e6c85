"""Unit tests for rate limiting functionality.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.

Tests cover:
- SlidingRateLimiter: window start/restart, per-channel limits, boundary
"""

from __future__ import annotations

import threading

import pytest

from interlock.constants import DEFAULT_RATE_THRESHOLD, DEFAULT_RATE_WINDOW_SECONDS
from interlock.security.rate_limiter import SlidingRateLimiter


# =============================================================================
# SlidingRateLimiter Tests
# =============================================================================


class TestSlidingRateLimiterBasic:
    """Basic functionality tests for SlidingRateLimiter."""

    def test_allows_first_call(self) -> None:
        """First call on a channel is always allowed."""
        # Arrange
        limiter = SlidingRateLimiter()

        # Act
        allowed = limiter.allow("set_value_to_project", now=0.0)

        # Assert
        assert allowed is True
        assert limiter.get_count("set_value_to_project", now=0.0) == 1

    def test_allows_calls_up_to_threshold(self) -> None:
        """Calls 1..threshold within one window are allowed."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=10, window_seconds=1.0)

        # Act
        results = [limiter.allow("ch", now=i * 0.05) for i in range(10)]

        # Assert
        assert all(results)

    def test_denies_call_above_threshold(self) -> None:
        """The 11th call within 500 ms is denied with a threshold of 10."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=10, window_seconds=1.0)
        for i in range(10):
            limiter.allow("ch", now=i * 0.045)

        # Act
        allowed = limiter.allow("ch", now=0.5)

        # Assert
        assert allowed is False

    def test_denied_calls_are_counted(self) -> None:
        """A flood stays denied until the window rolls over."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=2, window_seconds=1.0)

        # Act
        results = [limiter.allow("ch", now=0.1 * i) for i in range(5)]

        # Assert
        assert results == [True, True, False, False, False]
        assert limiter.get_count("ch", now=0.45) == 5

    def test_tracks_channels_independently(self) -> None:
        """One channel hitting its limit does not affect another."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=1)
        limiter.allow("a", now=0.0)

        # Act
        a_allowed = limiter.allow("a", now=0.1)
        b_allowed = limiter.allow("b", now=0.1)

        # Assert
        assert a_allowed is False
        assert b_allowed is True
        assert limiter.active_channels == 2


class TestSlidingRateLimiterWindow:
    """Window start and restart rules."""

    def test_window_restarts_after_elapsed(self) -> None:
        """First call after the window has elapsed starts a fresh window."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=2, window_seconds=1.0)
        for _ in range(3):
            limiter.allow("ch", now=0.0)

        # Act
        allowed = limiter.allow("ch", now=1.01)

        # Assert
        assert allowed is True
        assert limiter.get_count("ch", now=1.01) == 1

    def test_call_exactly_at_window_end_belongs_to_current_window(self) -> None:
        """now - window_start == window_seconds does not restart the window."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=1, window_seconds=1.0)
        limiter.allow("ch", now=0.0)

        # Act
        allowed = limiter.allow("ch", now=1.0)

        # Assert
        assert allowed is False

    def test_get_count_zero_for_expired_window(self) -> None:
        """get_count reports 0 once the window is over, without recording."""
        # Arrange
        limiter = SlidingRateLimiter(window_seconds=1.0)
        limiter.allow("ch", now=0.0)

        # Act
        count = limiter.get_count("ch", now=5.0)

        # Assert
        assert count == 0
        assert limiter.get_count("ch", now=0.5) == 1

    def test_uses_monotonic_clock_by_default(self) -> None:
        """Without an explicit timestamp, allow() uses the monotonic clock."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=1, window_seconds=60.0)

        # Act
        first = limiter.allow("ch")
        second = limiter.allow("ch")

        # Assert
        assert first is True
        assert second is False


class TestSlidingRateLimiterConfigure:
    """Per-channel limits."""

    def test_unconfigured_channel_uses_defaults(self) -> None:
        """Defaults match the anti-cheat limits."""
        # Act
        limiter = SlidingRateLimiter()

        # Assert
        assert limiter.threshold_for("any") == DEFAULT_RATE_THRESHOLD
        assert limiter.window_seconds == DEFAULT_RATE_WINDOW_SECONDS

    def test_configure_overrides_threshold(self) -> None:
        """configure() sets a channel-specific threshold."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=10)

        # Act
        limiter.configure("strict", threshold=1)

        # Assert
        assert limiter.threshold_for("strict") == 1
        assert limiter.threshold_for("other") == 10

    @pytest.mark.parametrize("kwargs", [{"threshold": 0}, {"window_seconds": 0}, {"window_seconds": -1.0}])
    def test_configure_rejects_invalid_limits(self, kwargs: dict) -> None:
        """Non-positive thresholds and windows are rejected."""
        # Arrange
        limiter = SlidingRateLimiter()

        # Act / Assert
        with pytest.raises(ValueError):
            limiter.configure("ch", **kwargs)

    def test_configure_keeps_window_state(self) -> None:
        """Reconfiguring a channel does not reset its counter."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=5)
        limiter.allow("ch", now=0.0)
        limiter.allow("ch", now=0.0)

        # Act
        limiter.configure("ch", threshold=2)

        # Assert
        assert limiter.allow("ch", now=0.1) is False

    def test_reset_and_clear(self) -> None:
        """reset() drops one channel, clear() drops all."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=1)
        limiter.allow("a", now=0.0)
        limiter.allow("b", now=0.0)

        # Act
        limiter.reset("a")

        # Assert
        assert limiter.allow("a", now=0.1) is True
        limiter.clear()
        assert limiter.active_channels == 0


class TestSlidingRateLimiterThreads:
    """Concurrent calls from worker threads."""

    def test_exact_count_under_contention(self) -> None:
        """Exactly threshold calls are allowed across threads."""
        # Arrange
        limiter = SlidingRateLimiter(default_threshold=50, window_seconds=60.0)
        results: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(20):
                allowed = limiter.allow("ch")
                with lock:
                    results.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(10)]

        # Act
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Assert
        assert len(results) == 200
        assert results.count(True) == 50
