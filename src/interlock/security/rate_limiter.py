"""Rate limiting for high-frequency state mutation.

Counts calls per channel within a fixed window that restarts on the first
call after the previous window has elapsed. Used to catch scripts that
hammer project data writes (e.g. a cheat loop calling
``setValueToProject`` thousands of times per second).

Window rule:
    A call at ``now`` starts a new window when no window exists for the
    channel, or when ``now - window_start > window_seconds``. A call exactly
    at ``window_start + window_seconds`` still belongs to the current
    window. Denied calls are counted too, so a flood stays denied until the
    window rolls over.

Usage:
    limiter = SlidingRateLimiter()
    limiter.configure("set_value_to_project", threshold=10, window_seconds=1.0)

    if not limiter.allow("set_value_to_project"):
        # Suppress the call
        ...
"""

from __future__ import annotations

__all__ = [
    "RateWindow",
    "SlidingRateLimiter",
]

import threading
from dataclasses import dataclass, field
from time import monotonic

from interlock.constants import DEFAULT_RATE_THRESHOLD, DEFAULT_RATE_WINDOW_SECONDS


@dataclass(slots=True)
class RateWindow:
    """Window state for one channel. Mutated only by the limiter."""

    window_start: float
    count: int = 0


@dataclass(frozen=True, slots=True)
class _ChannelLimits:
    threshold: int
    window_seconds: float


@dataclass(slots=True)
class SlidingRateLimiter:
    """Per-channel call counter with a restartable fixed window.

    Thread-safety: window state is guarded by a lock, so wrapped operations
    may be called from worker threads as well as from the event loop.

    Attributes:
        window_seconds: Default window duration.
        default_threshold: Default max calls per window.
    """

    window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS
    default_threshold: int = DEFAULT_RATE_THRESHOLD

    _limits: dict[str, _ChannelLimits] = field(default_factory=dict)
    _windows: dict[str, RateWindow] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def configure(
        self,
        channel: str,
        *,
        threshold: int | None = None,
        window_seconds: float | None = None,
    ) -> None:
        """Set limits for one channel.

        Unspecified values fall back to the limiter defaults. Existing window
        state for the channel is kept.

        Raises:
            ValueError: If threshold < 1 or window_seconds <= 0.
        """
        limits = self._limits_for(channel)
        new_threshold = limits.threshold if threshold is None else threshold
        new_window = limits.window_seconds if window_seconds is None else window_seconds
        if new_threshold < 1:
            raise ValueError(f"threshold must be at least 1, got {new_threshold}")
        if new_window <= 0:
            raise ValueError(f"window_seconds must be positive, got {new_window}")
        with self._lock:
            self._limits[channel] = _ChannelLimits(new_threshold, new_window)

    def _limits_for(self, channel: str) -> _ChannelLimits:
        limits = self._limits.get(channel)
        if limits is not None:
            return limits
        return _ChannelLimits(self.default_threshold, self.window_seconds)

    def allow(self, channel: str, now: float | None = None) -> bool:
        """Record a call on a channel and report whether it is within limits.

        Args:
            channel: Bucket identifier (usually the operation name).
            now: Monotonic timestamp in seconds. Defaults to ``monotonic()``.

        Returns:
            True if the call is among the first ``threshold`` calls of the
            current window.
        """
        if now is None:
            now = monotonic()
        limits = self._limits_for(channel)

        with self._lock:
            window = self._windows.get(channel)
            if window is None or now - window.window_start > limits.window_seconds:
                window = RateWindow(window_start=now)
                self._windows[channel] = window
            window.count += 1
            return window.count <= limits.threshold

    def get_count(self, channel: str, now: float | None = None) -> int:
        """Calls counted in the channel's current window, without recording one."""
        if now is None:
            now = monotonic()
        limits = self._limits_for(channel)
        with self._lock:
            window = self._windows.get(channel)
            if window is None or now - window.window_start > limits.window_seconds:
                return 0
            return window.count

    def threshold_for(self, channel: str) -> int:
        """Effective threshold for a channel."""
        return self._limits_for(channel).threshold

    def reset(self, channel: str) -> None:
        """Drop window state for one channel."""
        with self._lock:
            self._windows.pop(channel, None)

    def clear(self) -> None:
        """Drop all window state. Channel limits are kept."""
        with self._lock:
            self._windows.clear()

    @property
    def active_channels(self) -> int:
        """Number of channels with window state."""
        return len(self._windows)
