"""Security primitives for interlock."""

from interlock.security.rate_limiter import RateWindow, SlidingRateLimiter

__all__ = [
    "RateWindow",
    "SlidingRateLimiter",
]
