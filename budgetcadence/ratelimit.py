"""Rate limiting for calls to external services.

The limiter combines a sliding request budget (``requests_per_window`` per
``window_seconds``) with a fixed minimum spacing between consecutive calls.
Time comes from an injected clock so tests never sleep on the wall clock.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Optional, Protocol

from . import constants
from .schema import OverlayConfig

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"


class Clock(Protocol):
    """Source of monotonic time and sleeping."""

    def now(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Clock backed by ``time.monotonic`` and ``time.sleep``."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class RateLimiter:
    """Per-key request budget with minimum spacing between calls."""

    def __init__(
        self,
        requests_per_window: int = constants.AI_REQUESTS_PER_WINDOW,
        window_seconds: float = constants.AI_WINDOW_SECONDS,
        min_spacing_seconds: float = constants.AI_MIN_SPACING_SECONDS,
        clock: Optional[Clock] = None,
    ):
        """Initialize limiter.

        Args:
            requests_per_window: Calls allowed per key inside one window.
            window_seconds: Length of the sliding window.
            min_spacing_seconds: Minimum gap between two calls of one key.
            clock: Time source (defaults to SystemClock).
        """
        if requests_per_window < 1:
            raise ValueError("requests_per_window must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if min_spacing_seconds < 0:
            raise ValueError("min_spacing_seconds must not be negative")

        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.min_spacing_seconds = min_spacing_seconds
        self.clock = clock or SystemClock()
        self._calls: dict[str, deque[float]] = defaultdict(deque)

    @classmethod
    def from_config(cls, config: OverlayConfig, clock: Optional[Clock] = None) -> "RateLimiter":
        """Build a limiter from overlay configuration."""
        return cls(
            requests_per_window=config.requests_per_window,
            window_seconds=config.window_seconds,
            min_spacing_seconds=config.min_spacing_seconds,
            clock=clock,
        )

    def wait_time(self, key: str = DEFAULT_KEY) -> float:
        """Seconds until a call for ``key`` would be allowed (0 when allowed now)."""
        now = self.clock.now()
        calls = self._calls[key]
        while calls and now - calls[0] >= self.window_seconds:
            calls.popleft()

        wait = 0.0
        if len(calls) >= self.requests_per_window:
            wait = calls[0] + self.window_seconds - now
        if calls:
            wait = max(wait, calls[-1] + self.min_spacing_seconds - now)
        return max(0.0, wait)

    def try_acquire(self, key: str = DEFAULT_KEY) -> bool:
        """Record a call and return True if one is allowed right now."""
        if self.wait_time(key) > 0:
            return False
        self._calls[key].append(self.clock.now())
        return True

    def acquire(self, key: str = DEFAULT_KEY) -> None:
        """Block (through the clock) until a call is allowed, then record it."""
        while True:
            wait = self.wait_time(key)
            if wait <= 0:
                break
            logger.debug("Rate limit for '%s': waiting %.3fs", key, wait)
            self.clock.sleep(wait)
        self._calls[key].append(self.clock.now())
