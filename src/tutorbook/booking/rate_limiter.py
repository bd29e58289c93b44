"""Client-side double-submit guard. Not a security control."""

import time
from collections.abc import Callable


class RateLimiter:
    """Reject requests that arrive sooner than `min_interval_seconds` after the last accepted one."""

    def __init__(
        self,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds cannot be negative")
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._last_request: float | None = None

    def is_rate_limited(self) -> bool:
        return self.cooldown_remaining() > 0

    def track_request(self) -> None:
        self._last_request = self._clock()

    def try_acquire(self) -> bool:
        """Check and track in one step. Returns False when the request must be dropped."""
        if self.is_rate_limited():
            return False
        self.track_request()
        return True

    def cooldown_remaining(self) -> float:
        if self._last_request is None:
            return 0.0
        elapsed = self._clock() - self._last_request
        return max(0.0, self._min_interval - elapsed)

    def reset(self) -> None:
        self._last_request = None
