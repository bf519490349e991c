import math
import time
from collections import defaultdict, deque

from config import settings

WINDOW_SECONDS = 60


class RateLimiter:
    """Sliding one-minute window per user id."""

    def __init__(self, limit: int | None = None) -> None:
        self._limit = limit
        self._windows: dict[str, deque[float]] = defaultdict(deque)

    @property
    def limit(self) -> int:
        return self._limit if self._limit is not None else settings.RATE_LIMIT_PER_MINUTE

    def _purge(self, key: str, now: float) -> deque[float]:
        window = self._windows[key]
        while window and window[0] <= now - WINDOW_SECONDS:
            window.popleft()
        return window

    def is_allowed(self, key: str) -> bool:
        now = time.monotonic()
        window = self._purge(key, now)

        if len(window) >= self.limit:
            return False

        window.append(now)
        return True

    def retry_after(self, key: str) -> int:
        """Whole seconds until `key` may act again, 0 when it already can."""
        now = time.monotonic()
        window = self._purge(key, now)
        if len(window) < self.limit:
            return 0
        return max(1, math.ceil(window[0] + WINDOW_SECONDS - now))

    def reset(self) -> None:
        self._windows.clear()


rate_limiter = RateLimiter()
