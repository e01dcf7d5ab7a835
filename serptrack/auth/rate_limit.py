"""
Fixed-Window Rate Limiter

In-process counters keyed by token (usually the user id). Each key gets
``limit`` requests per window; the window restarts once it expires.
Expired windows are pruned during checks, at most once per interval.
"""

import time
from typing import Any, Callable, Dict


class RateLimiter:
    """
    Fixed-window rate limiter.

    Usage:
        limiter = RateLimiter(interval=60)
        outcome = limiter.check(str(user.id), limit=30)
        if not outcome["success"]:
            ...
    """

    def __init__(self, interval: float = 60.0, clock: Callable[[], float] = time.time):
        self.interval = interval
        self._clock = clock
        self._windows: Dict[str, Dict[str, float]] = {}
        self._last_cleanup = clock()

    def check(self, token: str, limit: int) -> Dict[str, Any]:
        """
        Count one request for the token.

        Returns:
            {success, limit, remaining, reset, now}; reset is the epoch
            second at which the current window ends
        """
        now = self._clock()
        if now - self._last_cleanup >= self.interval:
            self.cleanup()

        window = self._windows.get(token)

        if window is None or window["reset"] < now:
            window = {"count": 0, "reset": now + self.interval}
            self._windows[token] = window

        window["count"] += 1
        count = window["count"]

        return {
            "success": count <= limit,
            "limit": limit,
            "remaining": max(0, limit - count),
            "reset": window["reset"],
            "now": now,
        }

    def cleanup(self) -> int:
        """Drop expired windows; returns how many were removed."""
        now = self._clock()
        self._last_cleanup = now
        expired = [token for token, window in self._windows.items() if window["reset"] < now]
        for token in expired:
            del self._windows[token]
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()


check_rank_limiter = RateLimiter(interval=60)
