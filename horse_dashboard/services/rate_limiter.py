"""
Dashboard Rate Limiter — in-memory sliding window, keyed by caller IP.

State is per process and resets on restart.
"""

from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Sliding one-minute window per key.

    Keys with no hit inside the window are swept at most once per window, so
    one-off callers don't accumulate.
    """

    def __init__(self) -> None:
        self._hits: dict[str, list[float]] = {}
        self._last_sweep = time.monotonic()

    def check(self, key: str, rpm_limit: int) -> bool:
        """Record a hit for ``key``. Returns False once the limit is reached."""
        now = time.monotonic()
        cutoff = now - _WINDOW_SECONDS
        self._sweep(now)

        recent = [t for t in self._hits.get(key, ()) if t > cutoff]
        if len(recent) >= rpm_limit:
            if recent:
                self._hits[key] = recent
            else:
                self._hits.pop(key, None)
            logger.warning("Dashboard rate limit hit: %s (%d RPM)", key, rpm_limit)
            return False

        recent.append(now)
        self._hits[key] = recent
        return True

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < _WINDOW_SECONDS:
            return
        self._last_sweep = now
        cutoff = now - _WINDOW_SECONDS
        # Hits are appended in time order, so the last one is the newest
        stale = [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for k in stale:
            del self._hits[k]
        if stale:
            logger.debug("Rate limiter swept %d idle keys", len(stale))

    def reset(self) -> None:
        """Forget every key."""
        self._hits.clear()


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the process-wide limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter
