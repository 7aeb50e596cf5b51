"""
Rate Limit Module

In-memory sliding-window limiter backing the per-key rate_limit_rpm /
rate_limit_rpd settings of API keys.
"""

import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

MINUTE_SECONDS = 60
DAY_SECONDS = 86400


class InMemoryRateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    State is per process; with several workers each enforces its own window.
    """

    def __init__(self) -> None:
        # Structure: {key: [timestamp, ...]}
        self._requests: dict[str, list[float]] = {}

    def _window(self, key: str, window_seconds: int, now: float) -> list[float]:
        window_start = now - window_seconds
        entries = [ts for ts in self._requests.get(key, []) if ts > window_start]
        self._requests[key] = entries
        return entries

    def check(
        self, key: str, max_requests: int, window_seconds: int, now: Optional[float] = None
    ) -> tuple[bool, int]:
        """
        Check a window without recording anything.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        now = time.time() if now is None else now
        entries = self._window(key, window_seconds, now)
        if len(entries) < max_requests:
            return True, 0
        retry_after = int(min(entries) + window_seconds - now) + 1
        return False, max(1, retry_after)

    def hit(self, key: str, now: Optional[float] = None) -> None:
        """Record one request under key."""
        self._requests.setdefault(key, []).append(time.time() if now is None else now)

    def cleanup_expired(self, max_age_seconds: int = DAY_SECONDS) -> None:
        """Remove keys whose newest entry is older than max_age_seconds."""
        cutoff = time.time() - max_age_seconds
        self._requests = {
            k: v for k, v in self._requests.items() if v and max(v) > cutoff
        }


class ApiKeyRateLimiter:
    """
    Per-key RPM / RPD enforcement

    Both windows are checked before either is recorded, so a request rejected
    by the daily budget does not consume the minute budget.
    """

    def __init__(self, limiter: Optional[InMemoryRateLimiter] = None) -> None:
        self._limiter = limiter or InMemoryRateLimiter()

    def acquire(
        self,
        api_key_id: int,
        rpm: Optional[int],
        rpd: Optional[int],
        now: Optional[float] = None,
    ) -> tuple[bool, Optional[str], int]:
        """
        Try to admit one request for an API key.

        Returns:
            Tuple of (is_allowed, exceeded_limit_label, retry_after_seconds)
        """
        now = time.time() if now is None else now
        windows = []
        if rpm:
            windows.append((f"apikey:{api_key_id}:rpm", rpm, MINUTE_SECONDS, f"{rpm}/minute"))
        if rpd:
            windows.append((f"apikey:{api_key_id}:rpd", rpd, DAY_SECONDS, f"{rpd}/day"))

        for key, limit, window, label in windows:
            allowed, retry_after = self._limiter.check(key, limit, window, now=now)
            if not allowed:
                logger.warning(
                    "Rate limit exceeded: api_key_id=%s limit=%s", api_key_id, label
                )
                return False, label, retry_after

        for key, _limit, _window, _label in windows:
            self._limiter.hit(key, now=now)
        return True, None, 0

    def cleanup(self) -> None:
        self._limiter.cleanup_expired()
