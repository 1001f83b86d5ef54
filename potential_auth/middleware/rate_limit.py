"""
In-memory rate limiting for token issuance and verification.

Counts live in process memory, so limits apply per worker.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime, timedelta

from fastapi import status

from potential_auth.errors import ApiError


class RateLimiter:
    """
    Sliding-window rate limiter.

    Keys are namespaced strings such as "send:email:a@x.com" or "verify:ip:1.2.3.4".
    """

    def __init__(self):
        # key -> timestamps of accepted requests
        self._requests: dict[str, list[datetime]] = defaultdict(list)

    def check_rate_limit(self, key: str, max_requests: int, window_minutes: int = 60) -> bool:
        """
        Record a request for key if it is under the limit.

        Args:
            key: Identifier to rate limit
            max_requests: Maximum requests allowed in the window
            window_minutes: Time window in minutes (default 60)

        Returns:
            True if under the limit, False if limit exceeded
        """
        now = datetime.now(UTC)
        cutoff = now - timedelta(minutes=window_minutes)

        recent = [ts for ts in self._requests[key] if ts > cutoff]
        if len(recent) >= max_requests:
            self._requests[key] = recent
            return False

        recent.append(now)
        self._requests[key] = recent
        return True

    def enforce(self, key: str, max_requests: int, window_minutes: int, message: str) -> None:
        """
        Same as check_rate_limit, but raise a 429 when over the limit.

        Raises:
            ApiError: 429 with a Retry-After header of one window
        """
        if not self.check_rate_limit(key, max_requests=max_requests, window_minutes=window_minutes):
            raise ApiError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                message,
                code="rate_limited",
                headers={"Retry-After": str(window_minutes * 60)},
            )

    def reset(self, key: str) -> None:
        self._requests.pop(key, None)

    def cleanup_old_entries(self, max_age_hours: int = 2):
        """
        Drop timestamps older than max_age_hours and forget empty keys.
        """
        cutoff = datetime.now(UTC) - timedelta(hours=max_age_hours)
        for key in list(self._requests.keys()):
            self._requests[key] = [ts for ts in self._requests[key] if ts > cutoff]
            if not self._requests[key]:
                del self._requests[key]


# Global rate limiter instance
rate_limiter = RateLimiter()
