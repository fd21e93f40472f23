"""Fixed-window request rate limiting."""

import logging
import math
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone

from pydantic import BaseModel

from wagr.rate_limit.stores import RateLimitStore

logger = logging.getLogger(__name__)


class RateLimitResult(BaseModel):
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    # Whole seconds until the window resets, at least 1
    retry_after_seconds: int


class RateLimiter:
    """
    Counts requests per (identifier, endpoint) in fixed windows.

    Windows are aligned to multiples of the window length since the epoch,
    so every caller sharing a store agrees on boundaries. If the store
    fails the request is allowed (fail open).
    """

    def __init__(
        self,
        store: RateLimitStore,
        clock: Callable[[], float] = time.time,
        purge_interval_seconds: int = 300,
        retention_seconds: int = 3600,
    ) -> None:
        self.store = store
        self.clock = clock
        self.purge_interval_seconds = purge_interval_seconds
        self.retention_seconds = retention_seconds
        self._last_purge = clock()

    def check(
        self,
        identifier: str,
        endpoint: str,
        limit: int,
        window_seconds: int,
    ) -> RateLimitResult:
        now = self.clock()
        window_start = int(now // window_seconds) * window_seconds
        window_end = window_start + window_seconds
        reset_at = datetime.fromtimestamp(window_end, tz=timezone.utc)
        retry_after = max(1, math.ceil(window_end - now))

        self._maybe_purge(now)

        try:
            count = self.store.consume(identifier, endpoint, window_start, limit)
        except Exception as e:
            logger.error(f"Rate limit check failed for {identifier} on {endpoint}: {e}")
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit,
                reset_at=reset_at,
                retry_after_seconds=retry_after,
            )

        if count is None:
            logger.info(f"Rate limit exceeded: {identifier} on {endpoint}")
            return RateLimitResult(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_at=reset_at,
                retry_after_seconds=retry_after,
            )

        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=limit - count,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def purge_expired(self) -> int:
        """Drop windows older than the retention period."""
        cutoff = int(self.clock()) - self.retention_seconds
        removed = self.store.purge_before(cutoff)
        if removed:
            logger.debug(f"Purged {removed} expired rate limit windows")
        return removed

    def _maybe_purge(self, now: float) -> None:
        if now - self._last_purge < self.purge_interval_seconds:
            return
        self._last_purge = now
        try:
            self.purge_expired()
        except Exception as e:
            logger.warning(f"Rate limit cleanup failed: {e}")


def get_client_ip(headers: Mapping[str, str], fallback: str | None = None) -> str:
    """Resolve the client address behind proxies and load balancers."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return fallback or "unknown"
