"""
Token bucket rate limiter shared by all migration workers.

The limiter gates object operations, not bytes: every record takes one
token right before its source existence check.

Example:
    >>> limiter = RateLimiter(rate=10)
    >>> await limiter.acquire()  # at most 10 acquisitions per second
"""

from __future__ import annotations

import asyncio
import logging
import time

from s3migrate.cancellation import CancellationToken
from s3migrate.exceptions import RateLimitCancelled

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket with refill rate `rate` tokens/second and capacity `burst`.

    A bucket starts full. Waiters are served one at a time in arrival order,
    so with burst 1 the number of acquisitions in any sliding one-second
    window never exceeds rate + 1.

    When `rate` is None or 0 the limiter is disabled and acquire() returns
    immediately.

    Attributes:
        _rate: Tokens added per second (None when disabled).
        _burst: Maximum tokens the bucket holds.
        _tokens: Current available tokens.
        _last_update: Monotonic time of the last refill.
        _lock: Serialises waiters.
    """

    def __init__(
        self,
        rate: float | None,
        *,
        burst: int = 1,
        cancellation: CancellationToken | None = None,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            rate: Operations per second, None or 0 for unlimited.
            burst: Bucket capacity (must be >= 1).
            cancellation: Token whose signal interrupts pending waits.

        Raises:
            ValueError: If rate is negative or burst < 1.
        """
        if rate is not None and rate < 0:
            raise ValueError(f"rate must be >= 0, got {rate}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")

        self._rate = float(rate) if rate else None
        self._burst = burst
        self._tokens = float(burst)
        self._last_update = time.monotonic()
        self._lock = asyncio.Lock()
        self._cancellation = cancellation or CancellationToken()

    @property
    def enabled(self) -> bool:
        return self._rate is not None

    @property
    def rate(self) -> float | None:
        return self._rate

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_update
        self._last_update = now
        assert self._rate is not None
        self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)

    async def acquire(self) -> None:
        """
        Take one token, waiting for the bucket to refill if it is empty.

        Raises:
            RateLimitCancelled: If the run is cancelled before a token
                becomes available.
        """
        if self._rate is None:
            return

        self._cancellation.raise_if_cancelled(RateLimitCancelled)
        await self._cancellation.run(self._lock.acquire(), RateLimitCancelled)
        try:
            self._cancellation.raise_if_cancelled(RateLimitCancelled)
            self._refill()
            if self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self._rate
                logger.debug("Rate limiter waiting %.3fs for a token", wait_time)
                await self._cancellation.sleep(wait_time, RateLimitCancelled)
                self._refill()
            self._tokens = max(0.0, self._tokens - 1.0)
        finally:
            self._lock.release()


__all__ = ["RateLimiter"]
