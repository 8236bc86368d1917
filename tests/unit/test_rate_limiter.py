"""
Unit tests for RateLimiter and CancellationToken.

Tests cover:
- Disabled limiter behaviour
- Window bound on acquisitions
- Serialized waiters
- Cancellation of pending waits
"""

import asyncio
import time

import pytest

from s3migrate.cancellation import CancellationToken
from s3migrate.exceptions import MigrationCancelled, RateLimitCancelled
from s3migrate.rate_limiter import RateLimiter


class TestRateLimiter:
    """Tests for the token bucket."""

    @pytest.mark.parametrize("rate", [None, 0])
    @pytest.mark.asyncio
    async def test_disabled_limiter_never_waits(self, rate: float | None) -> None:
        """Test None and 0 disable the limiter."""
        limiter = RateLimiter(rate)
        assert limiter.enabled is False

        start = time.monotonic()
        for _ in range(1000):
            await limiter.acquire()
        assert time.monotonic() - start < 0.5

    def test_negative_rate_rejected(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(-1)

    def test_burst_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(10, burst=0)

    @pytest.mark.asyncio
    async def test_first_acquire_is_immediate(self) -> None:
        limiter = RateLimiter(1)
        start = time.monotonic()
        await limiter.acquire()
        assert time.monotonic() - start < 0.1

    @pytest.mark.asyncio
    async def test_acquisitions_are_spaced_by_rate(self) -> None:
        """Test N acquisitions at rate R take at least (N-1)/R seconds."""
        limiter = RateLimiter(50)
        start = time.monotonic()
        for _ in range(11):
            await limiter.acquire()
        elapsed = time.monotonic() - start
        assert elapsed >= 0.18

    @pytest.mark.asyncio
    async def test_concurrent_waiters_respect_window(self) -> None:
        """Test concurrent acquirers never exceed rate + 1 per second."""
        rate = 20
        limiter = RateLimiter(rate)
        stamps: list[float] = []

        async def worker() -> None:
            for _ in range(5):
                await limiter.acquire()
                stamps.append(time.monotonic())

        await asyncio.gather(*(worker() for _ in range(5)))

        stamps.sort()
        assert len(stamps) == 25
        for i, stamp in enumerate(stamps):
            in_window = [s for s in stamps[i:] if s - stamp < 1.0]
            assert len(in_window) <= rate + 1

    @pytest.mark.asyncio
    async def test_cancel_interrupts_sleeping_waiter(self) -> None:
        """Test a wait for a token ends with RateLimitCancelled."""
        token = CancellationToken()
        limiter = RateLimiter(0.5, cancellation=token)
        await limiter.acquire()

        waiter = asyncio.create_task(limiter.acquire())
        await asyncio.sleep(0.05)
        token.cancel()

        with pytest.raises(RateLimitCancelled):
            await asyncio.wait_for(waiter, timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancel_interrupts_queued_waiters(self) -> None:
        """Test waiters blocked on the lock are released too."""
        token = CancellationToken()
        limiter = RateLimiter(0.5, cancellation=token)
        await limiter.acquire()

        waiters = [asyncio.create_task(limiter.acquire()) for _ in range(3)]
        await asyncio.sleep(0.05)
        token.cancel()

        results = await asyncio.wait_for(
            asyncio.gather(*waiters, return_exceptions=True),
            timeout=1.0,
        )
        assert all(isinstance(r, RateLimitCancelled) for r in results)

    @pytest.mark.asyncio
    async def test_acquire_after_cancel_fails_fast(self) -> None:
        token = CancellationToken()
        limiter = RateLimiter(100, cancellation=token)
        token.cancel()
        with pytest.raises(RateLimitCancelled):
            await limiter.acquire()


class TestCancellationToken:
    """Tests for CancellationToken."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self) -> None:
        token = CancellationToken()

        async def answer() -> int:
            return 42

        assert await token.run(answer()) == 42

    @pytest.mark.asyncio
    async def test_run_propagates_errors(self) -> None:
        token = CancellationToken()

        async def boom() -> None:
            raise KeyError("x")

        with pytest.raises(KeyError):
            await token.run(boom())

    @pytest.mark.asyncio
    async def test_cancel_interrupts_run(self) -> None:
        """Test cancel() wakes a blocked run() and cancels the inner task."""
        token = CancellationToken()
        started = asyncio.Event()
        inner_cancelled = False

        async def blocker() -> None:
            nonlocal inner_cancelled
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                inner_cancelled = True
                raise

        task = asyncio.create_task(token.run(blocker()))
        await started.wait()
        token.cancel()

        with pytest.raises(MigrationCancelled):
            await asyncio.wait_for(task, timeout=1.0)
        assert inner_cancelled

    @pytest.mark.asyncio
    async def test_run_after_cancel_raises_custom_error(self) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RateLimitCancelled):
            await token.run(asyncio.sleep(0), RateLimitCancelled)

    @pytest.mark.asyncio
    async def test_sleep_completes_without_cancel(self) -> None:
        token = CancellationToken()
        await token.sleep(0.01)
        assert not token.cancelled

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self) -> None:
        token = CancellationToken()
        token.cancel()
        token.cancel()
        assert token.cancelled
        await asyncio.wait_for(token.wait(), timeout=0.1)
