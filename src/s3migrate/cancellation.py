"""
Run-scoped cancellation for migrations.

A single CancellationToken is shared by everything that can block during a
run: the rate limiter, the workers waiting on the record queue and the
per-record store I/O. Once cancel() is called every blocked wait unblocks
with MigrationCancelled (or the subclass given by the caller).

Example:
    >>> token = CancellationToken()
    >>> exists = await token.run(store.exists(key))
    >>> token.cancel()
    >>> await token.run(store.exists(key))  # raises MigrationCancelled
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from s3migrate.exceptions import MigrationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    Cancellation signal shared by all tasks of one migration run.

    The token never interrupts code on its own; callers route their waits
    through run() or sleep() so that a cancel() wakes them up.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Fire the signal. Idempotent."""
        if not self._event.is_set():
            logger.info("Migration cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until the signal fires."""
        await self._event.wait()

    def raise_if_cancelled(
        self,
        error: Callable[[], MigrationCancelled] = MigrationCancelled,
    ) -> None:
        if self._event.is_set():
            raise error()

    async def run(
        self,
        awaitable: Awaitable[T],
        error: Callable[[], MigrationCancelled] = MigrationCancelled,
    ) -> T:
        """
        Await `awaitable` unless the signal fires first.

        When the signal wins, the inner task is cancelled and awaited before
        `error()` is raised, so no work is left running in the background.

        Args:
            awaitable: Coroutine or future to race against the signal.
            error: Factory for the exception raised on cancellation.

        Returns:
            The awaitable's result.

        Raises:
            MigrationCancelled: If the signal fired before completion.
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise error()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise error()

    async def sleep(
        self,
        delay: float,
        error: Callable[[], MigrationCancelled] = MigrationCancelled,
    ) -> None:
        """Sleep for `delay` seconds, raising `error()` if cancelled meanwhile."""
        if delay <= 0:
            self.raise_if_cancelled(error)
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            return
        raise error()


__all__ = ["CancellationToken"]
