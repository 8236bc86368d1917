"""
Copy strategies: how one object's bytes reach the destination bucket.

All strategies share the progress contract of s3migrate.progress, so a
caller cannot tell from the progress stream which strategy ran:

- StreamCopyStrategy: reads from the source and writes to the destination
  through this process, reporting each chunk as it is read.
- ServerSideCopyStrategy: asks the destination to copy from the source
  bucket. Progress is approximated while the copy runs and completed once
  the object is visible in the destination.
- DryRunCopyStrategy: writes nothing and drives progress to completion
  over a short simulated interval.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from s3migrate.exceptions import CopyError
from s3migrate.models import DEFAULT_CHUNK_SIZE, CopyMode, MigrationParameters
from s3migrate.progress import ProgressObserver
from s3migrate.stores.interface import ObjectStore

logger = logging.getLogger(__name__)

SIMULATED_STEPS = 100


class CopyStrategy(ABC):
    """Transfers one object from a source store to a destination store."""

    name: str = "copy"

    @abstractmethod
    async def copy(
        self,
        key: str,
        size: int,
        source: ObjectStore,
        destination: ObjectStore,
        progress: ProgressObserver,
    ) -> int:
        """
        Copy the object stored under `key`.

        Args:
            key: Storage key, identical in both stores.
            size: Object size in bytes, as stat'ed on the source.
            source: Store holding the object.
            destination: Store receiving the object.
            progress: Observer receiving byte-count deltas up to `size`.

        Returns:
            Number of bytes written to the destination.

        Raises:
            CopyError: If the transfer cannot be completed.
            ObjectStoreError: If a store operation fails.
        """


class StreamCopyStrategy(CopyStrategy):
    """Streams bytes from source to destination in `chunk_size` reads."""

    name = "stream"

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._chunk_size = chunk_size

    async def copy(
        self,
        key: str,
        size: int,
        source: ObjectStore,
        destination: ObjectStore,
        progress: ProgressObserver,
    ) -> int:
        transferred = 0

        async def chunks() -> AsyncIterator[bytes]:
            nonlocal transferred
            async for chunk in source.read_stream(key, self._chunk_size):
                transferred += len(chunk)
                progress.update(len(chunk))
                yield chunk

        await destination.write_stream(key, chunks(), size)

        if transferred != size:
            raise CopyError(key, f"read {transferred} bytes, expected {size}")
        return transferred


class ServerSideCopyStrategy(CopyStrategy):
    """
    Issues a server-side copy and approximates its progress.

    The store reports no byte counts for a server-side copy, so while it
    runs progress advances by 1% per poll, capped below the object size.
    After the copy call returns, the destination is polled until the object
    exists; only then is progress completed.
    """

    name = "server_side"

    def __init__(self, poll_interval: float = 0.1, timeout: float = 60.0) -> None:
        self._poll_interval = poll_interval
        self._timeout = timeout

    async def copy(
        self,
        key: str,
        size: int,
        source: ObjectStore,
        destination: ObjectStore,
        progress: ProgressObserver,
    ) -> int:
        step = max(1, size // SIMULATED_STEPS)
        ceiling = max(0, size - 1)
        reported = 0

        copy_task = asyncio.ensure_future(destination.server_side_copy(key, source.bucket, key))
        try:
            while not copy_task.done():
                if reported + step <= ceiling:
                    progress.update(step)
                    reported += step
                await asyncio.wait({copy_task}, timeout=self._poll_interval)
            copy_task.result()
        finally:
            if not copy_task.done():
                copy_task.cancel()
                await asyncio.gather(copy_task, return_exceptions=True)

        deadline = time.monotonic() + self._timeout
        while not await destination.exists(key):
            if time.monotonic() >= deadline:
                raise CopyError(
                    key,
                    f"object not visible in {destination.bucket} after {self._timeout:.1f}s",
                )
            await asyncio.sleep(self._poll_interval)

        progress.update(size - reported)
        return size


class DryRunCopyStrategy(CopyStrategy):
    """Writes nothing; fills progress in equal steps over `duration` seconds."""

    name = "dry_run"

    def __init__(self, duration: float = 1.0) -> None:
        self._duration = duration

    async def copy(
        self,
        key: str,
        size: int,
        source: ObjectStore,
        destination: ObjectStore,
        progress: ProgressObserver,
    ) -> int:
        delay = self._duration / SIMULATED_STEPS
        reported = 0
        for i in range(1, SIMULATED_STEPS + 1):
            target = size * i // SIMULATED_STEPS
            if target > reported:
                progress.update(target - reported)
                reported = target
            if delay > 0:
                await asyncio.sleep(delay)
        logger.debug("Dry run: simulated copy of %s (%d bytes)", key, size)
        return 0


def select_copy_strategy(params: MigrationParameters) -> CopyStrategy:
    """
    Pick the strategy for a run.

    Dry-run always wins. CopyMode.SERVER_SIDE requires the destination to
    support server-side copies from the source; CopyMode.AUTO uses them
    when supported and streams otherwise.

    Raises:
        ValueError: If server-side copy is forced but unsupported.
    """
    if params.dry_run:
        return DryRunCopyStrategy(params.simulated_progress_seconds)

    server_side = ServerSideCopyStrategy(
        poll_interval=params.server_copy_poll_interval,
        timeout=params.server_copy_timeout,
    )
    supported = params.destination.supports_server_side_copy_from(params.source)

    if params.copy_mode is CopyMode.SERVER_SIDE:
        if not supported:
            raise ValueError(
                f"{params.destination.name} cannot server-side copy from {params.source.name}"
            )
        return server_side
    if params.copy_mode is CopyMode.AUTO and supported:
        return server_side
    return StreamCopyStrategy(params.chunk_size)


__all__ = [
    "CopyStrategy",
    "StreamCopyStrategy",
    "ServerSideCopyStrategy",
    "DryRunCopyStrategy",
    "select_copy_strategy",
]
