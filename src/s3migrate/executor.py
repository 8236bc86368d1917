"""
Copy executor: takes one record from queued to a terminal state.

For every record the steps run strictly in this order:

1. take a rate-limit token
2. check the source; absent -> SKIPPED
3. check the destination; present -> ALREADY_PRESENT (keys only, no
   content comparison)
4. stat the source size and run the copy strategy (dry-run simulates it)
5. COPIED

Any failure along the way is logged with the storage key and turns the
record ERRORED; process() never raises for per-record problems.
"""

from __future__ import annotations

import logging
from typing import Any

from s3migrate.cancellation import CancellationToken
from s3migrate.exceptions import MigrationCancelled
from s3migrate.models import (
    MigrationParameters,
    MigrationRecord,
    RecordOutcome,
    RecordResult,
    RecordState,
)
from s3migrate.observability import (
    ATTR_COPY_STRATEGY,
    ATTR_DRY_RUN,
    ATTR_OBJECT_KEY,
    ATTR_OBJECT_SIZE,
    ATTR_OUTCOME,
    Tracer,
    create_tracer,
)
from s3migrate.progress import ProgressFactory, null_progress
from s3migrate.rate_limiter import RateLimiter
from s3migrate.strategies import CopyStrategy, select_copy_strategy

logger = logging.getLogger(__name__)


class CopyExecutor:
    """
    Decides and performs the migration of single records.

    One executor is shared by all workers of a run; it keeps no per-record
    state between calls.

    Attributes:
        _params: Run configuration.
        _rate_limiter: Shared token bucket.
        _strategy: Strategy used for the transfer step.
        _progress_factory: Creates one progress observer per copied record.
        _cancellation: Run-scoped cancellation token.
    """

    def __init__(
        self,
        params: MigrationParameters,
        *,
        rate_limiter: RateLimiter | None = None,
        strategy: CopyStrategy | None = None,
        progress_factory: ProgressFactory | None = None,
        cancellation: CancellationToken | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        self._params = params
        self._cancellation = cancellation or CancellationToken()
        self._rate_limiter = rate_limiter or RateLimiter(
            params.rate_limit,
            cancellation=self._cancellation,
        )
        self._strategy = strategy or select_copy_strategy(params)
        self._progress_factory = progress_factory or null_progress
        self._tracer = tracer or create_tracer(__name__, enable_tracing=False)

    @property
    def strategy(self) -> CopyStrategy:
        return self._strategy

    async def process(self, record: MigrationRecord) -> RecordResult:
        """
        Migrate one record.

        Args:
            record: Record taken from the work queue.

        Returns:
            RecordResult with exactly one terminal outcome.
        """
        key = record.storage_key
        with self._tracer.span(
            "s3migrate.executor.process",
            {
                ATTR_OBJECT_KEY: key,
                ATTR_DRY_RUN: self._params.dry_run,
                ATTR_COPY_STRATEGY: self._strategy.name,
            },
        ) as span:
            result = await self._process(key, span)
            if span is not None:
                span.set_attribute(ATTR_OUTCOME, result.outcome.value)
            return result

    async def _process(self, key: str, span: Any) -> RecordResult:
        params = self._params
        state = RecordState.QUEUED
        try:
            await self._rate_limiter.acquire()
            state = RecordState.RATE_LIMITED

            if not await self._cancellation.run(params.source.exists(key)):
                logger.info("Object %s not found in source bucket", key)
                return RecordResult(key, RecordOutcome.SKIPPED, RecordState.SKIPPED)
            state = RecordState.SOURCE_CHECKED

            if await self._cancellation.run(params.destination.exists(key)):
                logger.info(
                    "Object %s already exists in destination bucket. Skipping copy.",
                    key,
                )
                return RecordResult(
                    key,
                    RecordOutcome.ALREADY_PRESENT,
                    RecordState.ALREADY_PRESENT,
                )
            state = RecordState.DEST_CHECKED

            size = await self._cancellation.run(params.source.stat_size(key))
            if span is not None:
                span.set_attribute(ATTR_OBJECT_SIZE, size)
            state = RecordState.COPYING
            written = await self._cancellation.run(self._copy(key, size))

            if params.dry_run:
                logger.info("Dry Run: Would copy object %s from source to destination", key)
            else:
                logger.debug("Copied object %s (%d bytes)", key, written)
            return RecordResult(
                key,
                RecordOutcome.COPIED,
                RecordState.COPIED,
                bytes_copied=written,
            )
        except MigrationCancelled as e:
            logger.error("Object %s interrupted in state %s: %s", key, state.value, e)
            return self._errored(key, state, e)
        except Exception as e:
            logger.error(
                "Error processing object %s in state %s: %s",
                key,
                state.value,
                e,
                extra={"storage_key": key, "state": state.value},
            )
            return self._errored(key, state, e)

    async def _copy(self, key: str, size: int) -> int:
        progress = self._progress_factory(key, size)
        try:
            return await self._strategy.copy(
                key,
                size,
                self._params.source,
                self._params.destination,
                progress,
            )
        finally:
            progress.close()

    @staticmethod
    def _errored(key: str, state: RecordState, error: BaseException) -> RecordResult:
        return RecordResult(
            key,
            RecordOutcome.ERRORED,
            RecordState.ERRORED,
            failed_in=state,
            error=str(error),
        )


__all__ = ["CopyExecutor"]
