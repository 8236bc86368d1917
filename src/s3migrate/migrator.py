"""
ObjectMigrator: the worker pool driving a migration run.

A run has three kinds of tasks sharing one bounded asyncio.Queue:

- the feeder, draining the database cursor into the queue
- N workers, each taking one record at a time through the CopyExecutor
- the caller, which waits for the feeder, then closes the queue with one
  sentinel per worker and joins the pool

The queue holds at most N records and at most N are being processed, so
memory stays bounded regardless of the collection size.

Example:
    >>> params = MigrationParameters(
    ...     source=source_store,
    ...     destination=dest_store,
    ...     collection=collection,
    ...     concurrency=8,
    ...     rate_limit=50,
    ... )
    >>> migrator = ObjectMigrator(params)
    >>> report = await migrator.run()
    >>> print(report.copied, report.errors)
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any

from s3migrate.cancellation import CancellationToken
from s3migrate.exceptions import MigrationCancelled, QueryError, RecordDecodeError
from s3migrate.executor import CopyExecutor
from s3migrate.feeder import RecordFeeder
from s3migrate.metrics import MigrationMetrics
from s3migrate.models import MigrationParameters, MigrationRecord, MigrationReport
from s3migrate.observability import (
    ATTR_CONCURRENCY,
    ATTR_DEST_BUCKET,
    ATTR_DRY_RUN,
    ATTR_RATE_LIMIT,
    ATTR_SOURCE_BUCKET,
    ATTR_TOTAL_OBJECTS,
    Tracer,
    create_tracer,
)
from s3migrate.progress import ProgressFactory, null_progress
from s3migrate.rate_limiter import RateLimiter
from s3migrate.stats import MigrationStatistics

logger = logging.getLogger(__name__)

# Queue item telling a worker that no more records will arrive
_SENTINEL: Any = object()


class ObjectMigrator:
    """
    Runs one migration described by MigrationParameters.

    An instance runs at most once; cancel() may be called from a signal
    handler or another task at any time.

    Attributes:
        _params: Run configuration.
        _progress_factory: Per-record progress observers.
        _tracer: Tracer for run and record spans.
        _metrics: Optional OpenTelemetry metrics.
        _token: Cancellation token shared by every task of the run.
        _stats: Outcome counters.
    """

    def __init__(
        self,
        params: MigrationParameters,
        *,
        progress_factory: ProgressFactory | None = None,
        tracer: Tracer | None = None,
        metrics: MigrationMetrics | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._params = params
        self._progress_factory = progress_factory or null_progress
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._metrics = metrics
        self._token = CancellationToken()
        self._stats = MigrationStatistics()
        self._started = False
        self._cursor_error: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    @property
    def statistics(self) -> MigrationStatistics:
        """Live counters; safe to snapshot while the run is in progress."""
        return self._stats

    def cancel(self) -> None:
        """
        Stop the run.

        Blocked rate-limit waits and in-flight store calls fail with
        MigrationCancelled and their records are counted as errors.
        Records still waiting in the queue are never dequeued or counted.
        """
        self._token.cancel()

    async def run(self) -> MigrationReport:
        """
        Execute the migration.

        Returns:
            MigrationReport for the run. `cancelled` is set if cancel()
            was called before the pool drained. `cursor_error` is set if
            the cursor failed mid-run; records already queued are still
            processed.

        Raises:
            QueryError: If counting the records or opening the cursor fails.
            RuntimeError: If the migrator has already been run.
        """
        if self._started:
            raise RuntimeError("ObjectMigrator.run() can only be called once")
        self._started = True

        params = self._params
        start_time = datetime.now(UTC)
        started = time.monotonic()

        with self._tracer.span(
            "s3migrate.migrator.run",
            {
                ATTR_SOURCE_BUCKET: params.source.name,
                ATTR_DEST_BUCKET: params.destination.name,
                ATTR_CONCURRENCY: params.concurrency,
                ATTR_RATE_LIMIT: params.rate_limit or 0,
                ATTR_DRY_RUN: params.dry_run,
            },
        ) as span:
            feeder = RecordFeeder(
                params.collection,
                params.filter,
                batch_size=params.batch_size,
                key_field=params.key_field,
                cancellation=self._token,
                tracer=self._tracer,
            )
            total = await feeder.count()
            if span is not None:
                span.set_attribute(ATTR_TOTAL_OBJECTS, total)
            logger.info("Found %d objects to migrate", total)

            if total == 0:
                return self._finish(0, start_time, started)

            feeder.open()
            try:
                await self._run_pool(feeder)
            finally:
                await feeder.close()
            return self._finish(total, start_time, started)

    async def _run_pool(self, feeder: RecordFeeder) -> None:
        params = self._params
        concurrency = params.concurrency
        assert concurrency is not None

        queue: asyncio.Queue[MigrationRecord] = asyncio.Queue(maxsize=concurrency)
        executor = CopyExecutor(
            params,
            rate_limiter=RateLimiter(params.rate_limit, cancellation=self._token),
            progress_factory=self._progress_factory,
            cancellation=self._token,
            tracer=self._tracer,
        )
        logger.info(
            "Starting %d workers (strategy=%s, rate_limit=%s, dry_run=%s)",
            concurrency,
            executor.strategy.name,
            params.rate_limit or "unlimited",
            params.dry_run,
        )

        workers = [
            asyncio.create_task(self._worker(i, queue, executor), name=f"s3migrate-worker-{i}")
            for i in range(concurrency)
        ]
        feeder_task = asyncio.create_task(
            feeder.feed(
                queue,
                on_decode_error=self._on_decode_error,
                on_cursor_error=self._on_cursor_error,
            ),
            name="s3migrate-feeder",
        )

        try:
            await feeder_task

            for _ in workers:
                try:
                    await self._token.run(queue.put(_SENTINEL))
                except MigrationCancelled:
                    break

            await asyncio.gather(*workers)
        finally:
            pending = [t for t in (feeder_task, *workers) if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _worker(
        self,
        index: int,
        queue: asyncio.Queue[MigrationRecord],
        executor: CopyExecutor,
    ) -> None:
        logger.debug("Worker %d started", index)
        # A dequeued record is always processed; after a cancel the executor
        # turns it into an errored result.
        while not self._token.cancelled:
            try:
                record = await self._token.run(queue.get())
            except MigrationCancelled:
                break
            if record is _SENTINEL:
                break

            started = time.monotonic()
            result = await executor.process(record)
            self._stats.record(result)
            if self._metrics is not None:
                self._metrics.record_object(result, time.monotonic() - started)
        logger.debug("Worker %d stopped", index)

    def _on_decode_error(self, error: RecordDecodeError) -> None:
        self._stats.record_decode_error()
        if self._metrics is not None:
            self._metrics.record_decode_error()

    def _on_cursor_error(self, error: QueryError) -> None:
        self._cursor_error = str(error)

    def _finish(self, total: int, start_time: datetime, started: float) -> MigrationReport:
        elapsed = time.monotonic() - started
        report = self._stats.freeze(
            total,
            start_time,
            datetime.now(UTC),
            cancelled=self._token.cancelled,
            cursor_error=self._cursor_error,
        )
        if self._metrics is not None:
            self._metrics.record_run_duration(elapsed)
        logger.info(
            "Migration finished: copied=%d skipped=%d already=%d errors=%d cancelled=%s",
            report.copied,
            report.skipped,
            report.already_in_destination,
            report.errors,
            report.cancelled,
        )
        return report


__all__ = ["ObjectMigrator"]
