"""
Run statistics shared by the migration workers.

Each dequeued record increments exactly one of the four outcome counters.
Updates are guarded by a lock, so they stay consistent even if a counter
is touched from a helper thread rather than the event loop.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from s3migrate.models import MigrationReport, RecordOutcome, RecordResult


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Point-in-time copy of the counters."""

    copied: int = 0
    skipped: int = 0
    already_present: int = 0
    errored: int = 0
    decode_errors: int = 0
    processed: int = 0
    bytes_copied: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "copied": self.copied,
            "skipped": self.skipped,
            "already_present": self.already_present,
            "errored": self.errored,
            "decode_errors": self.decode_errors,
            "processed": self.processed,
            "bytes_copied": self.bytes_copied,
        }


class MigrationStatistics:
    """
    Concurrency-safe counters for one migration run.

    `errored` includes documents the feeder could not decode; those are
    also counted in `decode_errors` and are never part of `processed`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[RecordOutcome, int] = dict.fromkeys(RecordOutcome, 0)
        self._decode_errors = 0
        self._processed = 0
        self._bytes_copied = 0

    def record(self, result: RecordResult) -> None:
        """Account one processed record."""
        with self._lock:
            self._counts[result.outcome] += 1
            self._processed += 1
            self._bytes_copied += result.bytes_copied

    def record_decode_error(self) -> None:
        with self._lock:
            self._counts[RecordOutcome.ERRORED] += 1
            self._decode_errors += 1

    def snapshot(self) -> StatisticsSnapshot:
        with self._lock:
            return StatisticsSnapshot(
                copied=self._counts[RecordOutcome.COPIED],
                skipped=self._counts[RecordOutcome.SKIPPED],
                already_present=self._counts[RecordOutcome.ALREADY_PRESENT],
                errored=self._counts[RecordOutcome.ERRORED],
                decode_errors=self._decode_errors,
                processed=self._processed,
                bytes_copied=self._bytes_copied,
            )

    def freeze(
        self,
        total_objects: int,
        start_time: datetime,
        end_time: datetime,
        *,
        cancelled: bool = False,
        cursor_error: str | None = None,
    ) -> MigrationReport:
        """Compile the counters into the final report."""
        snap = self.snapshot()
        return MigrationReport(
            total_objects=total_objects,
            copied=snap.copied,
            skipped=snap.skipped,
            already_in_destination=snap.already_present,
            errors=snap.errored,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            processed=snap.processed,
            decode_errors=snap.decode_errors,
            bytes_copied=snap.bytes_copied,
            cancelled=cancelled,
            cursor_error=cursor_error,
        )


__all__ = ["MigrationStatistics", "StatisticsSnapshot"]
