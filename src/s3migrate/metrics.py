"""
OpenTelemetry metrics for migration runs.

Metrics Exposed:
    - s3migrate.objects.processed (Counter): Records finalized, by outcome
    - s3migrate.bytes.copied (Counter): Bytes written to the destination
    - s3migrate.object.duration (Histogram): Seconds spent per record
    - s3migrate.run.duration (Histogram): Seconds per migration run

All metrics carry the source and destination bucket attributes. Without a
configured MeterProvider the OpenTelemetry API hands out no-op
instruments, so recording is always safe.

Example:
    >>> metrics = MigrationMetrics("source-bucket", "dest-bucket")
    >>> metrics.record_object(result, duration_seconds=0.4)
    >>> metrics.record_run_duration(12.5)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import MeterProvider

from s3migrate.models import RecordOutcome, RecordResult
from s3migrate.observability import (
    ATTR_DEST_BUCKET,
    ATTR_ERROR_TYPE,
    ATTR_OUTCOME,
    ATTR_SOURCE_BUCKET,
)

METER_NAME = "s3migrate"
METER_VERSION = "1.0.0"


@dataclass(frozen=True)
class MigrationMetricSnapshot:
    """
    Snapshot of the values recorded so far.

    Attributes:
        objects_by_outcome: Records finalized per outcome value.
        bytes_copied: Total bytes written.
        object_durations: Number of per-record durations recorded.
        run_durations: Recorded run durations in seconds.
    """

    objects_by_outcome: dict[str, int] = field(default_factory=dict)
    bytes_copied: int = 0
    object_durations: int = 0
    run_durations: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "objects_by_outcome": dict(self.objects_by_outcome),
            "bytes_copied": self.bytes_copied,
            "object_durations": self.object_durations,
            "run_durations": list(self.run_durations),
        }


@dataclass
class MigrationMetrics:
    """
    Container for migration metric instruments.

    Attributes:
        source_bucket: Source bucket name for metric labels.
        destination_bucket: Destination bucket name for metric labels.
        enable_metrics: Whether instruments are created at all.
        meter_provider: Provider to create the meter from; the global
            provider when None.
    """

    source_bucket: str
    destination_bucket: str
    enable_metrics: bool = True
    meter_provider: MeterProvider | None = None

    _objects_counter: Any = field(default=None, init=False, repr=False)
    _bytes_counter: Any = field(default=None, init=False, repr=False)
    _object_duration_histogram: Any = field(default=None, init=False, repr=False)
    _run_duration_histogram: Any = field(default=None, init=False, repr=False)

    # Internal tracking for snapshot
    _objects_by_outcome: dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _bytes_copied: int = field(default=0, init=False, repr=False)
    _object_durations: int = field(default=0, init=False, repr=False)
    _run_durations: list[float] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.enable_metrics:
            self._setup_metrics()

    def _setup_metrics(self) -> None:
        meter = metrics.get_meter(
            METER_NAME,
            version=METER_VERSION,
            meter_provider=self.meter_provider,
        )

        self._objects_counter = meter.create_counter(
            name="s3migrate.objects.processed",
            unit="objects",
            description="Records finalized by the migration workers, by outcome",
        )
        self._bytes_counter = meter.create_counter(
            name="s3migrate.bytes.copied",
            unit="By",
            description="Bytes written to the destination bucket",
        )
        self._object_duration_histogram = meter.create_histogram(
            name="s3migrate.object.duration",
            unit="s",
            description="Time spent processing a single record",
        )
        self._run_duration_histogram = meter.create_histogram(
            name="s3migrate.run.duration",
            unit="s",
            description="Duration of a complete migration run",
        )

    def _base_attributes(self) -> dict[str, str]:
        return {
            ATTR_SOURCE_BUCKET: self.source_bucket,
            ATTR_DEST_BUCKET: self.destination_bucket,
        }

    def record_object(self, result: RecordResult, duration_seconds: float) -> None:
        """
        Record one finalized record.

        Args:
            result: Result returned by the copy executor.
            duration_seconds: Time the worker spent on the record.
        """
        outcome = result.outcome.value
        self._objects_by_outcome[outcome] = self._objects_by_outcome.get(outcome, 0) + 1
        self._bytes_copied += result.bytes_copied
        self._object_durations += 1

        if not self.enable_metrics:
            return
        attrs = {**self._base_attributes(), ATTR_OUTCOME: outcome}
        self._objects_counter.add(1, attrs)
        if result.bytes_copied:
            self._bytes_counter.add(result.bytes_copied, self._base_attributes())
        self._object_duration_histogram.record(duration_seconds, attrs)

    def record_decode_error(self) -> None:
        outcome = RecordOutcome.ERRORED.value
        self._objects_by_outcome[outcome] = self._objects_by_outcome.get(outcome, 0) + 1
        if self.enable_metrics:
            self._objects_counter.add(
                1,
                {**self._base_attributes(), ATTR_OUTCOME: outcome, ATTR_ERROR_TYPE: "decode"},
            )

    def record_run_duration(self, duration_seconds: float) -> None:
        self._run_durations.append(duration_seconds)
        if self.enable_metrics:
            self._run_duration_histogram.record(duration_seconds, self._base_attributes())

    def get_snapshot(self) -> MigrationMetricSnapshot:
        """
        Get a snapshot of current metric values.

        Useful for testing and debugging to see accumulated values.
        """
        return MigrationMetricSnapshot(
            objects_by_outcome=dict(self._objects_by_outcome),
            bytes_copied=self._bytes_copied,
            object_durations=self._object_durations,
            run_durations=list(self._run_durations),
        )


__all__ = ["MigrationMetrics", "MigrationMetricSnapshot", "METER_NAME"]
