"""
Unit tests for MigrationMetrics.

Uses an opentelemetry-sdk MeterProvider with an InMemoryMetricReader so
the recorded data points can be inspected.
"""

from typing import Any

from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from s3migrate.metrics import MigrationMetrics
from s3migrate.models import RecordOutcome, RecordResult, RecordState


def collect(reader: InMemoryMetricReader) -> dict[str, list[Any]]:
    """Map metric name to its data points."""
    points: dict[str, list[Any]] = {}
    data = reader.get_metrics_data()
    if data is None:
        return points
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                points.setdefault(metric.name, []).extend(metric.data.data_points)
    return points


def copied(nbytes: int) -> RecordResult:
    return RecordResult("k", RecordOutcome.COPIED, RecordState.COPIED, bytes_copied=nbytes)


class TestMigrationMetrics:
    def test_records_objects_by_outcome(self, meter_provider, metric_reader) -> None:
        metrics = MigrationMetrics("src", "dst", meter_provider=meter_provider)
        metrics.record_object(copied(100), 0.5)
        metrics.record_object(copied(50), 0.25)
        metrics.record_object(RecordResult("k", RecordOutcome.SKIPPED, RecordState.SKIPPED), 0.1)

        points = collect(metric_reader)

        by_outcome = {
            p.attributes["outcome"]: p.value for p in points["s3migrate.objects.processed"]
        }
        assert by_outcome == {"copied": 2, "skipped": 1}
        assert sum(p.value for p in points["s3migrate.bytes.copied"]) == 150
        assert sum(p.count for p in points["s3migrate.object.duration"]) == 3

    def test_bucket_attributes(self, meter_provider, metric_reader) -> None:
        metrics = MigrationMetrics("src", "dst", meter_provider=meter_provider)
        metrics.record_run_duration(2.0)

        (point,) = collect(metric_reader)["s3migrate.run.duration"]
        assert point.attributes["migration.source.bucket"] == "src"
        assert point.attributes["migration.destination.bucket"] == "dst"
        assert point.sum == 2.0

    def test_decode_errors_are_tagged(self, meter_provider, metric_reader) -> None:
        metrics = MigrationMetrics("src", "dst", meter_provider=meter_provider)
        metrics.record_decode_error()

        (point,) = collect(metric_reader)["s3migrate.objects.processed"]
        assert point.attributes["outcome"] == "errored"
        assert point.attributes["error.type"] == "decode"

    def test_disabled_metrics_still_snapshot(self) -> None:
        metrics = MigrationMetrics("src", "dst", enable_metrics=False)
        metrics.record_object(copied(10), 0.1)
        metrics.record_decode_error()
        metrics.record_run_duration(1.5)

        snapshot = metrics.get_snapshot()
        assert snapshot.objects_by_outcome == {"copied": 1, "errored": 1}
        assert snapshot.bytes_copied == 10
        assert snapshot.object_durations == 1
        assert snapshot.to_dict()["run_durations"] == [1.5]
