"""
Basic Migration Example

This example walks through a migration without any infrastructure:
- Describing the buckets and the record collection
- Running a rate-limited migration with a bounded worker pool
- Reading the summary report
- Cancelling a run part way through

The in-memory stores from ``s3migrate.testing`` stand in for S3 and
MongoDB. Swap them for ``S3ObjectStore`` and ``DocumentStore.collection``
to run against real services.

Run with: python examples/basic_migration.py
"""

import asyncio

from s3migrate import MigrationParameters, ObjectMigrator
from s3migrate.report import format_report
from s3migrate.testing import InMemoryCollection, InMemoryObjectStore, make_document

# =============================================================================
# Step 1: Set up the buckets and the records
# =============================================================================
# Records name objects by key. Objects may be missing from the source
# (skipped) or already present in the destination (left alone).


def build_fixture(total: int = 50) -> tuple[InMemoryObjectStore, InMemoryObjectStore, InMemoryCollection]:
    keys = [f"blob-{i:03d}" for i in range(total)]
    source = InMemoryObjectStore("archive-old", {key: key.encode() * 100 for key in keys[:45]})
    destination = InMemoryObjectStore("archive-new", {key: b"existing" for key in keys[:10]})
    collection = InMemoryCollection(make_document(key, size=100 * len(key)) for key in keys)
    return source, destination, collection


# =============================================================================
# Step 2: Run a migration
# =============================================================================


async def run_migration() -> None:
    source, destination, collection = build_fixture()
    params = MigrationParameters(
        source=source,
        destination=destination,
        collection=collection,
        filter={"sizeint": {"$gt": 0}},
        concurrency=4,
        rate_limit=200,
    )

    report = await ObjectMigrator(params).run()
    print(format_report(report))
    print(f"Destination now holds {len(destination.objects)} objects")


# =============================================================================
# Step 3: Cancel a run
# =============================================================================
# Cancelling stops new work; in-flight records are counted as errors and
# the report is still returned.


async def cancel_migration() -> None:
    source, destination, collection = build_fixture()
    source.delay = 0.05
    migrator = ObjectMigrator(
        MigrationParameters(source=source, destination=destination, collection=collection, concurrency=2)
    )

    task = asyncio.create_task(migrator.run())
    await asyncio.sleep(0.3)
    migrator.cancel()
    report = await task

    print(f"Cancelled: {report.cancelled}, processed {report.processed} of {report.total_objects}")


async def main() -> None:
    await run_migration()
    await cancel_migration()


if __name__ == "__main__":
    asyncio.run(main())
