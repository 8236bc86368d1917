"""
Test utilities for s3migrate.

In-memory doubles for the three external systems a migration touches,
so migrations can be exercised without MongoDB or S3.

Components:
    InMemoryObjectStore: ObjectStore over a dict, with call logging,
        failure injection, latency and concurrency tracking
    InMemoryCollection: Motor-like collection over a list of documents
    RecordingProgress: ProgressFactory that records every update

Example:
    >>> from s3migrate import MigrationParameters, ObjectMigrator
    >>> from s3migrate.testing import InMemoryCollection, InMemoryObjectStore, make_document
    >>>
    >>> source = InMemoryObjectStore("source", {"a": b"data"})
    >>> destination = InMemoryObjectStore("dest")
    >>> collection = InMemoryCollection([make_document("a")])
    >>> params = MigrationParameters(source, destination, collection)
    >>> report = await ObjectMigrator(params).run()
    >>> assert destination.objects["a"] == b"data"

Note:
    This module is intended for test code only. It should not be imported
    in production code paths.
"""

from s3migrate.testing.collection import InMemoryCollection, InMemoryCursor, make_document
from s3migrate.testing.progress import RecordingObserver, RecordingProgress
from s3migrate.testing.stores import InMemoryObjectStore

__all__ = [
    "InMemoryObjectStore",
    "InMemoryCollection",
    "InMemoryCursor",
    "make_document",
    "RecordingProgress",
    "RecordingObserver",
]
