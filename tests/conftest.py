"""
Shared pytest fixtures for the s3migrate tests.

This module provides:
- In-memory stores and collections (source_store, dest_store, collection)
- A params factory building MigrationParameters around them
- OpenTelemetry metrics fixtures (metric_reader, meter_provider)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from s3migrate.models import MigrationParameters
from s3migrate.testing import InMemoryCollection, InMemoryObjectStore, make_document


def populate(
    keys: int,
    *,
    in_source: int | None = None,
    in_destination: int = 0,
    size: int = 64,
) -> tuple[InMemoryObjectStore, InMemoryObjectStore, InMemoryCollection]:
    """
    Build a source, destination and collection for `keys` records.

    The first `in_source` keys exist in the source (all by default) and the
    first `in_destination` keys already exist in the destination.
    """
    in_source = keys if in_source is None else in_source
    names = [f"obj-{i:04d}" for i in range(keys)]
    source = InMemoryObjectStore(
        "source",
        {name: bytes([i % 256]) * size for i, name in enumerate(names[:in_source])},
    )
    destination = InMemoryObjectStore(
        "dest",
        {name: b"existing" for name in names[:in_destination]},
    )
    collection = InMemoryCollection(make_document(name, size=size) for name in names)
    return source, destination, collection


@pytest.fixture
def source_store() -> InMemoryObjectStore:
    return InMemoryObjectStore("source", {"a": b"alpha", "b": b"bravo-bravo"})


@pytest.fixture
def dest_store() -> InMemoryObjectStore:
    return InMemoryObjectStore("dest")


@pytest.fixture
def collection() -> InMemoryCollection:
    return InMemoryCollection([make_document("a", size=5), make_document("b", size=11)])


@pytest.fixture
def make_params(
    source_store: InMemoryObjectStore,
    dest_store: InMemoryObjectStore,
    collection: InMemoryCollection,
) -> Callable[..., MigrationParameters]:
    """Factory for MigrationParameters; keyword arguments override defaults."""

    def factory(**overrides: Any) -> MigrationParameters:
        values: dict[str, Any] = {
            "source": source_store,
            "destination": dest_store,
            "collection": collection,
            "concurrency": 2,
            "simulated_progress_seconds": 0.0,
        }
        values.update(overrides)
        return MigrationParameters(**values)

    return factory


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def meter_provider(metric_reader: InMemoryMetricReader) -> Iterator[MeterProvider]:
    provider = MeterProvider(metric_readers=[metric_reader])
    yield provider
    provider.shutdown()


@pytest.fixture
def scenario() -> Callable[..., tuple[InMemoryObjectStore, InMemoryObjectStore, InMemoryCollection]]:
    """The populate() helper, for tests that build larger data sets."""
    return populate
