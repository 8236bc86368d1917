"""
Observability utilities for s3migrate.

Provides the composition-based Tracer used by the migration components and
the standard attribute names shared by spans and metrics.

Example:
    >>> from s3migrate.observability import create_tracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span("s3migrate.operation", {ATTR_OBJECT_KEY: key}):
    ...     pass
"""

from s3migrate.observability.attributes import (
    ATTR_BATCH_SIZE,
    ATTR_CONCURRENCY,
    ATTR_COPY_STRATEGY,
    ATTR_DEST_BUCKET,
    ATTR_DRY_RUN,
    ATTR_ERROR_TYPE,
    ATTR_OBJECT_KEY,
    ATTR_OBJECT_SIZE,
    ATTR_OUTCOME,
    ATTR_RATE_LIMIT,
    ATTR_SOURCE_BUCKET,
    ATTR_TOTAL_OBJECTS,
)
from s3migrate.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_OBJECT_KEY",
    "ATTR_OBJECT_SIZE",
    "ATTR_SOURCE_BUCKET",
    "ATTR_DEST_BUCKET",
    "ATTR_CONCURRENCY",
    "ATTR_RATE_LIMIT",
    "ATTR_DRY_RUN",
    "ATTR_COPY_STRATEGY",
    "ATTR_BATCH_SIZE",
    "ATTR_TOTAL_OBJECTS",
    "ATTR_OUTCOME",
    "ATTR_ERROR_TYPE",
]
