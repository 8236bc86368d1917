"""
Standard span and metric attribute names.

Using shared constants keeps attribute names consistent between the
tracing spans and the metrics emitted by the migration components.
"""

# Object
ATTR_OBJECT_KEY = "object.key"
ATTR_OBJECT_SIZE = "object.size"
ATTR_SOURCE_BUCKET = "migration.source.bucket"
ATTR_DEST_BUCKET = "migration.destination.bucket"

# Run
ATTR_CONCURRENCY = "migration.concurrency"
ATTR_RATE_LIMIT = "migration.rate_limit"
ATTR_DRY_RUN = "migration.dry_run"
ATTR_COPY_STRATEGY = "migration.copy_strategy"
ATTR_BATCH_SIZE = "batch_size"
ATTR_TOTAL_OBJECTS = "migration.total_objects"

# Outcome
ATTR_OUTCOME = "outcome"
ATTR_ERROR_TYPE = "error.type"

__all__ = [
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
