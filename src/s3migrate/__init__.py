"""
s3migrate - Migrate objects referenced by MongoDB records between S3 buckets.

This library provides:
- ObjectMigrator, a bounded worker pool driven by a database cursor
- Rate limiting, cancellation and per-record outcome accounting
- Streaming, server-side and dry-run copy strategies
- The ``s3-migrate`` command line tool
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("s3-migrate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from s3migrate.cancellation import CancellationToken
from s3migrate.exceptions import (
    ConfigurationError,
    CopyError,
    MigrationCancelled,
    ObjectStoreError,
    QueryError,
    RateLimitCancelled,
    RecordDecodeError,
    S3MigrateError,
    ServerSideCopyUnsupported,
    StoreConnectionError,
)
from s3migrate.executor import CopyExecutor
from s3migrate.feeder import RecordFeeder
from s3migrate.metrics import MigrationMetrics, MigrationMetricSnapshot
from s3migrate.migrator import ObjectMigrator
from s3migrate.models import (
    CopyMode,
    MigrationParameters,
    MigrationRecord,
    MigrationReport,
    RecordOutcome,
    RecordResult,
    RecordState,
)
from s3migrate.progress import NullProgress, ProgressFactory, ProgressObserver, TqdmProgress
from s3migrate.rate_limiter import RateLimiter
from s3migrate.stats import MigrationStatistics, StatisticsSnapshot
from s3migrate.stores import ObjectStore, S3ConnectionParams, S3ObjectStore
from s3migrate.strategies import (
    CopyStrategy,
    DryRunCopyStrategy,
    ServerSideCopyStrategy,
    StreamCopyStrategy,
    select_copy_strategy,
)

__all__ = [
    "__version__",
    # Migration
    "ObjectMigrator",
    "CopyExecutor",
    "RecordFeeder",
    "MigrationStatistics",
    "StatisticsSnapshot",
    "CancellationToken",
    "RateLimiter",
    # Models
    "CopyMode",
    "MigrationParameters",
    "MigrationRecord",
    "MigrationReport",
    "RecordOutcome",
    "RecordResult",
    "RecordState",
    # Stores
    "ObjectStore",
    "S3ObjectStore",
    "S3ConnectionParams",
    # Strategies
    "CopyStrategy",
    "StreamCopyStrategy",
    "ServerSideCopyStrategy",
    "DryRunCopyStrategy",
    "select_copy_strategy",
    # Progress
    "ProgressObserver",
    "ProgressFactory",
    "NullProgress",
    "TqdmProgress",
    # Metrics
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    # Exceptions
    "S3MigrateError",
    "ConfigurationError",
    "StoreConnectionError",
    "QueryError",
    "RecordDecodeError",
    "ObjectStoreError",
    "ServerSideCopyUnsupported",
    "CopyError",
    "MigrationCancelled",
    "RateLimitCancelled",
]
