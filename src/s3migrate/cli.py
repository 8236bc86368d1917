"""
Command line interface: ``s3-migrate`` / ``python -m s3migrate``.

Every option can also be given through an ``S3MIGRATE_*`` environment
variable or the ``s3-migrate.yaml`` config file. Flags win over the
environment, which wins over the file.
"""

import asyncio
import cProfile
import logging
import signal
from pathlib import Path
from typing import Any

import typer

from s3migrate.config import (
    MigrationSettings,
    load_config_file,
    resolve_settings,
)
from s3migrate.database import DocumentStore
from s3migrate.exceptions import S3MigrateError
from s3migrate.metrics import MigrationMetrics
from s3migrate.migrator import ObjectMigrator
from s3migrate.models import CopyMode, MigrationParameters, MigrationReport
from s3migrate.progress import tqdm_progress
from s3migrate.report import format_configuration, format_report
from s3migrate.stores.s3 import S3ObjectStore

logger = logging.getLogger(__name__)

ENV_PREFIX = "S3MIGRATE_"
EXIT_CANCELLED = 130

app = typer.Typer(
    add_completion=False,
    help="Migrate objects from source bucket to destination bucket based on MongoDB records",
)


def _env(name: str) -> str:
    return f"{ENV_PREFIX}{name}"


def _install_signal_handlers(migrator: ObjectMigrator) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, migrator.cancel)
        except (NotImplementedError, RuntimeError):
            # Event loops without signal support (e.g. Windows) keep the default handler
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(signals: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)


async def execute(settings: MigrationSettings, *, show_progress: bool = True) -> MigrationReport:
    """
    Connect to MongoDB and both buckets and run the migration.

    Raises:
        S3MigrateError: On configuration, connection or query failures.
        ValueError: If the settings cannot form valid run parameters.
    """
    query_filter = settings.parse_filter()
    documents = await DocumentStore.connect(settings.connection)
    try:
        source_params = settings.source.to_connection_params()
        dest_params = settings.destination.to_connection_params()
        async with S3ObjectStore(source_params) as source, S3ObjectStore(dest_params) as destination:
            params = MigrationParameters(
                source=source,
                destination=destination,
                collection=documents.collection(settings.database, settings.collection),
                filter=query_filter,
                batch_size=settings.limit,
                concurrency=settings.concurrency,
                rate_limit=settings.ratelimit,
                dry_run=settings.dry_run,
                copy_mode=settings.copy_mode,
                key_field=settings.key_field,
            )
            migrator = ObjectMigrator(
                params,
                progress_factory=tqdm_progress if show_progress else None,
                metrics=MigrationMetrics(source.bucket, destination.bucket),
            )
            installed = _install_signal_handlers(migrator)
            try:
                return await migrator.run()
            finally:
                _remove_signal_handlers(installed)
    finally:
        documents.close()


def run_with_profile(settings: MigrationSettings, *, show_progress: bool) -> MigrationReport:
    """Run execute() on a fresh event loop, under cProfile when requested."""
    if not settings.cpuprofile:
        return asyncio.run(execute(settings, show_progress=show_progress))

    profiler = cProfile.Profile()
    profiler.enable()
    try:
        return asyncio.run(execute(settings, show_progress=show_progress))
    finally:
        profiler.disable()
        profiler.dump_stats(settings.cpuprofile)
        logger.info("CPU profile written to %s", settings.cpuprofile)


@app.command()
def migrate(
    config: Path | None = typer.Option(
        None, "--config", envvar=_env("CONFIG"), help="Config file (default: s3-migrate.yaml)"
    ),
    cpuprofile: str | None = typer.Option(
        None, "--cpuprofile", envvar=_env("CPUPROFILE"), help="Write a CPU profile to this file"
    ),
    source_key: str | None = typer.Option(
        None, "--source-key", "-k", envvar=_env("SOURCE_KEY"), help="Source s3 ACCESS_KEY"
    ),
    source_secret: str | None = typer.Option(
        None, "--source-secret", "-s", envvar=_env("SOURCE_SECRET"), help="Source s3 SECRET"
    ),
    source_region: str | None = typer.Option(
        None, "--source-region", "-r", envvar=_env("SOURCE_REGION"), help="Source s3 REGION"
    ),
    source_bucket: str | None = typer.Option(
        None, "--source-bucket", "-b", envvar=_env("SOURCE_BUCKET"), help="Source s3 BUCKET"
    ),
    source_endpoint: str | None = typer.Option(
        None, "--source-endpoint", "-e", envvar=_env("SOURCE_ENDPOINT"), help="Source s3 ENDPOINT"
    ),
    dest_key: str | None = typer.Option(
        None, "--dest-key", "-K", envvar=_env("DEST_KEY"), help="Destination s3 ACCESS_KEY"
    ),
    dest_secret: str | None = typer.Option(
        None, "--dest-secret", "-S", envvar=_env("DEST_SECRET"), help="Destination s3 SECRET"
    ),
    dest_region: str | None = typer.Option(
        None, "--dest-region", "-R", envvar=_env("DEST_REGION"), help="Destination s3 REGION"
    ),
    dest_bucket: str | None = typer.Option(
        None, "--dest-bucket", "-B", envvar=_env("DEST_BUCKET"), help="Destination s3 BUCKET"
    ),
    dest_endpoint: str | None = typer.Option(
        None, "--dest-endpoint", "-E", envvar=_env("DEST_ENDPOINT"), help="Destination s3 ENDPOINT"
    ),
    database: str | None = typer.Option(
        None, "--database", "-d", envvar=_env("DATABASE"), help="Database name"
    ),
    collection: str | None = typer.Option(
        None, "--collection", "-c", envvar=_env("COLLECTION"), help="Database collection"
    ),
    connection: str | None = typer.Option(
        None, "--connection", "-m", envvar=_env("CONNECTION"), help="Database connection url"
    ),
    filter: str | None = typer.Option(
        None,
        "--filter",
        "-f",
        envvar=_env("FILTER"),
        help='Database filter (default: {"sizeint":{"$gt": 0}})',
    ),
    limit: int | None = typer.Option(
        None, "--limit", "-l", envvar=_env("LIMIT"), help="Cursor batch size (default: 100)"
    ),
    ratelimit: float | None = typer.Option(
        None, "--ratelimit", envvar=_env("RATELIMIT"), help="Objects started per second (0: unlimited)"
    ),
    concurrency: int | None = typer.Option(
        None, "--concurrency", envvar=_env("CONCURRENCY"), help="Concurrency level (0: one per CPU)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", envvar=_env("DRY_RUN"), help="Decide without copying"
    ),
    copy_mode: CopyMode | None = typer.Option(
        None, "--copy-mode", envvar=_env("COPY_MODE"), help="How bytes reach the destination"
    ),
    key_field: str | None = typer.Option(
        None, "--key-field", envvar=_env("KEY_FIELD"), help="Document field holding the storage key"
    ),
    report_json: Path | None = typer.Option(
        None, "--report-json", help="Also write the summary report as JSON to this file"
    ),
    log_level: str = typer.Option(
        "INFO", "--log-level", envvar=_env("LOG_LEVEL"), help="Logging level"
    ),
    no_progress: bool = typer.Option(
        False, "--no-progress", help="Do not draw per-object progress bars"
    ),
) -> None:
    """Migrate objects from source bucket to destination bucket based on MongoDB records."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(levelname)s - [%(name)s] - %(message)s",
    )

    overrides: dict[str, Any] = {
        "cpuprofile": cpuprofile,
        "source-key": source_key,
        "source-secret": source_secret,
        "source-region": source_region,
        "source-bucket": source_bucket,
        "source-endpoint": source_endpoint,
        "dest-key": dest_key,
        "dest-secret": dest_secret,
        "dest-region": dest_region,
        "dest-bucket": dest_bucket,
        "dest-endpoint": dest_endpoint,
        "database": database,
        "collection": collection,
        "connection": connection,
        "filter": filter,
        "limit": limit,
        "ratelimit": ratelimit,
        "concurrency": concurrency,
        "dry-run": dry_run or None,
        "copy-mode": copy_mode,
        "key-field": key_field,
    }

    try:
        settings = resolve_settings(load_config_file(config), overrides)
        typer.echo(format_configuration(settings))
        settings.require_complete()
        settings.parse_filter()
        report = run_with_profile(settings, show_progress=not no_progress)
    except (S3MigrateError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    if report.total_objects == 0:
        typer.echo("Zero objects found to migrate. Exiting.")
        return

    typer.echo(format_report(report))
    if report_json is not None:
        report_json.write_text(report.to_json(), encoding="utf-8")
        logger.info("Report written to %s", report_json)

    if report.cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)
    if report.cursor_error is not None:
        typer.echo(f"Error: {report.cursor_error}", err=True)
        raise typer.Exit(code=1)


def main() -> None:
    app()


__all__ = ["app", "execute", "main", "migrate", "run_with_profile"]
