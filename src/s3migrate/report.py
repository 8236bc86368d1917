"""
Human-readable output of the s3-migrate command.

format_configuration() renders the settings echoed before a run starts;
format_report() renders the summary printed after it.
"""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import urlsplit, urlunsplit

from s3migrate.config import MigrationSettings
from s3migrate.models import MigrationReport


def redact_connection(uri: str) -> str:
    """Replace the password of a connection string with '***'."""
    try:
        parts = urlsplit(uri)
    except ValueError:
        return uri
    if parts.password is None:
        return uri
    # hosts are kept verbatim; mongodb URIs may list several
    hosts = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"{parts.username or ''}:***@{hosts}"))


def format_duration(duration: timedelta) -> str:
    """
    Render a duration in the largest unit that is at least one.

    >>> format_duration(timedelta(minutes=90))
    '1.50 hours'
    >>> format_duration(timedelta(milliseconds=250))
    '250 milliseconds'
    """
    seconds = duration.total_seconds()
    if seconds >= 3600:
        return f"{seconds / 3600:.2f} hours"
    if seconds >= 60:
        return f"{seconds / 60:.2f} minutes"
    if seconds >= 1:
        return f"{seconds:.2f} seconds"
    return f"{int(seconds * 1000)} milliseconds"


def format_configuration(settings: MigrationSettings) -> str:
    lines = [
        "",
        "Migration Configuration:",
        f"Source: {settings.source.describe()}",
        f"Destination: {settings.destination.describe()}",
        f"Database: {settings.database}",
        f"Collection: {settings.collection}",
        f"Connection: {redact_connection(settings.connection)}",
        f"Filter: {settings.filter}",
        f"Batch Size: {settings.limit}",
    ]
    if settings.ratelimit > 0:
        lines.append(f"Rate Limit: {settings.ratelimit:g} ops/sec")
    if settings.dry_run:
        lines.append("Dry Run: Enabled")
    if settings.copy_mode.value != "stream":
        lines.append(f"Copy Mode: {settings.copy_mode.value}")
    concurrency = settings.concurrency or "auto (one per CPU)"
    lines.append(f"Concurrency Level: {concurrency}")
    return "\n".join(lines)


def format_report(report: MigrationReport) -> str:
    lines = [
        "",
        "Migration Summary Report:",
        f"Total Objects: {report.total_objects}",
        f"Copied: {report.copied}",
        f"Skipped (not found in source): {report.skipped}",
        f"Already in Destination: {report.already_in_destination}",
        f"Errors: {report.errors}",
        f"Start Time: {report.start_time.isoformat()}",
        f"End Time: {report.end_time.isoformat()}",
        f"Duration: {format_duration(report.duration)}",
    ]
    if report.cursor_error is not None:
        lines.append(f"Record Query Failed: {report.cursor_error}")
    if report.cancelled:
        lines.append("")
        lines.append("Migration cancelled!")
    elif report.cursor_error is not None:
        lines.append("")
        lines.append("Migration incomplete!")
    else:
        lines.append("")
        lines.append("Migration completed!")
    return "\n".join(lines)


__all__ = ["format_configuration", "format_duration", "format_report", "redact_connection"]
