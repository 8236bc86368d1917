"""
Data models for object migrations.

Models in this module:

Enums:
    - CopyMode: How bytes reach the destination bucket
    - RecordState: Per-record processing state machine
    - RecordOutcome: The four terminal accounting buckets

Records:
    - MigrationRecord: One database document describing a candidate object
    - RecordResult: Outcome of processing one record

Configuration:
    - MigrationParameters: Immutable configuration for one run

Reporting:
    - MigrationReport: Aggregate counters and timing of a finished run
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from s3migrate.exceptions import RecordDecodeError

if TYPE_CHECKING:
    from s3migrate.stores.interface import ObjectStore


DEFAULT_KEY_FIELD = "_id"
DEFAULT_BATCH_SIZE = 100
DEFAULT_CHUNK_SIZE = 32 * 1024


class CopyMode(Enum):
    """
    Strategy used to move bytes to the destination.

    Attributes:
        STREAM: Read from the source and write to the destination through
            this process.
        SERVER_SIDE: Ask the destination store to copy from the source
            bucket without streaming bytes through this process.
        AUTO: Server-side copy when the stores support it, else stream.
    """

    STREAM = "stream"
    SERVER_SIDE = "server_side"
    AUTO = "auto"


class RecordState(Enum):
    """
    Processing state of a single record.

    State machine:
        QUEUED -> RATE_LIMITED -> SOURCE_CHECKED -> DEST_CHECKED -> COPYING -> COPIED
                                       |                 |
                                       v                 v
                                    SKIPPED        ALREADY_PRESENT

        Any non-terminal state --> ERRORED

    Exactly one terminal state is reached per record.
    """

    QUEUED = "queued"
    RATE_LIMITED = "rate_limited"
    SOURCE_CHECKED = "source_checked"
    DEST_CHECKED = "dest_checked"
    COPYING = "copying"
    SKIPPED = "skipped"
    ALREADY_PRESENT = "already_present"
    COPIED = "copied"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RecordState.SKIPPED,
            RecordState.ALREADY_PRESENT,
            RecordState.COPIED,
            RecordState.ERRORED,
        )


class RecordOutcome(Enum):
    """Accounting bucket a processed record ends up in."""

    COPIED = "copied"
    SKIPPED = "skipped"
    ALREADY_PRESENT = "already_present"
    ERRORED = "errored"


class MigrationRecord(BaseModel):
    """
    A database document describing an object to migrate.

    Only `storage_key` is used against the object stores; every other field
    is informational and never influences copy decisions.

    Attributes:
        storage_key: Key addressing the object in both buckets.
        record_id: Application-level identifier of the document.
        owner: Owner of the object.
        object_name: Display name.
        sha256sum: Content hash as recorded in the database.
        size: Size as recorded in the database (string form).
        size_int: Size in bytes as recorded in the database.
        mime_type: MIME type.
        linked_object: Optional link to another record.
        time_created: Creation timestamp.
        time_modified: Modification timestamp.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    storage_key: str = Field(..., min_length=1)
    record_id: str | None = Field(default=None, alias="id")
    owner: str | None = None
    object_name: str | None = Field(default=None, alias="objectname")
    sha256sum: str | None = Field(default=None, alias="sha")
    size: str | None = None
    size_int: int | None = Field(default=None, alias="sizeint")
    mime_type: str | None = Field(default=None, alias="mimetype")
    linked_object: str | None = None
    time_created: datetime | None = Field(default=None, alias="timecreated")
    time_modified: datetime | None = Field(default=None, alias="timemodified")

    @field_validator("storage_key", "record_id", "linked_object", mode="before")
    @classmethod
    def _stringify_identifiers(cls, value: Any) -> Any:
        # ObjectId and similar identifier types
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @classmethod
    def from_document(
        cls,
        document: Mapping[str, Any],
        key_field: str = DEFAULT_KEY_FIELD,
    ) -> MigrationRecord:
        """
        Decode a database document.

        Args:
            document: Raw document as returned by the cursor.
            key_field: Document field holding the storage key.

        Returns:
            The decoded record.

        Raises:
            RecordDecodeError: If the key field is missing or a field has
                an unusable type.
        """
        if not isinstance(document, Mapping):
            raise RecordDecodeError(None, f"expected a mapping, got {type(document).__name__}")

        document_id = document.get("_id")
        if document.get(key_field) is None:
            raise RecordDecodeError(document_id, f"missing storage key field {key_field!r}")

        data = dict(document)
        # JSON-shaped documents use hyphenated names
        if "mimetype" not in data and "mime-type" in data:
            data["mimetype"] = data["mime-type"]
        data["storage_key"] = document[key_field]

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RecordDecodeError(document_id, str(e)) from e


@dataclass(frozen=True)
class RecordResult:
    """
    Result of processing one record.

    Attributes:
        key: Storage key of the record.
        outcome: Accounting bucket.
        state: Terminal state reached.
        failed_in: Last non-terminal state when the record errored.
        bytes_copied: Bytes reported to progress (0 unless copied).
        error: Error message when the record errored.
    """

    key: str
    outcome: RecordOutcome
    state: RecordState
    failed_in: RecordState | None = None
    bytes_copied: int = 0
    error: str | None = None


@dataclass(frozen=True)
class MigrationParameters:
    """
    Immutable configuration for one migration run.

    Constructed once per invocation and shared by reference across all
    workers.

    Attributes:
        source: Store objects are read from.
        destination: Store objects are written to.
        collection: Document collection holding the records.
        filter: Query filter, passed to the collection untouched.
        batch_size: Cursor page-size hint.
        concurrency: Number of workers; None or 0 resolves to the host's
            CPU count.
        rate_limit: Object operations per second; None or 0 is unlimited.
        dry_run: Perform all read-side checks but never write.
        copy_mode: How bytes reach the destination.
        key_field: Document field holding the storage key.
        chunk_size: Read size for streamed copies.
        simulated_progress_seconds: Interval over which dry-run progress
            is driven to completion.
        server_copy_poll_interval: Seconds between destination polls while
            a server-side copy runs.
        server_copy_timeout: Seconds to wait for a server-side copied object
            to appear in the destination.
    """

    source: ObjectStore
    destination: ObjectStore
    collection: Any
    filter: Mapping[str, Any] = field(default_factory=dict)
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency: int | None = None
    rate_limit: float | None = None
    dry_run: bool = False
    copy_mode: CopyMode = CopyMode.STREAM
    key_field: str = DEFAULT_KEY_FIELD
    chunk_size: int = DEFAULT_CHUNK_SIZE
    simulated_progress_seconds: float = 1.0
    server_copy_poll_interval: float = 0.1
    server_copy_timeout: float = 60.0

    def __post_init__(self) -> None:
        """Validate values and resolve the default concurrency."""
        if self.concurrency is None or self.concurrency == 0:
            object.__setattr__(self, "concurrency", os.cpu_count() or 1)
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")

        if self.rate_limit is not None and self.rate_limit < 0:
            raise ValueError(f"rate_limit must be >= 0, got {self.rate_limit}")
        if self.rate_limit == 0:
            object.__setattr__(self, "rate_limit", None)

        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.simulated_progress_seconds < 0:
            raise ValueError(
                f"simulated_progress_seconds must be >= 0, got {self.simulated_progress_seconds}"
            )
        if self.server_copy_poll_interval <= 0:
            raise ValueError(
                f"server_copy_poll_interval must be positive, got {self.server_copy_poll_interval}"
            )
        if self.server_copy_timeout <= 0:
            raise ValueError(f"server_copy_timeout must be positive, got {self.server_copy_timeout}")
        if not self.key_field:
            raise ValueError("key_field must not be empty")
        if not isinstance(self.copy_mode, CopyMode):
            object.__setattr__(self, "copy_mode", CopyMode(self.copy_mode))


@dataclass
class MigrationReport:
    """
    Aggregate result of a migration run.

    `total_objects` is counted before iteration and may differ from
    `processed` when the collection changes during the run.

    Attributes:
        total_objects: Records matching the filter when the run started.
        copied: Records copied (or that would be copied, in dry-run).
        skipped: Records whose object is absent from the source.
        already_in_destination: Records whose key already exists in the
            destination.
        errors: Records that failed, including undecodable documents.
        start_time: When the run started.
        end_time: When the worker pool drained.
        duration: Elapsed run time.
        processed: Records dequeued by workers.
        decode_errors: Documents the feeder could not decode.
        bytes_copied: Bytes reported by the copy strategies.
        cancelled: Whether the run was cancelled.
        cursor_error: Set when the record cursor failed mid-run; records
            after the failure were never read.
    """

    total_objects: int
    copied: int
    skipped: int
    already_in_destination: int
    errors: int
    start_time: datetime
    end_time: datetime
    duration: timedelta
    processed: int = 0
    decode_errors: int = 0
    bytes_copied: int = 0
    cancelled: bool = False
    cursor_error: str | None = None

    @property
    def accounted(self) -> int:
        """Records dequeued and classified into one of the four buckets."""
        return self.copied + self.skipped + self.already_in_destination + (
            self.errors - self.decode_errors
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "total_objects": self.total_objects,
            "copied": self.copied,
            "skipped": self.skipped,
            "already_in_destination": self.already_in_destination,
            "errors": self.errors,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration": self.duration.total_seconds(),
        }
        if self.cursor_error is not None:
            data["cursor_error"] = self.cursor_error
        return data

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_KEY_FIELD",
    "CopyMode",
    "RecordState",
    "RecordOutcome",
    "MigrationRecord",
    "RecordResult",
    "MigrationParameters",
    "MigrationReport",
]
