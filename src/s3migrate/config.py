"""
Configuration loading for the s3-migrate command.

Settings come from four layers, highest precedence first:

1. command line flags
2. environment variables (resolved together with the flags by typer)
3. a YAML config file (``s3-migrate.yaml``)
4. built-in defaults

The config file uses flat, hyphenated keys, for example::

    source-bucket: "source-bucket-name"
    source-endpoint: "s3.amazonaws.com"
    dest-bucket: "destination-bucket-name"
    database: "storage"
    collection: "objects"
    connection: "mongodb://localhost:27017"
    ratelimit: 10
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from s3migrate.exceptions import ConfigurationError
from s3migrate.models import DEFAULT_BATCH_SIZE, DEFAULT_KEY_FIELD, CopyMode
from s3migrate.stores.s3 import DEFAULT_ENDPOINT, S3ConnectionParams

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "s3-migrate.yaml"
DEFAULT_FILTER = '{"sizeint":{"$gt": 0}}'

_BUCKET_PREFIXES = {"source-": "source", "dest-": "destination"}
_TOP_LEVEL_KEYS = frozenset(
    {
        "database",
        "collection",
        "connection",
        "filter",
        "limit",
        "ratelimit",
        "concurrency",
        "dry-run",
        "copy-mode",
        "key-field",
        "cpuprofile",
    }
)


class BucketSettings(BaseModel):
    """Credentials and location of one bucket."""

    model_config = ConfigDict(frozen=True, extra="forbid", coerce_numbers_to_str=True)

    key: str = ""
    secret: str = ""
    region: str = ""
    bucket: str = ""
    endpoint: str = DEFAULT_ENDPOINT

    def to_connection_params(self) -> S3ConnectionParams:
        return S3ConnectionParams(
            key=self.key,
            secret=self.secret,
            region=self.region,
            bucket=self.bucket,
            endpoint=self.endpoint or DEFAULT_ENDPOINT,
        )

    def describe(self) -> str:
        return self.to_connection_params().describe()


class MigrationSettings(BaseModel):
    """
    Fully resolved settings for one invocation.

    Attributes:
        source: Source bucket settings.
        destination: Destination bucket settings.
        database: MongoDB database name.
        collection: Collection holding the records.
        connection: MongoDB connection string.
        filter: Query filter as a JSON document.
        limit: Cursor batch size.
        ratelimit: Records started per second; 0 disables the limit.
        concurrency: Worker count; 0 means one per CPU.
        dry_run: Decide without writing.
        copy_mode: How bytes reach the destination.
        key_field: Document field holding the storage key.
        cpuprofile: Path to write a CPU profile to, if any.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: BucketSettings = Field(default_factory=BucketSettings)
    destination: BucketSettings = Field(default_factory=BucketSettings)
    database: str = ""
    collection: str = ""
    connection: str = ""
    filter: str = DEFAULT_FILTER
    limit: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    ratelimit: float = Field(default=0, ge=0)
    concurrency: int = Field(default=0, ge=0)
    dry_run: bool = False
    copy_mode: CopyMode = CopyMode.STREAM
    key_field: str = Field(default=DEFAULT_KEY_FIELD, min_length=1)
    cpuprofile: str | None = None

    @classmethod
    def from_flat(cls, values: Mapping[str, Any]) -> MigrationSettings:
        """
        Build settings from flat, hyphenated keys.

        Keys may use hyphens or underscores. None values are treated as
        unset.

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid.
        """
        nested: dict[str, Any] = {"source": {}, "destination": {}}
        for raw_key, value in values.items():
            if value is None:
                continue
            key = normalize_key(raw_key)
            for prefix, target in _BUCKET_PREFIXES.items():
                if key.startswith(prefix):
                    nested[target][key[len(prefix) :]] = value
                    break
            else:
                if key not in _TOP_LEVEL_KEYS:
                    raise ConfigurationError(f"Unknown configuration key: {raw_key}")
                nested[key.replace("-", "_")] = value

        try:
            return cls.model_validate(nested)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def require_complete(self) -> None:
        """
        Check that everything needed to run a migration is set.

        Raises:
            ConfigurationError: Naming every missing setting.
        """
        missing = [
            name
            for name, value in (
                ("source-bucket", self.source.bucket),
                ("dest-bucket", self.destination.bucket),
                ("database", self.database),
                ("collection", self.collection),
                ("connection", self.connection),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    def parse_filter(self) -> dict[str, Any]:
        return parse_filter(self.filter)


def normalize_key(key: str) -> str:
    return key.strip().lower().replace("_", "-")


def default_config_paths() -> list[Path]:
    """Locations searched when no config file is given: home, then the program's directory."""
    paths = [Path.home() / CONFIG_FILE_NAME]
    if sys.argv and sys.argv[0]:
        paths.append(Path(sys.argv[0]).resolve().parent / CONFIG_FILE_NAME)
    return paths


def load_config_file(path: str | Path | None = None) -> dict[str, Any]:
    """
    Read a YAML config file into a flat mapping with normalized keys.

    Args:
        path: Explicit file. When None the default locations are searched
            and a missing file is not an error.

    Returns:
        Mapping of hyphenated keys to values; empty if no file was found.

    Raises:
        ConfigurationError: If an explicit file is missing, or any file is
            unreadable, not valid YAML or not a mapping.
    """
    if path is not None:
        candidate = Path(path)
        if not candidate.is_file():
            raise ConfigurationError(f"Config file not found: {candidate}")
    else:
        candidate = next((p for p in default_config_paths() if p.is_file()), None)
        if candidate is None:
            logger.debug("No %s found in default locations", CONFIG_FILE_NAME)
            return {}

    try:
        data = yaml.safe_load(candidate.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read config file {candidate}: {e}") from e

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Config file {candidate} must contain a mapping")

    logger.info("Using config file: %s", candidate)
    return {normalize_key(str(k)): v for k, v in data.items()}


def resolve_settings(
    file_values: Mapping[str, Any],
    overrides: Mapping[str, Any],
) -> MigrationSettings:
    """
    Layer explicitly given values over config file values.

    Args:
        file_values: Output of load_config_file().
        overrides: Flag and environment values; None means not given.
    """
    merged = {normalize_key(k): v for k, v in file_values.items()}
    merged.update({normalize_key(k): v for k, v in overrides.items() if v is not None})
    return MigrationSettings.from_flat(merged)


def parse_filter(text: str) -> dict[str, Any]:
    """
    Decode a JSON query filter.

    The filter is passed to the database untouched; only its syntax is
    checked here.

    Raises:
        ConfigurationError: If the text is not a JSON object.
    """
    try:
        value = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Error parsing filter configuration: {e}") from e
    if not isinstance(value, dict):
        raise ConfigurationError("Error parsing filter configuration: filter must be a JSON object")
    logger.debug("Successfully parsed filter configuration: %s", value)
    return value


__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_FILTER",
    "BucketSettings",
    "MigrationSettings",
    "default_config_paths",
    "load_config_file",
    "normalize_key",
    "parse_filter",
    "resolve_settings",
]
