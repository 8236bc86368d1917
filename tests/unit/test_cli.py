"""
Unit tests for the s3-migrate command.

The migration itself is patched out; these tests cover option handling,
settings precedence, output and exit codes.
"""

import json
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from s3migrate.cli import app, run_with_profile
from s3migrate.config import MigrationSettings
from s3migrate.models import CopyMode, MigrationReport

REQUIRED = [
    "-b", "old-bucket",
    "-B", "new-bucket",
    "-d", "storage",
    "-c", "objects",
    "-m", "mongodb://localhost:27017",
]  # fmt: skip


def make_report(total: int = 3, *, cancelled: bool = False) -> MigrationReport:
    start = datetime(2025, 1, 1, tzinfo=UTC)
    return MigrationReport(
        total_objects=total,
        copied=total,
        skipped=0,
        already_in_destination=0,
        errors=0,
        start_time=start,
        end_time=start + timedelta(seconds=2),
        duration=timedelta(seconds=2),
        processed=total,
        cancelled=cancelled,
    )


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep the default config search away from the real home directory."""
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
    monkeypatch.setattr("sys.argv", [str(tmp_path / "s3-migrate")])
    for name in ("DATABASE", "DRY_RUN", "SOURCE_BUCKET", "DEST_BUCKET"):
        monkeypatch.delenv(f"S3MIGRATE_{name}", raising=False)
    return tmp_path


class TestMigrateCommand:
    """Tests for the migrate command."""

    def test_runs_with_flags_and_prints_summary(self, runner: CliRunner) -> None:
        with patch("s3migrate.cli.run_with_profile", return_value=make_report()) as run:
            result = runner.invoke(app, [*REQUIRED, "--ratelimit", "5", "--concurrency", "3"])

        assert result.exit_code == 0, result.output
        settings: MigrationSettings = run.call_args.args[0]
        assert settings.source.bucket == "old-bucket"
        assert settings.destination.bucket == "new-bucket"
        assert settings.ratelimit == 5
        assert settings.concurrency == 3
        assert "Migration Configuration:" in result.output
        assert "Migration Summary Report:" in result.output
        assert "Migration completed!" in result.output

    def test_missing_settings_exit_with_error(self, runner: CliRunner) -> None:
        with patch("s3migrate.cli.run_with_profile") as run:
            result = runner.invoke(app, ["-b", "old-bucket"])

        assert result.exit_code == 1
        run.assert_not_called()

    def test_invalid_filter_exits_before_connecting(self, runner: CliRunner) -> None:
        with patch("s3migrate.cli.run_with_profile") as run:
            result = runner.invoke(app, [*REQUIRED, "-f", "{broken"])

        assert result.exit_code == 1
        run.assert_not_called()

    def test_zero_objects_message(self, runner: CliRunner) -> None:
        with patch("s3migrate.cli.run_with_profile", return_value=make_report(0)):
            result = runner.invoke(app, REQUIRED)

        assert result.exit_code == 0
        assert "Zero objects found to migrate. Exiting." in result.output
        assert "Migration Summary Report:" not in result.output

    def test_cancelled_run_exit_code(self, runner: CliRunner) -> None:
        with patch("s3migrate.cli.run_with_profile", return_value=make_report(cancelled=True)):
            result = runner.invoke(app, REQUIRED)

        assert result.exit_code == 130

    def test_cursor_failure_prints_summary_and_fails(self, runner: CliRunner) -> None:
        report = replace(make_report(), cursor_error="Query iterate failed: connection reset")
        with patch("s3migrate.cli.run_with_profile", return_value=report):
            result = runner.invoke(app, REQUIRED)

        assert result.exit_code == 1
        assert "Migration Summary Report:" in result.output
        assert "Migration incomplete!" in result.output

    def test_report_json_written(self, runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "report.json"
        with patch("s3migrate.cli.run_with_profile", return_value=make_report(4)):
            result = runner.invoke(app, [*REQUIRED, "--report-json", str(target)])

        assert result.exit_code == 0
        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["total_objects"] == 4
        assert data["duration"] == 2.0

    def test_dry_run_and_copy_mode_flags(self, runner: CliRunner) -> None:
        with patch("s3migrate.cli.run_with_profile", return_value=make_report()) as run:
            result = runner.invoke(app, [*REQUIRED, "--dry-run", "--copy-mode", "auto"])

        assert result.exit_code == 0, result.output
        settings = run.call_args.args[0]
        assert settings.dry_run is True
        assert settings.copy_mode is CopyMode.AUTO
        assert "Dry Run: Enabled" in result.output

    def test_fatal_error_is_reported(self, runner: CliRunner) -> None:
        from s3migrate.exceptions import StoreConnectionError

        with patch(
            "s3migrate.cli.run_with_profile",
            side_effect=StoreConnectionError("MongoDB", "timed out"),
        ):
            result = runner.invoke(app, REQUIRED)

        assert result.exit_code == 1
        assert "Failed to connect to MongoDB" in result.output


class TestSettingsPrecedence:
    """Flags > environment > config file > defaults."""

    def write_config(self, path: Path) -> Path:
        path.write_text(
            "source-bucket: file-old\n"
            "dest-bucket: file-new\n"
            "database: file-db\n"
            "collection: objects\n"
            "connection: mongodb://localhost\n"
            "limit: 25\n",
            encoding="utf-8",
        )
        return path

    def test_config_file_values_are_used(self, runner: CliRunner, tmp_path: Path) -> None:
        config = self.write_config(tmp_path / "custom.yaml")
        with patch("s3migrate.cli.run_with_profile", return_value=make_report()) as run:
            result = runner.invoke(app, ["--config", str(config)])

        assert result.exit_code == 0, result.output
        settings = run.call_args.args[0]
        assert settings.database == "file-db"
        assert settings.limit == 25

    def test_default_config_location(self, runner: CliRunner, isolated_config: Path) -> None:
        self.write_config(isolated_config / "s3-migrate.yaml")
        with patch("s3migrate.cli.run_with_profile", return_value=make_report()) as run:
            result = runner.invoke(app, [])

        assert result.exit_code == 0, result.output
        assert run.call_args.args[0].source.bucket == "file-old"

    def test_env_overrides_file_and_flag_overrides_env(
        self, runner: CliRunner, tmp_path: Path
    ) -> None:
        config = self.write_config(tmp_path / "custom.yaml")
        env = {"S3MIGRATE_DATABASE": "env-db", "S3MIGRATE_SOURCE_BUCKET": "env-old"}
        with patch("s3migrate.cli.run_with_profile", return_value=make_report()) as run:
            result = runner.invoke(
                app, ["--config", str(config), "-b", "flag-old"], env=env
            )

        assert result.exit_code == 0, result.output
        settings = run.call_args.args[0]
        assert settings.database == "env-db"
        assert settings.source.bucket == "flag-old"
        assert settings.destination.bucket == "file-new"


class TestRunWithProfile:
    def test_writes_cpu_profile(self, tmp_path: Path) -> None:
        profile = tmp_path / "profile.cpu"
        settings = MigrationSettings(cpuprofile=str(profile))
        with patch("s3migrate.cli.execute", new=AsyncMock(return_value=make_report())):
            report = run_with_profile(settings, show_progress=False)

        assert report.copied == 3
        assert profile.exists()

    def test_without_profile(self) -> None:
        with patch("s3migrate.cli.execute", new=AsyncMock(return_value=make_report(1))) as execute:
            report = run_with_profile(MigrationSettings(), show_progress=True)

        assert report.total_objects == 1
        execute.assert_awaited_once()
