# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command line dispatch tests.

Orchestrator entry points are replaced so no database, snapshot or
service is touched.
"""

from datetime import datetime, UTC
from pathlib import Path
from typing import Generator

import pytest
import structlog
from click.testing import CliRunner

from mongosnap import cli as cli_module
from mongosnap.backup import BackupArchive, BackupResult, RestoreResult
from mongosnap.cli import cli
from mongosnap.exceptions import PrivilegeError
from mongosnap.snapshot import SnapshotHandle


@pytest.fixture
def runner(monkeypatch) -> Generator[CliRunner, None, None]:
    monkeypatch.delenv("MONGOSNAP_CONNECTION_STRING", raising=False)
    monkeypatch.delenv("MONGOSNAP_SNAPSHOT_TIMEOUT", raising=False)
    yield CliRunner()
    # The group configures logging against the runner's captured stderr
    structlog.reset_defaults()


# ============================================================================
# Usage
# ============================================================================


def test_no_command_prints_usage(runner):
    result = runner.invoke(cli, [])

    assert result.exit_code == 0
    assert "backup" in result.output
    assert "restore" in result.output


def test_backup_requires_directory(runner):
    result = runner.invoke(cli, ["backup"])

    assert result.exit_code == 2
    assert "Missing argument" in result.output


def test_unknown_command_fails(runner):
    result = runner.invoke(cli, ["compact"])

    assert result.exit_code != 0


# ============================================================================
# backup / restore
# ============================================================================


def test_backup_success_exit_zero(runner, monkeypatch):
    seen = {}

    async def fake_run_backup(config, backup_dir):
        seen["connection_string"] = config.connection_string
        seen["backup_dir"] = backup_dir
        return BackupResult(
            operation_id="op",
            success=True,
            archive=BackupArchive(
                path=Path("/backups/mongodb_backup_20240101_000000.zip"),
                created_at=datetime(2024, 1, 1),
                source_volume_relative_path="var/lib/mongodb",
            ),
        )

    monkeypatch.setattr(cli_module, "run_backup", fake_run_backup)

    result = runner.invoke(cli, ["backup", "/backups", "mongodb://db1:27017"])

    assert result.exit_code == 0, result.output
    assert "Backup completed successfully" in result.output
    assert seen == {"connection_string": "mongodb://db1:27017", "backup_dir": "/backups"}


def test_backup_defaults_connection_string(runner, monkeypatch):
    seen = {}

    async def fake_run_backup(config, backup_dir):
        seen["connection_string"] = config.connection_string
        return BackupResult(operation_id="op", success=False, error="Backup directory '/x' is invalid or does not exist.")

    monkeypatch.setattr(cli_module, "run_backup", fake_run_backup)

    result = runner.invoke(cli, ["backup", "/x"])

    assert result.exit_code == 1
    assert "does not exist" in result.output
    assert seen["connection_string"] == "mongodb://localhost:27017"


def test_restore_failure_exit_one(runner, monkeypatch):
    async def fake_run_restore(config, archive_path):
        return RestoreResult(operation_id="op", success=False, error="Backup file 'x.zip' does not exist.")

    monkeypatch.setattr(cli_module, "run_restore", fake_run_restore)

    result = runner.invoke(cli, ["restore", "x.zip"])

    assert result.exit_code == 1
    assert "Restore failed" in result.output


def test_restore_success_reports_relocation(runner, monkeypatch):
    async def fake_run_restore(config, archive_path):
        return RestoreResult(
            operation_id="op",
            success=True,
            data_directory=Path("/data/db"),
            relocated_to=Path("/data/db_data_backup_20240101_000000"),
            verified=True,
            service_running=True,
        )

    monkeypatch.setattr(cli_module, "run_restore", fake_run_restore)

    result = runner.invoke(cli, ["restore", "x.zip"])

    assert result.exit_code == 0
    assert "db_data_backup_20240101_000000" in result.output


def test_invalid_environment_exits_one(runner, monkeypatch):
    monkeypatch.setenv("MONGOSNAP_SNAPSHOT_TIMEOUT", "never")

    result = runner.invoke(cli, ["backup", "/backups"])

    assert result.exit_code == 1
    assert "Configuration error" in result.output


# ============================================================================
# Snapshot maintenance
# ============================================================================


def test_list_snapshots(runner, monkeypatch):
    async def fake_list(config):
        return [
            SnapshotHandle(
                set_id="{set-1}",
                snapshot_id="{snap-1}",
                volume_root="C:\\",
                device_object_path="\\\\?\\GLOBALROOT\\Device\\HarddiskVolumeShadowCopy1",
                created_at=datetime(2024, 1, 1, tzinfo=UTC),
            )
        ]

    monkeypatch.setattr(cli_module, "list_snapshots", fake_list)

    result = runner.invoke(cli, ["list-snapshots"])

    assert result.exit_code == 0
    assert "{set-1}" in result.output


def test_delete_snapshots_reports_count(runner, monkeypatch):
    async def fake_delete(config):
        return 0

    monkeypatch.setattr(cli_module, "delete_snapshots", fake_delete)

    result = runner.invoke(cli, ["delete-snapshots"])

    assert result.exit_code == 0
    assert "Deleted 0 snapshot set(s)." in result.output


def test_errors_do_not_escape(runner, monkeypatch):
    async def fake_delete(config):
        raise PrivilegeError("must be elevated")

    monkeypatch.setattr(cli_module, "delete_snapshots", fake_delete)

    result = runner.invoke(cli, ["delete-snapshots"])

    assert result.exit_code == 1
    assert "must be elevated" in result.output
    assert not isinstance(result.exception, PrivilegeError)
