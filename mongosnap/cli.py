# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap CLI.

Commands:
    backup <backupDir> [connectionString]
    restore <archivePath> [connectionString]
    list-snapshots
    delete-snapshots

Exit status is 0 when the command succeeded and 1 when it failed; usage
errors exit through click before any side effect.
"""

import asyncio
import sys
from typing import Awaitable, Callable, TypeVar

import click
import structlog

from mongosnap.config import MongoSnapConfig
from mongosnap.core import delete_snapshots, list_snapshots, run_backup, run_restore
from mongosnap.env import create_config_from_env
from mongosnap.exceptions import MongoSnapError
from mongosnap.log import configure_logging

T = TypeVar("T")

logger = structlog.get_logger()


def _load_config(connection_string: str | None) -> MongoSnapConfig:
    try:
        return create_config_from_env(connection_string=connection_string)
    except MongoSnapError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def _run(coro_factory: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine; no error escapes past this point."""
    try:
        return asyncio.run(coro_factory())
    except MongoSnapError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("command_crashed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option(
    "--log-level",
    default="INFO",
    envvar="MONGOSNAP_LOG_LEVEL",
    show_default=True,
    help="Log level (DEBUG, INFO, WARNING, ERROR).",
)
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines.")
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_logs: bool) -> None:
    """Point-in-time backup and restore of MongoDB data files via volume snapshots."""
    configure_logging(level=log_level, json_logs=json_logs)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


@cli.command()
@click.argument("backup_dir")
@click.argument("connection_string", required=False)
def backup(backup_dir: str, connection_string: str | None) -> None:
    """Back up the data directory into BACKUP_DIR.

    CONNECTION_STRING defaults to mongodb://localhost:27017.
    """
    config = _load_config(connection_string)
    result = _run(lambda: run_backup(config, backup_dir))

    if result.success:
        click.echo(f"Backup completed successfully: {result.archive.path}")
        click.echo(f"Duration {result.duration_seconds:.1f}s")
        sys.exit(0)
    click.echo(f"Backup failed: {result.error}", err=True)
    sys.exit(1)


@cli.command()
@click.argument("archive_path")
@click.argument("connection_string", required=False)
def restore(archive_path: str, connection_string: str | None) -> None:
    """Restore the data directory from ARCHIVE_PATH.

    CONNECTION_STRING defaults to mongodb://localhost:27017.
    """
    config = _load_config(connection_string)
    result = _run(lambda: run_restore(config, archive_path))

    if result.success:
        click.echo(f"Restore completed successfully into {result.data_directory}")
        if result.relocated_to:
            click.echo(f"Previous data kept at {result.relocated_to}")
        if not result.verified:
            click.echo("Warning: connectivity check after restore did not pass", err=True)
        sys.exit(0)
    click.echo(f"Restore failed: {result.error}", err=True)
    sys.exit(1)


@cli.command("list-snapshots")
def list_snapshots_command() -> None:
    """List volume snapshot sets present on this host."""
    config = _load_config(None)
    handles = _run(lambda: list_snapshots(config))

    if not handles:
        click.echo("No snapshot sets found.")
        return
    for handle in handles:
        click.echo(
            f"{handle.set_id}  {handle.snapshot_id}  {handle.volume_root}  "
            f"{handle.device_object_path}  {handle.created_at.isoformat()}"
        )


@cli.command("delete-snapshots")
def delete_snapshots_command() -> None:
    """Delete every volume snapshot set on this host."""
    config = _load_config(None)
    deleted = _run(lambda: delete_snapshots(config))
    click.echo(f"Deleted {deleted} snapshot set(s).")


def main() -> None:
    cli(prog_name="mongosnap")


if __name__ == "__main__":
    main()


__all__ = ["cli", "main"]
