# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Backup Orchestrator - Lock, snapshot, archive, release.

Sequence:
1. Validate privileges, the backup directory and the data directory
2. Lock the database (fsync lock)
3. Snapshot the volume holding the data directory
4. Archive the data directory's files from the snapshot
5. Delete the snapshot (best-effort)
6. Unlock the database (logged only)

Once the lock is acknowledged, unlock always runs exactly once, and a
created snapshot is always deleted, whatever happens in between.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List

import aiofiles.os
import structlog
from ulid import ULID

from mongosnap.backup.archive import archive_name, write_archive
from mongosnap.config import MongoSnapConfig
from mongosnap.database import DatabaseLockCoordinator
from mongosnap.exceptions import MongoSnapError, ProviderError, ValidationError
from mongosnap.privileges import require_admin
from mongosnap.snapshot import SnapshotProvider, snapshot_scope


class BackupState(str, Enum):
    """States of one backup run."""

    IDLE = "idle"
    VALIDATING = "validating"
    LOCKING = "locking"
    LOCKED = "locked"
    SNAPSHOTTING = "snapshotting"
    ARCHIVING = "archiving"
    SNAPSHOT_CLEANUP = "snapshot_cleanup"
    UNLOCKING = "unlocking"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class BackupArchive:
    """An archive produced by a successful backup run."""

    path: Path
    created_at: datetime
    source_volume_relative_path: str


@dataclass
class BackupResult:
    """Result of a backup run."""

    operation_id: str
    success: bool
    archive: BackupArchive | None = None
    entries: List[str] = field(default_factory=list)
    error: str | None = None
    states: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class BackupOrchestrator:
    """Runs one backup from live data directory to archive."""

    def __init__(
        self,
        config: MongoSnapConfig,
        coordinator: DatabaseLockCoordinator,
        snapshot_provider: SnapshotProvider,
        privilege_check: Callable[[], None] = require_admin,
        logger: Any = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.coordinator = coordinator
        self.snapshot_provider = snapshot_provider
        self.privilege_check = privilege_check
        self.logger = logger or structlog.get_logger().bind(component="backup")
        self.now = now
        self.state = BackupState.IDLE
        self._states: List[str] = []

    def _enter(self, state: BackupState, log: Any) -> None:
        self.state = state
        self._states.append(state.value)
        log.debug("backup_state", state=state.value)

    async def run(self, backup_dir: str | Path | None) -> BackupResult:
        """
        Run a backup into backup_dir.

        Never raises for run failures: the outcome and diagnostic text are
        returned in the BackupResult.
        """
        operation_id = str(ULID())
        log = self.logger.bind(operation_id=operation_id)
        started = time.monotonic()
        self._states = []
        self._enter(BackupState.IDLE, log)

        result = BackupResult(operation_id=operation_id, success=False)
        log.info("backup_started", backup_dir=str(backup_dir))

        try:
            archive, entries = await self._run(backup_dir, log)
            result.archive = archive
            result.entries = entries
            result.success = True
            self._enter(BackupState.DONE, log)
        except MongoSnapError as e:
            result.error = str(e)
        except Exception as e:
            result.error = f"Backup failed: {e}"
        finally:
            await self.coordinator.close()

        if not result.success:
            self._enter(BackupState.FAILED, log)

        result.states = list(self._states)
        result.duration_seconds = time.monotonic() - started

        if result.success:
            log.info(
                "backup_completed",
                archive=str(result.archive.path),
                entries=len(result.entries),
                duration=result.duration_seconds,
            )
        else:
            log.error(
                "backup_failed",
                error=result.error,
                failed_after=result.states[-2] if len(result.states) > 1 else None,
                duration=result.duration_seconds,
            )
        return result

    async def _run(self, backup_dir: str | Path | None, log: Any) -> tuple:
        self._enter(BackupState.VALIDATING, log)
        self.privilege_check()

        if backup_dir is None or not str(backup_dir).strip():
            raise ValidationError("Backup directory is required")
        backup_path = Path(backup_dir)
        if not await aiofiles.os.path.isdir(backup_path):
            raise ValidationError(
                f"Backup directory '{backup_dir}' is invalid or does not exist.",
                details={"backup_dir": str(backup_dir)},
            )

        connection = await self.coordinator.connect()
        data_dir = await self.coordinator.get_data_directory(connection)
        if not await aiofiles.os.path.isdir(data_dir):
            raise ValidationError(
                f"Source directory '{data_dir}' does not exist.",
                details={"data_directory": data_dir},
            )

        provider = self.snapshot_provider
        volume_root = await provider.volume_root(data_dir)
        if not await aiofiles.os.path.isdir(volume_root):
            raise ValidationError(f"Volume '{volume_root}' does not exist.")
        relative = str(provider.volume_relative_path(volume_root, data_dir))

        created_at = self.now()
        dest_path = backup_path / archive_name(self.config.archive_prefix, created_at)

        self._enter(BackupState.LOCKING, log)
        async with self.coordinator.lock_session(connection):
            self._enter(BackupState.LOCKED, log)
            try:
                self._enter(BackupState.SNAPSHOTTING, log)
                async with snapshot_scope(
                    provider,
                    volume_root,
                    log,
                    timeout=self.config.snapshot_timeout,
                ) as handle:
                    try:
                        snapshot_source = provider.resolve_snapshot_path(handle, data_dir)
                        if not await aiofiles.os.path.isdir(snapshot_source):
                            raise ProviderError(
                                f"Snapshot source path '{snapshot_source}' is not accessible.",
                                details={"set_id": handle.set_id},
                            )

                        self._enter(BackupState.ARCHIVING, log)
                        entries = await write_archive(
                            Path(snapshot_source),
                            dest_path,
                            exclude_extension=self.config.lock_extension,
                            log=log,
                        )
                    finally:
                        self._enter(BackupState.SNAPSHOT_CLEANUP, log)
            finally:
                self._enter(BackupState.UNLOCKING, log)

        archive = BackupArchive(
            path=dest_path,
            created_at=created_at,
            source_volume_relative_path=relative,
        )
        return archive, entries
