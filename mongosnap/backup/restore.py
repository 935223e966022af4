# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Restore Orchestrator - Replace the data directory from an archive.

Sequence:
1. Validate privileges, the archive (including its entry names) and the
   target data directory
2. Stop the database service
3. Move the existing data directory aside (<dir>_data_backup_<ts>)
4. Extract the archive into the emptied directory
5. Give the service account access to the files (best-effort)
6. Start the database service
7. Smoke-test connectivity (failure is reported, never rolled back)

A failing run always makes a final attempt to start the service before
returning; a service that is already running is left alone.
"""

import time
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List

import aiofiles.os
import structlog
from ulid import ULID

from mongosnap.backup.archive import extract_archive, inspect_archive, relocate_data_directory
from mongosnap.config import MongoSnapConfig
from mongosnap.database import DatabaseLockCoordinator
from mongosnap.exceptions import MongoSnapError, ValidationError
from mongosnap.privileges import require_admin
from mongosnap.service import ServiceController, ensure_running


class RestoreState(str, Enum):
    """States of one restore run."""

    IDLE = "idle"
    VALIDATING = "validating"
    STOPPING = "stopping"
    RELOCATING = "relocating"
    EXTRACTING = "extracting"
    REPAIRING_PERMISSIONS = "repairing_permissions"
    STARTING = "starting"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RestoreResult:
    """Result of a restore run."""

    operation_id: str
    success: bool
    data_directory: Path | None = None
    relocated_to: Path | None = None
    restored_files: List[str] = field(default_factory=list)
    verified: bool = False
    service_running: bool = False
    error: str | None = None
    states: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class RestoreOrchestrator:
    """Runs one restore from archive to live data directory."""

    def __init__(
        self,
        config: MongoSnapConfig,
        coordinator: DatabaseLockCoordinator,
        service_controller: ServiceController,
        privilege_check: Callable[[], None] = require_admin,
        logger: Any = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.coordinator = coordinator
        self.service_controller = service_controller
        self.service_name = config.service_name or service_controller.default_service_name
        self.privilege_check = privilege_check
        self.logger = logger or structlog.get_logger().bind(component="restore")
        self.now = now
        self.state = RestoreState.IDLE
        self._states: List[str] = []

    def _enter(self, state: RestoreState, log: Any) -> None:
        self.state = state
        self._states.append(state.value)
        log.debug("restore_state", state=state.value)

    async def run(self, archive_path: str | Path | None) -> RestoreResult:
        """
        Restore archive_path into the database's data directory.

        Never raises for run failures: the outcome and diagnostic text are
        returned in the RestoreResult.
        """
        operation_id = str(ULID())
        log = self.logger.bind(operation_id=operation_id, service=self.service_name)
        started = time.monotonic()
        self._states = []
        self._enter(RestoreState.IDLE, log)

        result = RestoreResult(operation_id=operation_id, success=False)
        log.info("restore_started", archive_path=str(archive_path))

        try:
            await self._run(archive_path, result, log)
            result.success = True
            self._enter(RestoreState.DONE, log)
        except MongoSnapError as e:
            result.error = str(e)
        except Exception as e:
            result.error = f"Restore failed: {e}"
        finally:
            try:
                if not result.success and not result.service_running:
                    log.warning("service_compensating_start")
                    result.service_running = await ensure_running(
                        self.service_controller,
                        self.service_name,
                        self.config.service_timeout,
                        log,
                    )
            finally:
                await self.coordinator.close()

        if not result.success:
            self._enter(RestoreState.FAILED, log)

        result.states = list(self._states)
        result.duration_seconds = time.monotonic() - started

        if result.success:
            log.info(
                "restore_completed",
                data_directory=str(result.data_directory),
                relocated_to=str(result.relocated_to) if result.relocated_to else None,
                files=len(result.restored_files),
                verified=result.verified,
                duration=result.duration_seconds,
            )
        else:
            log.error(
                "restore_failed",
                error=result.error,
                service_running=result.service_running,
                duration=result.duration_seconds,
            )
        return result

    async def _run(self, archive_path: str | Path | None, result: RestoreResult, log: Any) -> None:
        self._enter(RestoreState.VALIDATING, log)
        self.privilege_check()

        if archive_path is None or not str(archive_path).strip():
            raise ValidationError("Archive path is required")
        archive = Path(archive_path)
        if not await aiofiles.os.path.isfile(archive):
            raise ValidationError(
                f"Backup file '{archive_path}' does not exist.",
                details={"archive_path": str(archive_path)},
            )
        if not zipfile.is_zipfile(archive):
            raise ValidationError(
                f"Backup file '{archive_path}' is not a valid archive.",
                details={"archive_path": str(archive_path)},
            )
        entries = await inspect_archive(archive)
        log.info("archive_inspected", entries=len(entries))

        if self.config.data_directory is not None:
            data_dir = Path(self.config.data_directory)
        else:
            # The server must still be up to report its dbPath
            connection = await self.coordinator.connect()
            data_dir = Path(await self.coordinator.get_data_directory(connection))
            await self.coordinator.close()
        result.data_directory = data_dir

        self._enter(RestoreState.STOPPING, log)
        await self.service_controller.stop(self.service_name, self.config.service_timeout)

        self._enter(RestoreState.RELOCATING, log)
        result.relocated_to = await relocate_data_directory(data_dir, self.now(), log=log)

        self._enter(RestoreState.EXTRACTING, log)
        result.restored_files = await extract_archive(archive, data_dir, log=log)

        self._enter(RestoreState.REPAIRING_PERMISSIONS, log)
        try:
            await self.service_controller.grant_access(self.service_name, str(data_dir))
        except Exception as e:
            log.warning("permission_repair_failed", path=str(data_dir), error=str(e))

        self._enter(RestoreState.STARTING, log)
        await self.service_controller.start(self.service_name, self.config.service_timeout)
        result.service_running = True

        self._enter(RestoreState.VERIFYING, log)
        if self.config.verify_after_restore:
            result.verified = await self._verify(log)

    async def _verify(self, log: Any) -> bool:
        try:
            connection = await self.coordinator.connect()
            names = await self.coordinator.list_database_names(connection)
        except Exception as e:
            log.warning("restore_verification_failed", error=str(e))
            return False
        log.info("restore_verified", databases=names)
        return True
