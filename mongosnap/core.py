# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
mongosnap Core - Entry points that wire configuration to components.

This module picks the snapshot and service backends for the platform,
builds the lock coordinator and runs the orchestrators. It also exposes
the compensating list/delete operations for snapshot sets left behind by
an interrupted run.
"""

import sys
from pathlib import Path
from typing import Any, Callable, List

from mongosnap.backup.orchestrator import BackupOrchestrator, BackupResult
from mongosnap.backup.restore import RestoreOrchestrator, RestoreResult
from mongosnap.config import MongoSnapConfig, ServiceBackend, SnapshotBackend
from mongosnap.database import DatabaseLockCoordinator
from mongosnap.errors import explain_unsupported_platform
from mongosnap.exceptions import ConfigurationError
from mongosnap.log import get_logger
from mongosnap.privileges import require_admin
from mongosnap.service import ServiceController
from mongosnap.snapshot import SnapshotHandle, SnapshotProvider


def _resolve_snapshot_backend(backend: SnapshotBackend, platform: str) -> SnapshotBackend:
    if backend != SnapshotBackend.AUTO:
        return backend
    if platform == "win32":
        return SnapshotBackend.VSS
    if platform.startswith("linux"):
        return SnapshotBackend.LVM
    raise ConfigurationError(explain_unsupported_platform("snapshot", platform))


def _resolve_service_backend(backend: ServiceBackend, platform: str) -> ServiceBackend:
    if backend != ServiceBackend.AUTO:
        return backend
    if platform == "win32":
        return ServiceBackend.WINDOWS
    if platform.startswith("linux"):
        return ServiceBackend.SYSTEMD
    raise ConfigurationError(explain_unsupported_platform("service", platform))


def create_snapshot_provider(
    config: MongoSnapConfig,
    platform: str = sys.platform,
    logger: Any = None,
) -> SnapshotProvider:
    """
    Build the snapshot backend selected by config.

    Raises:
        ConfigurationError: If no backend fits the platform
    """
    logger = logger or get_logger("snapshot")
    backend = _resolve_snapshot_backend(config.snapshot_backend, platform)

    if backend == SnapshotBackend.VSS:
        from mongosnap.snapshot.vss import VssSnapshotProvider

        return VssSnapshotProvider(logger=logger)

    from mongosnap.snapshot.lvm import LvmSnapshotProvider

    return LvmSnapshotProvider(
        mount_base=config.lvm_mount_base,
        snapshot_size=config.lvm_snapshot_size,
        logger=logger,
    )


def create_service_controller(
    config: MongoSnapConfig,
    platform: str = sys.platform,
    logger: Any = None,
) -> ServiceController:
    """
    Build the service backend selected by config.

    Raises:
        ConfigurationError: If no backend fits the platform
    """
    logger = logger or get_logger("service")
    backend = _resolve_service_backend(config.service_backend, platform)

    if backend == ServiceBackend.WINDOWS:
        from mongosnap.service.windows import WindowsServiceController

        return WindowsServiceController(poll_interval=config.poll_interval, logger=logger)

    from mongosnap.service.systemd import SystemdServiceController

    return SystemdServiceController(poll_interval=config.poll_interval, logger=logger)


def create_lock_coordinator(config: MongoSnapConfig, logger: Any = None) -> DatabaseLockCoordinator:
    return DatabaseLockCoordinator(
        config.connection_string,
        lock_timeout=config.lock_timeout,
        logger=logger or get_logger("database"),
    )


async def run_backup(
    config: MongoSnapConfig,
    backup_dir: str | Path | None,
    *,
    snapshot_provider: SnapshotProvider | None = None,
    coordinator: DatabaseLockCoordinator | None = None,
    privilege_check: Callable[[], None] = require_admin,
    logger: Any = None,
) -> BackupResult:
    """
    Run a complete backup into backup_dir.

    Backends that are not passed in are built from config.
    """
    orchestrator = BackupOrchestrator(
        config,
        coordinator or create_lock_coordinator(config),
        snapshot_provider or create_snapshot_provider(config),
        privilege_check=privilege_check,
        logger=logger,
    )
    return await orchestrator.run(backup_dir)


async def run_restore(
    config: MongoSnapConfig,
    archive_path: str | Path | None,
    *,
    service_controller: ServiceController | None = None,
    coordinator: DatabaseLockCoordinator | None = None,
    privilege_check: Callable[[], None] = require_admin,
    logger: Any = None,
) -> RestoreResult:
    """
    Run a complete restore from archive_path.

    Backends that are not passed in are built from config.
    """
    orchestrator = RestoreOrchestrator(
        config,
        coordinator or create_lock_coordinator(config),
        service_controller or create_service_controller(config),
        privilege_check=privilege_check,
        logger=logger,
    )
    return await orchestrator.run(archive_path)


async def list_snapshots(
    config: MongoSnapConfig,
    *,
    snapshot_provider: SnapshotProvider | None = None,
    privilege_check: Callable[[], None] = require_admin,
) -> List[SnapshotHandle]:
    """Enumerate snapshot sets present on the host."""
    privilege_check()
    provider = snapshot_provider or create_snapshot_provider(config)
    return await provider.list_snapshot_sets()


async def delete_snapshots(
    config: MongoSnapConfig,
    *,
    snapshot_provider: SnapshotProvider | None = None,
    privilege_check: Callable[[], None] = require_admin,
) -> int:
    """
    Delete every snapshot set on the host.

    Idempotent: returns 0 when there is nothing to delete.
    """
    privilege_check()
    provider = snapshot_provider or create_snapshot_provider(config)
    return await provider.delete_all_snapshot_sets()
