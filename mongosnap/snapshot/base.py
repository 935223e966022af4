# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Volume snapshot capability.

Snapshots are volume-scoped: backends snapshot the whole volume that holds
the data directory and the caller resolves the directory inside it with
resolve_snapshot_path. Orchestrators depend only on SnapshotProvider, so a
backend can be swapped per platform without touching them.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath, PurePosixPath
from typing import Any, AsyncIterator, List, Type

import structlog

from mongosnap.exceptions import PathResolutionError, ProviderError


@dataclass(frozen=True)
class SnapshotHandle:
    """One snapshot set holding a single volume snapshot."""

    set_id: str
    snapshot_id: str
    volume_root: str
    device_object_path: str  # Where the snapshot's files are readable
    created_at: datetime


class SnapshotProvider(ABC):
    """Base interface for volume snapshot backends."""

    # Path flavour used to compare live paths against the volume root
    path_type: Type[PurePath] = PurePosixPath

    def __init__(self, logger: Any = None) -> None:
        self.logger = logger or structlog.get_logger().bind(component="snapshot")

    @abstractmethod
    async def volume_root(self, path: str) -> str:
        """Return the root of the volume holding path."""

    @abstractmethod
    async def create_snapshot(self, volume_root: str) -> SnapshotHandle:
        """
        Create one snapshot set containing exactly one snapshot of volume_root.

        Raises:
            ProviderError: If the snapshot cannot be created
        """

    @abstractmethod
    async def delete_snapshot(self, handle: SnapshotHandle) -> None:
        """
        Delete a snapshot set.

        Raises:
            ProviderError: If deletion fails
        """

    @abstractmethod
    async def list_snapshot_sets(self) -> List[SnapshotHandle]:
        """Enumerate snapshot sets currently present on the host."""

    def volume_relative_path(self, volume_root: str, live_path: str) -> PurePath:
        """
        Return live_path relative to volume_root.

        Raises:
            PathResolutionError: If live_path is not under volume_root
        """
        try:
            return self.path_type(live_path).relative_to(self.path_type(volume_root))
        except ValueError as e:
            raise PathResolutionError(
                f"Path {live_path!r} is not on snapshotted volume {volume_root!r}",
                details={"volume_root": volume_root, "live_path": live_path},
            ) from e

    def resolve_snapshot_path(self, handle: SnapshotHandle, live_path: str) -> str:
        """
        Map a live path to the same location inside the snapshot.

        The volume-root prefix is stripped from live_path and the remainder
        appended to the snapshot's device object path.

        Raises:
            PathResolutionError: If live_path is not on the snapshotted volume
        """
        relative = self.volume_relative_path(handle.volume_root, live_path)

        sep = "\\" if self.path_type is not PurePosixPath else "/"
        device = handle.device_object_path.rstrip("\\/")
        if not relative.parts:
            return device
        return device + sep + sep.join(relative.parts)

    async def delete_all_snapshot_sets(self) -> int:
        """
        Delete every snapshot set reported by list_snapshot_sets.

        Idempotent: with nothing to delete this is a no-op returning 0.
        Individual failures are logged and the remaining sets are still
        attempted.

        Returns:
            Number of sets deleted
        """
        handles = await self.list_snapshot_sets()
        deleted = 0
        failures: List[str] = []

        for handle in handles:
            try:
                await self.delete_snapshot(handle)
                deleted += 1
            except ProviderError as e:
                failures.append(handle.set_id)
                self.logger.warning(
                    "snapshot_delete_failed",
                    set_id=handle.set_id,
                    error=str(e),
                )

        self.logger.info(
            "snapshot_sets_deleted",
            deleted=deleted,
            failed=len(failures),
        )

        if failures:
            raise ProviderError(
                f"Failed to delete {len(failures)} of {len(handles)} snapshot sets",
                details={"set_ids": failures},
            )
        return deleted


async def release_snapshot(
    provider: SnapshotProvider,
    handle: SnapshotHandle,
    logger: Any,
) -> bool:
    """
    Best-effort snapshot deletion.

    Failures are logged, never raised, so they cannot block the rest of
    cleanup or replace an earlier error.

    Returns:
        True if the snapshot set was deleted
    """
    try:
        await provider.delete_snapshot(handle)
        logger.info("snapshot_deleted", set_id=handle.set_id)
        return True
    except Exception as e:
        logger.error(
            "snapshot_cleanup_failed",
            set_id=handle.set_id,
            error=str(e),
        )
        return False


@asynccontextmanager
async def snapshot_scope(
    provider: SnapshotProvider,
    volume_root: str,
    logger: Any,
    timeout: float | None = None,
) -> AsyncIterator[SnapshotHandle]:
    """
    Create a snapshot and guarantee its deletion on every exit path.

    Args:
        provider: Snapshot backend
        volume_root: Volume to snapshot
        logger: Bound logger for this run
        timeout: Optional bound on snapshot creation (None: wait forever)

    Raises:
        ProviderError: If creation fails or exceeds timeout
    """
    logger.info("snapshot_creating", volume_root=volume_root)
    try:
        handle = await asyncio.wait_for(provider.create_snapshot(volume_root), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ProviderError(
            f"Snapshot creation exceeded {timeout}s",
            details={"volume_root": volume_root},
        ) from e

    logger.info(
        "snapshot_created",
        set_id=handle.set_id,
        snapshot_id=handle.snapshot_id,
        device_object_path=handle.device_object_path,
    )
    try:
        yield handle
    finally:
        await release_snapshot(provider, handle, logger)
