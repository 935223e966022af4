# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for mongosnap tests.

Provides an in-memory MongoDB admin handle, a directory-backed snapshot
backend and a scripted service controller so orchestrators can run end to
end against a temporary directory.
"""

import tempfile
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Generator, List

import pytest
from pymongo.errors import OperationFailure

from mongosnap.config import MongoSnapConfig
from mongosnap.database import DatabaseLockCoordinator
from mongosnap.exceptions import ProviderError, ServiceControlError
from mongosnap.service import ServiceController, ServiceStatus
from mongosnap.snapshot import SnapshotHandle, SnapshotProvider


def allow_all() -> None:
    """Privilege check that always passes."""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# Database fakes
# ============================================================================


class FakeAdmin:
    """Answers the admin commands the coordinator issues."""

    def __init__(self, db_path: str | None, refuse_lock: bool = False, fail_unlock: bool = False):
        self.db_path = db_path
        self.refuse_lock = refuse_lock
        self.fail_unlock = fail_unlock
        self.fail_list = False
        self.commands: List[str] = []

    async def command(self, cmd: Dict[str, Any]) -> Dict[str, Any]:
        name = next(iter(cmd))
        self.commands.append(name)

        if name == "getCmdLineOpts":
            storage = {"dbPath": self.db_path} if self.db_path else {}
            return {"parsed": {"storage": storage}, "ok": 1.0}
        if name == "fsync":
            if self.refuse_lock:
                raise OperationFailure("fsyncLock not allowed", code=13)
            return {"ok": 1.0, "lockCount": 1}
        if name == "fsyncUnlock":
            if self.fail_unlock:
                raise OperationFailure("not locked", code=125)
            return {"ok": 1.0, "lockCount": 0}
        if name == "listDatabases":
            if self.fail_list:
                raise OperationFailure("not authorized", code=13)
            return {"databases": [{"name": "admin"}, {"name": "local"}], "ok": 1.0}
        raise OperationFailure(f"no such command: {name}", code=59)

    def count(self, name: str) -> int:
        return self.commands.count(name)


class FakeClient:
    def __init__(self, admin: FakeAdmin):
        self.admin = admin
        self.closed = 0

    async def close(self) -> None:
        self.closed += 1


def make_coordinator(admin: FakeAdmin, lock_timeout: float | None = None) -> DatabaseLockCoordinator:
    client = FakeClient(admin)
    return DatabaseLockCoordinator(
        "mongodb://localhost:27017",
        client_factory=lambda _uri: client,
        lock_timeout=lock_timeout,
    )


# ============================================================================
# Snapshot fake
# ============================================================================


class DirectorySnapshotProvider(SnapshotProvider):
    """
    Treats a prepared directory as the snapshot's device object path.

    The directory mirrors the live volume, so tests control what the
    backup reads from the "snapshot".
    """

    def __init__(self, volume_root: Path, device_path: Path, fail_create: bool = False, fail_delete: bool = False):
        super().__init__()
        self._volume_root = str(volume_root)
        self.device_path = device_path
        self.fail_create = fail_create
        self.fail_delete = fail_delete
        self.created: List[SnapshotHandle] = []
        self.deleted: List[str] = []
        self.live: Dict[str, SnapshotHandle] = {}

    async def volume_root(self, path: str) -> str:
        return self._volume_root

    async def create_snapshot(self, volume_root: str) -> SnapshotHandle:
        if self.fail_create:
            raise ProviderError("shadow storage exhausted")
        handle = SnapshotHandle(
            set_id=f"set-{len(self.created) + 1}",
            snapshot_id=f"snap-{len(self.created) + 1}",
            volume_root=volume_root,
            device_object_path=str(self.device_path),
            created_at=datetime.now(UTC),
        )
        self.created.append(handle)
        self.live[handle.set_id] = handle
        return handle

    async def delete_snapshot(self, handle: SnapshotHandle) -> None:
        if self.fail_delete:
            raise ProviderError("snapshot busy")
        self.deleted.append(handle.set_id)
        self.live.pop(handle.set_id, None)

    async def list_snapshot_sets(self) -> List[SnapshotHandle]:
        return list(self.live.values())


# ============================================================================
# Service fake
# ============================================================================


class ScriptedServiceController(ServiceController):
    """Service whose transitions complete immediately unless told otherwise."""

    def __init__(self, status: ServiceStatus = ServiceStatus.RUNNING):
        super().__init__(poll_interval=0.01)
        self.current = status
        self.calls: List[str] = []
        self.fail_start_times = 0
        self.fail_stop = False
        self.fail_grant = False
        self.hang_on_stop = False

    async def status(self, name: str) -> ServiceStatus:
        return self.current

    async def _request_start(self, name: str) -> None:
        self.calls.append("start")
        if self.fail_start_times > 0:
            self.fail_start_times -= 1
            raise ServiceControlError(f"Failed to start {name}")
        self.current = ServiceStatus.RUNNING

    async def _request_stop(self, name: str) -> None:
        self.calls.append("stop")
        if self.fail_stop:
            raise ServiceControlError(f"Failed to stop {name}")
        if self.hang_on_stop:
            self.current = ServiceStatus.TRANSITIONING
            return
        self.current = ServiceStatus.STOPPED

    async def grant_access(self, name: str, path: str) -> None:
        self.calls.append("grant")
        if self.fail_grant:
            raise ServiceControlError("icacls failed")


# ============================================================================
# Layout fixtures
# ============================================================================


@pytest.fixture
def volume(temp_dir: Path) -> Dict[str, Path]:
    """
    Live volume with a data directory and a matching snapshot copy.

    volume/db/data is the live data directory; shadow/db/data is what the
    snapshot exposes for it.
    """
    volume_root = temp_dir / "volume"
    data_dir = volume_root / "db" / "data"
    data_dir.mkdir(parents=True)
    (data_dir / "collection-1.wt").write_bytes(b"live")

    shadow = temp_dir / "shadow"
    snap_data = shadow / "db" / "data"
    snap_data.mkdir(parents=True)
    (snap_data / "collection-1.wt").write_bytes(b"snapshot collection")
    (snap_data / "WiredTiger.wt").write_bytes(b"snapshot catalog")
    (snap_data / "mongod.lock").write_bytes(b"")
    (snap_data / "journal").mkdir()
    (snap_data / "journal" / "WiredTigerLog.0000000001").write_bytes(b"journal")

    backups = temp_dir / "backups"
    backups.mkdir()

    return {
        "volume_root": volume_root,
        "data_dir": data_dir,
        "shadow": shadow,
        "backups": backups,
    }


@pytest.fixture
def test_config(temp_dir: Path) -> MongoSnapConfig:
    return MongoSnapConfig(service_name="mongod", service_timeout=1.0, poll_interval=0.01)
