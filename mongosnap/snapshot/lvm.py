# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
LVM snapshot backend for Linux hosts.

The data directory's mount is traced back to its logical volume, a
copy-on-write snapshot LV is created next to it and mounted read-only.
The mount directory plays the role of the snapshot's device object path.

Only snapshot LVs named with SNAPSHOT_PREFIX are listed or deleted, so the
cleanup tool never touches snapshots made by other software.
"""

import re
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Tuple

import aiofiles.os
from ulid import ULID

from mongosnap.exceptions import CommandError, ProviderError
from mongosnap.proc import run_command
from mongosnap.snapshot.base import SnapshotHandle, SnapshotProvider

SNAPSHOT_PREFIX = "mongosnap_"

# Filesystems that refuse to mount a second copy with the same UUID
_NOUUID_FILESYSTEMS = {"xfs"}


def _parse_pairs(line: str) -> Dict[str, str]:
    """Parse findmnt -P output: KEY="value" KEY2="value2"."""
    return dict(re.findall(r'(\w+)="([^"]*)"', line))


def _size_flag(size: str) -> Tuple[str, str]:
    """Percentages go through --extents, absolute sizes through --size."""
    if "%" in size:
        return ("--extents", size)
    return ("--size", size)


def _parse_lv_time(value: str) -> datetime | None:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        return None


class LvmSnapshotProvider(SnapshotProvider):
    """Snapshots the logical volume behind a mount point."""

    def __init__(
        self,
        mount_base: Path,
        snapshot_size: str = "1G",
        logger: Any = None,
    ) -> None:
        super().__init__(logger)
        self.mount_base = Path(mount_base)
        self.snapshot_size = snapshot_size

    async def volume_root(self, path: str) -> str:
        try:
            result = await run_command(["findmnt", "-n", "-o", "TARGET", "--target", path])
        except CommandError as e:
            raise ProviderError(f"Could not determine volume for {path}: {e.message}") from e
        root = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        if not root:
            raise ProviderError(f"Could not determine volume for {path}")
        return root

    async def _origin_of(self, volume_root: str) -> Tuple[str, str, str]:
        """Return (vg_name, lv_name, fstype) backing a mount point."""
        result = await run_command(
            ["findmnt", "-n", "-P", "-o", "SOURCE,FSTYPE", "--mountpoint", volume_root]
        )
        pairs = _parse_pairs(result.stdout)
        source = pairs.get("SOURCE", "")
        if not source:
            raise ProviderError(
                f"Volume {volume_root} is not a mounted block device",
                details={"volume_root": volume_root},
            )

        lvs = await run_command(
            ["lvs", "--noheadings", "--separator", "|", "-o", "vg_name,lv_name", source]
        )
        fields = [f.strip() for f in lvs.stdout.strip().split("|")]
        if len(fields) != 2 or not all(fields):
            raise ProviderError(
                f"{source} is not an LVM logical volume",
                details={"volume_root": volume_root, "source": source},
            )
        return fields[0], fields[1], pairs.get("FSTYPE", "")

    async def create_snapshot(self, volume_root: str) -> SnapshotHandle:
        try:
            vg_name, lv_name, fstype = await self._origin_of(volume_root)
        except CommandError as e:
            raise ProviderError(
                f"Failed to gather volume metadata: {e.message}",
                details={"volume_root": volume_root},
            ) from e

        set_id = str(ULID()).lower()
        snap_name = f"{SNAPSHOT_PREFIX}{set_id}"
        mount_dir = self.mount_base / snap_name
        size_flag, size = _size_flag(self.snapshot_size)

        try:
            await run_command(
                ["lvcreate", "--snapshot", "--name", snap_name, size_flag, size, f"{vg_name}/{lv_name}"]
            )
        except CommandError as e:
            raise ProviderError(
                f"lvcreate failed: {e.message}",
                details={"volume_root": volume_root, "origin": f"{vg_name}/{lv_name}"},
            ) from e

        options = "ro,nouuid" if fstype in _NOUUID_FILESYSTEMS else "ro"
        try:
            await aiofiles.os.makedirs(mount_dir, exist_ok=True)
            await run_command(["mount", "-o", options, f"/dev/{vg_name}/{snap_name}", str(mount_dir)])
        except (CommandError, OSError) as e:
            self.logger.error("snapshot_mount_failed", snapshot=snap_name, error=str(e))
            try:
                await run_command(["lvremove", "-f", f"{vg_name}/{snap_name}"])
            except CommandError as cleanup_error:
                self.logger.error(
                    "snapshot_rollback_failed",
                    snapshot=snap_name,
                    error=cleanup_error.message,
                )
            raise ProviderError(
                f"Failed to mount snapshot {snap_name}: {e}",
                details={"volume_root": volume_root},
            ) from e

        return SnapshotHandle(
            set_id=set_id,
            snapshot_id=f"{vg_name}/{snap_name}",
            volume_root=volume_root,
            device_object_path=str(mount_dir),
            created_at=datetime.now(UTC),
        )

    async def delete_snapshot(self, handle: SnapshotHandle) -> None:
        mount_dir = handle.device_object_path
        try:
            if await aiofiles.os.path.ismount(mount_dir):
                await run_command(["umount", mount_dir])
            await run_command(["lvremove", "-f", handle.snapshot_id])
        except CommandError as e:
            raise ProviderError(
                f"Failed to delete snapshot {handle.snapshot_id}: {e.message}",
                details={"set_id": handle.set_id},
            ) from e

        if await aiofiles.os.path.isdir(mount_dir):
            try:
                await aiofiles.os.rmdir(mount_dir)
            except OSError as e:
                self.logger.warning("snapshot_mount_dir_not_removed", path=mount_dir, error=str(e))

    async def list_snapshot_sets(self) -> List[SnapshotHandle]:
        try:
            result = await run_command(
                [
                    "lvs",
                    "--noheadings",
                    "--separator",
                    "|",
                    "-o",
                    "vg_name,lv_name,origin,lv_time",
                ]
            )
        except CommandError as e:
            raise ProviderError(f"Failed to list snapshots: {e.message}") from e

        handles: List[SnapshotHandle] = []
        for line in result.stdout.splitlines():
            fields = [f.strip() for f in line.split("|")]
            if len(fields) != 4:
                continue
            vg_name, lv_name, origin, lv_time = fields
            if not lv_name.startswith(SNAPSHOT_PREFIX) or not origin:
                continue

            created_at = _parse_lv_time(lv_time)
            if created_at is None:
                self.logger.debug("snapshot_time_unparsed", lv=lv_name, value=lv_time)
                created_at = datetime.fromtimestamp(0, UTC)

            handles.append(
                SnapshotHandle(
                    set_id=lv_name[len(SNAPSHOT_PREFIX):],
                    snapshot_id=f"{vg_name}/{lv_name}",
                    volume_root=f"/dev/{vg_name}/{origin}",
                    device_object_path=str(self.mount_base / lv_name),
                    created_at=created_at,
                )
            )
        return handles
