# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Volume Shadow Copy (VSS) backend for Windows hosts.

Shadow copies are driven through the Win32_ShadowCopy CIM class via
PowerShell, which needs no extra bindings. Each created set holds one
ClientAccessible shadow copy of the drive; its DeviceObject
(\\\\?\\GLOBALROOT\\Device\\HarddiskVolumeShadowCopyN) is readable as a path.
"""

import json
from datetime import datetime, UTC
from pathlib import PureWindowsPath
from typing import Any, List

from mongosnap.exceptions import CommandError, ProviderError
from mongosnap.proc import run_command
from mongosnap.snapshot.base import SnapshotHandle, SnapshotProvider

_SHADOW_FIELDS = (
    "[pscustomobject]@{ "
    "ID = $_.ID; SetID = $_.SetID; VolumeName = $_.VolumeName; "
    "DeviceObject = $_.DeviceObject; "
    "InstallDate = $_.InstallDate.ToUniversalTime().ToString(\"yyyy-MM-ddTHH:mm:ss'Z'\") }"
)

_CREATE_SCRIPT = """
$ErrorActionPreference = 'Stop'
$r = Invoke-CimMethod -ClassName Win32_ShadowCopy -MethodName Create -Arguments @{{ Volume = '{volume}'; Context = 'ClientAccessible' }}
if ($r.ReturnValue -ne 0) {{ throw "Win32_ShadowCopy.Create returned $($r.ReturnValue)" }}
Get-CimInstance -ClassName Win32_ShadowCopy -Filter "ID='$($r.ShadowID)'" | ForEach-Object {{ {fields} }} | ConvertTo-Json -Compress
"""

_LIST_SCRIPT = """
$ErrorActionPreference = 'Stop'
ConvertTo-Json -Compress -InputObject @(Get-CimInstance -ClassName Win32_ShadowCopy | ForEach-Object {{ {fields} }})
"""

_DELETE_SCRIPT = """
$ErrorActionPreference = 'Stop'
Get-CimInstance -ClassName Win32_ShadowCopy -Filter "SetID='{set_id}'" | Remove-CimInstance
"""


def _ps_quote(value: str) -> str:
    """Escape a value for a single-quoted PowerShell string."""
    return value.replace("'", "''")


def _parse_install_date(value: str | None) -> datetime:
    if not value:
        return datetime.fromtimestamp(0, UTC)
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=UTC)
    except ValueError:
        return datetime.fromtimestamp(0, UTC)


def _to_handle(record: dict, volume_root: str | None = None) -> SnapshotHandle:
    return SnapshotHandle(
        set_id=str(record.get("SetID", "")),
        snapshot_id=str(record.get("ID", "")),
        volume_root=volume_root or str(record.get("VolumeName", "")),
        device_object_path=str(record.get("DeviceObject", "")),
        created_at=_parse_install_date(record.get("InstallDate")),
    )


class VssSnapshotProvider(SnapshotProvider):
    """Creates ClientAccessible shadow copies of a drive."""

    path_type = PureWindowsPath

    def __init__(self, powershell: str = "powershell.exe", logger: Any = None) -> None:
        super().__init__(logger)
        self.powershell = powershell

    async def _run_script(self, script: str) -> str:
        result = await run_command(
            [self.powershell, "-NoProfile", "-NonInteractive", "-Command", script]
        )
        return result.stdout.strip()

    async def volume_root(self, path: str) -> str:
        anchor = PureWindowsPath(path).anchor
        if not anchor:
            raise ProviderError(f"Could not determine volume for {path}")
        return anchor if anchor.endswith("\\") else anchor + "\\"

    async def create_snapshot(self, volume_root: str) -> SnapshotHandle:
        volume = volume_root if volume_root.endswith("\\") else volume_root + "\\"
        script = _CREATE_SCRIPT.format(volume=_ps_quote(volume), fields=_SHADOW_FIELDS)

        try:
            output = await self._run_script(script)
        except CommandError as e:
            raise ProviderError(
                f"VSS snapshot failed: {e.message}",
                details={"volume_root": volume},
            ) from e

        try:
            record = json.loads(output)
        except json.JSONDecodeError as e:
            raise ProviderError(
                "VSS returned unreadable snapshot properties",
                details={"volume_root": volume, "output": output[:200]},
            ) from e

        handle = _to_handle(record, volume_root=volume)
        if not handle.device_object_path or not handle.set_id:
            raise ProviderError(
                "VSS snapshot has no device object",
                details={"volume_root": volume},
            )
        return handle

    async def delete_snapshot(self, handle: SnapshotHandle) -> None:
        try:
            await self._run_script(_DELETE_SCRIPT.format(set_id=_ps_quote(handle.set_id)))
        except CommandError as e:
            raise ProviderError(
                f"Failed to delete snapshot set {handle.set_id}: {e.message}",
                details={"set_id": handle.set_id},
            ) from e

    async def list_snapshot_sets(self) -> List[SnapshotHandle]:
        try:
            output = await self._run_script(_LIST_SCRIPT.format(fields=_SHADOW_FIELDS))
        except CommandError as e:
            raise ProviderError(f"Failed to list shadow copies: {e.message}") from e

        if not output:
            return []
        try:
            records = json.loads(output)
        except json.JSONDecodeError as e:
            raise ProviderError(
                "VSS returned an unreadable shadow copy list",
                details={"output": output[:200]},
            ) from e

        if isinstance(records, dict):
            records = [records]

        # One handle per set; every set this tool creates holds a single copy
        seen = set()
        handles: List[SnapshotHandle] = []
        for record in records:
            handle = _to_handle(record)
            if handle.set_id in seen:
                continue
            seen.add(handle.set_id)
            handles.append(handle)
        return handles
