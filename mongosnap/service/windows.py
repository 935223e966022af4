# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Windows Service Control Manager backend (sc.exe + icacls).
"""

import re

from mongosnap.exceptions import CommandError, ServiceControlError
from mongosnap.proc import run_command
from mongosnap.service.base import ServiceController, ServiceStatus

# sc.exe query: "        STATE              : 4  RUNNING"
_STATE_RE = re.compile(r"STATE\s*:\s*(\d+)")
# sc.exe qc: "        SERVICE_START_NAME : NT AUTHORITY\NetworkService"
_START_NAME_RE = re.compile(r"SERVICE_START_NAME\s*:\s*(.+)")

_STOPPED = 1
_RUNNING = 4

# Built-in accounts as icacls expects them
_ACCOUNT_ALIASES = {
    "localsystem": "SYSTEM",
    "nt authority\\localservice": "LOCAL SERVICE",
    "nt authority\\networkservice": "NETWORK SERVICE",
}


def parse_state(output: str) -> ServiceStatus:
    match = _STATE_RE.search(output)
    if not match:
        return ServiceStatus.STOPPED
    code = int(match.group(1))
    if code == _RUNNING:
        return ServiceStatus.RUNNING
    if code == _STOPPED:
        return ServiceStatus.STOPPED
    return ServiceStatus.TRANSITIONING


def parse_start_name(output: str) -> str | None:
    match = _START_NAME_RE.search(output)
    if not match:
        return None
    account = match.group(1).strip()
    return _ACCOUNT_ALIASES.get(account.lower(), account)


class WindowsServiceController(ServiceController):
    """Controls a Windows service through sc.exe."""

    default_service_name = "MongoDB"

    async def status(self, name: str) -> ServiceStatus:
        try:
            result = await run_command(["sc.exe", "query", name])
        except CommandError as e:
            raise ServiceControlError(f"Failed to query {name}: {e.message}", details={"service": name}) from e
        return parse_state(result.stdout)

    async def _request_start(self, name: str) -> None:
        try:
            await run_command(["sc.exe", "start", name])
        except CommandError as e:
            raise ServiceControlError(f"Failed to start {name}: {e.message}", details={"service": name}) from e

    async def _request_stop(self, name: str) -> None:
        try:
            await run_command(["sc.exe", "stop", name])
        except CommandError as e:
            raise ServiceControlError(f"Failed to stop {name}: {e.message}", details={"service": name}) from e

    async def grant_access(self, name: str, path: str) -> None:
        result = await run_command(["sc.exe", "qc", name])
        identity = parse_start_name(result.stdout)
        if not identity:
            raise ServiceControlError(f"Could not determine the account {name} runs as")

        await run_command(["icacls", path, "/grant", f"{identity}:(OI)(CI)F", "/T", "/C", "/Q"])
        self.logger.info("permissions_repaired", service=name, path=path, identity=identity)
